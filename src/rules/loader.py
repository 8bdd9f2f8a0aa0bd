"""
Rules loader.

`rules.yaml` may be plain YAML or a markdown document carrying the rules in
its first fenced ```yaml block.
"""

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from src.rules.models import Rules

logger = logging.getLogger(__name__)

_FENCE = "```"
_YAML_FENCE = "```yaml"


def extract_yaml(content: str) -> str:
    """Return the first fenced yaml block, or the whole content if there is none."""
    block: list[str] | None = None
    for line in content.splitlines():
        stripped = line.strip()
        if block is None:
            if stripped.startswith(_YAML_FENCE):
                block = []
            continue
        if stripped.startswith(_FENCE):
            break
        block.append(line)
    return content if block is None else "\n".join(block)


def parse_rules(content: str, source: str = "<rules>") -> Rules:
    """
    Validate rules text.
    Raises ValueError if YAML or schema invalid.
    """
    try:
        data = yaml.safe_load(extract_yaml(content))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in {source}: {e}") from e

    try:
        return Rules.model_validate(data or {})
    except ValidationError as e:
        raise ValueError(f"Rules validation failed for {source}:\n{e}") from e


def load_rules(path: Path) -> Rules:
    """
    Load and validate the rules file.
    Raises FileNotFoundError if file missing.
    Raises ValueError if YAML or schema invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found at: {path}")

    rules = parse_rules(path.read_text(), source=str(path))
    logger.debug("Loaded rules from %s (%d image types)", path, len(rules.types))
    return rules
