import json
import shutil
import sys
from pathlib import Path

from src.components.generator import GeneratorConfig
from src.core.services.dispatcher import DispatcherConfig
from src.core.services.image_cache import CacheConfig
from src.core.services.report import ReportConfig
from src.rules.models import Rules


def validate_renderer_rules(rules: Rules) -> None:
    """
    Validate operational requirements before startup.
    """
    renderer = rules.renderer

    # 1. Renderer binary must be resolvable
    if shutil.which(renderer.binary) is None and not Path(renderer.binary).is_file():
        print(
            f"CRITICAL: Renderer binary not found: {renderer.binary}",
            file=sys.stderr,
        )
        sys.exit(1)

    # 2. Working directory, if configured, must exist
    if renderer.working_directory and not Path(renderer.working_directory).is_dir():
        print(
            f"CRITICAL: Renderer working directory missing: {renderer.working_directory}",
            file=sys.stderr,
        )
        sys.exit(1)


def generator_config(rules: Rules) -> GeneratorConfig:
    """Translate validated rules into the generator configuration."""
    image_types = {
        name: json.dumps(
            {"command": t.command, "full_size": t.full_size, "fonts": t.fonts}
        )
        for name, t in rules.types.items()
    }
    return GeneratorConfig(
        working_directory=rules.renderer.working_directory,
        image_format=rules.images.image_format,
        font_sizes=dict(rules.images.fonts),
        color_main=rules.images.colors.main,
        color_secondary=rules.images.colors.secondary,
        image_types=image_types,
        cache=CacheConfig(timeout_seconds=rules.cache.timeout_seconds),
        dispatcher=DispatcherConfig(default_aspect_ratio=rules.images.default_aspect_ratio),
        report=ReportConfig(
            root_dir=rules.report.root_path,
            tick_seconds=rules.report.tick_seconds,
            dir_format=rules.report.dir_format,
        ),
    )
