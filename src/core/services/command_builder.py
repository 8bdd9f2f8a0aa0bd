"""
CommandBuilder - Builds rrdtool graph command lines from image type templates.

Templates use `string.Template` placeholders:

    $from $to $duration $width $height $fname $type $color_main $color_secondary

The builder prepends the graph options it controls (output file, time range,
size, size mode, fonts, image format) and appends the substituted template.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from string import Template
from typing import Any

from matplotlib.colors import to_hex

from src.core.entities import CacheKey, ImageTypeDescriptor

# rrdtool font tags
FONT_TAGS = ("DEFAULT", "TITLE", "AXIS", "UNIT", "LEGEND", "WATERMARK")

DEFAULT_MAIN_COLOR = "#0000FF"
DEFAULT_SECONDARY_COLOR = "#FF0000"

_NEEDS_QUOTES = re.compile(r"[\s\"']")


def quote_arg(arg: str) -> str:
    """Quote an argument for the rrdtool pipe parser."""
    if arg and not _NEEDS_QUOTES.search(arg):
        return arg
    return '"' + arg.replace("\\", "\\\\").replace('"', '\\"') + '"'


def to_rrd_color(color: Any) -> str:
    """
    Normalize any matplotlib color spec to rrdtool `#RRGGBBAA`.

    Raises ValueError for unknown colors.
    """
    return to_hex(color, keep_alpha=True).upper()


def parse_image_type(type_name: str, command_json: str) -> ImageTypeDescriptor:
    """
    Build a descriptor from a registration string.

    Accepts a JSON object `{"command": ..., "full_size": ..., "fonts": {...}}`
    or a bare template string.
    """
    if not type_name:
        raise ValueError("Image type name must not be empty")

    text = command_json.strip()
    if not text.startswith("{"):
        return ImageTypeDescriptor(type_name=type_name, command_template=text)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid command JSON for type {type_name!r}: {e}") from e

    command = data.get("command")
    if not isinstance(command, str) or not command.strip():
        raise ValueError(f"Image type {type_name!r} has no command")

    full_size = data.get("full_size", False)
    if not isinstance(full_size, bool):
        raise ValueError(f"Image type {type_name!r}: full_size must be a boolean")

    fonts = data.get("fonts", {})
    if not isinstance(fonts, dict):
        raise ValueError(f"Image type {type_name!r}: fonts must be an object")

    return ImageTypeDescriptor(
        type_name=type_name,
        command_template=command,
        is_full_size=full_size,
        font_size_overrides={str(tag).upper(): int(size) for tag, size in fonts.items()},
    )


@dataclass
class CommandBuilder:
    """Holds global font and color options used in every image."""

    image_format: str = "PNG"
    font_sizes: dict[str, int] = field(default_factory=dict)
    color_main: str | None = None
    color_secondary: str | None = None

    def set_font_size(self, tag: str, size: int) -> None:
        tag = tag.upper()
        if tag not in FONT_TAGS:
            raise ValueError(f"Unknown font tag {tag!r}, expected one of {', '.join(FONT_TAGS)}")
        if size <= 0:
            self.font_sizes.pop(tag, None)
            return
        self.font_sizes[tag] = size

    def set_colors(self, main: Any = None, secondary: Any = None) -> None:
        """Set line colors. Without arguments only unset colors get defaults."""
        if main is None and secondary is None:
            if self.color_main is None:
                self.color_main = to_rrd_color(DEFAULT_MAIN_COLOR)
            if self.color_secondary is None:
                self.color_secondary = to_rrd_color(DEFAULT_SECONDARY_COLOR)
            return
        if main is not None:
            self.color_main = to_rrd_color(main)
        if secondary is not None:
            self.color_secondary = to_rrd_color(secondary)

    def build(self, descriptor: ImageTypeDescriptor, key: CacheKey, output_path: str) -> str:
        start = int(key.from_timestamp)
        end = int(key.from_timestamp + key.duration)

        args = [
            "graph",
            quote_arg(output_path),
            "--imgformat",
            self.image_format,
            "--start",
            str(start),
            "--end",
            str(end),
            "--width",
            str(key.width),
            "--height",
            str(key.height),
        ]

        if not key.full_size:
            args.append("--only-graph")
        elif descriptor.is_full_size:
            args.append("--full-size-mode")

        fonts = {**self.font_sizes, **descriptor.font_size_overrides}
        for tag in sorted(fonts):
            args.extend(["--font", f"{tag}:{fonts[tag]}:"])

        template = Template(descriptor.command_template).safe_substitute(
            type=descriptor.type_name,
            fname=output_path,
            width=key.width,
            height=key.height,
            duration=int(key.duration),
            color_main=self.color_main or to_rrd_color(DEFAULT_MAIN_COLOR),
            color_secondary=self.color_secondary or to_rrd_color(DEFAULT_SECONDARY_COLOR),
            to=end,
            **{"from": start},
        )
        return " ".join(args + [template.strip()]).strip()

    def build_chdir(self, path: str) -> str:
        return f"cd {quote_arg(path)}"
