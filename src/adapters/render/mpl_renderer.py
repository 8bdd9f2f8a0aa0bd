"""
Development renderer speaking the rrdtool pipe protocol.

    python -m src.adapters.render.mpl_renderer

Reads one command per line from stdin and answers like `rrdtool -`:

    graph out.png --start S --end E --width W --height H ... LINE1:v#FF0000:cpu
    -> 497x214
       OK u:0.00 s:0.00 r:0.03

Data is synthetic; only the graph options and LINE/AREA colors and legends
are honoured. Useful for running the generator without rrdtool installed.
"""

from __future__ import annotations

import hashlib
import math
import os
import shlex
import sys
import time
from dataclasses import dataclass, field
from typing import TextIO

import matplotlib.figure
from matplotlib.backends.backend_agg import FigureCanvasAgg

# Pixels rrdtool adds around the canvas for axes, title and legend
DECORATION_WIDTH = 81
DECORATION_HEIGHT = 59
DPI = 100
POINTS = 120


@dataclass
class GraphSpec:
    fname: str
    start: int = 0
    end: int = 0
    width: int = 400
    height: int = 100
    full_size_mode: bool = False
    only_graph: bool = False
    title: str = ""
    vertical_label: str = ""
    lines: list[tuple[str, str, str]] = field(default_factory=list)  # kind, color, legend

    @property
    def image_size(self) -> tuple[int, int]:
        if self.full_size_mode or self.only_graph:
            return self.width, self.height
        return self.width + DECORATION_WIDTH, self.height + DECORATION_HEIGHT


_VALUE_OPTIONS = {
    "--start": "start",
    "-s": "start",
    "--end": "end",
    "-e": "end",
    "--width": "width",
    "-w": "width",
    "--height": "height",
    "-h": "height",
    "--title": "title",
    "-t": "title",
    "--vertical-label": "vertical_label",
    "-v": "vertical_label",
}
# Options taking a value that the dev renderer ignores
_SKIPPED_OPTIONS = {"--imgformat", "-a", "--font", "-n", "--color", "-c", "--upper-limit", "--lower-limit"}


def _color(spec: str) -> str:
    # rrdtool #RRGGBB[AA] is also a valid matplotlib color
    return spec if spec.startswith("#") else "#" + spec


def parse_graph(args: list[str]) -> GraphSpec:
    """Parse `graph` arguments (without the leading verb). Raises ValueError."""
    if not args:
        raise ValueError("graph needs an output file")

    spec = GraphSpec(fname=args[0])
    i = 1
    while i < len(args):
        arg = args[i]
        if arg in _VALUE_OPTIONS:
            if i + 1 >= len(args):
                raise ValueError(f"option {arg} requires an argument")
            name = _VALUE_OPTIONS[arg]
            value = args[i + 1]
            setattr(spec, name, int(float(value)) if name in ("start", "end", "width", "height") else value)
            i += 2
            continue
        if arg in _SKIPPED_OPTIONS:
            i += 2
            continue
        if arg in ("--full-size-mode", "-D"):
            spec.full_size_mode = True
        elif arg in ("--only-graph", "-j"):
            spec.only_graph = True
        elif arg.split(":", 1)[0].rstrip("0123456789") in ("LINE", "AREA"):
            kind, _, rest = arg.partition(":")
            parts = rest.split(":")
            vname, _, color = parts[0].partition("#")
            legend = parts[1] if len(parts) > 1 else vname
            spec.lines.append((kind, _color(color or "0000FF"), legend))
        i += 1

    if spec.width <= 0 or spec.height <= 0:
        raise ValueError(f"invalid size {spec.width}x{spec.height}")
    if spec.end <= spec.start:
        spec.end = spec.start + 86400
    return spec


class MatplotlibRenderer:
    def render_graph(self, spec: GraphSpec) -> tuple[int, int]:
        """Render synthetic data for `spec` into spec.fname. Returns image size."""
        width, height = spec.image_size
        fig = matplotlib.figure.Figure(figsize=(width / DPI, height / DPI), dpi=DPI)
        FigureCanvasAgg(fig)  # Attach canvas backend
        ax = fig.add_axes((0, 0, 1, 1)) if spec.only_graph else fig.add_subplot(111)

        step = (spec.end - spec.start) / POINTS
        x = [spec.start + i * step for i in range(POINTS + 1)]
        lines = spec.lines or [("LINE1", "#0000FF", spec.title or "value")]
        for index, (kind, color, legend) in enumerate(lines):
            # Stable pseudo data per legend
            phase = int(hashlib.md5(legend.encode("utf-8")).hexdigest()[:4], 16) / 65535 * math.tau
            y = [50 + 40 * math.sin(phase + index + i / 12) for i in range(POINTS + 1)]
            if kind.startswith("AREA"):
                ax.fill_between(x, y, color=color, label=legend)
            else:
                ax.plot(x, y, color=color, label=legend)

        if spec.only_graph:
            ax.set_axis_off()
        else:
            if spec.title:
                ax.set_title(spec.title)
            if spec.vertical_label:
                ax.set_ylabel(spec.vertical_label)
            ax.legend(loc="upper right", fontsize="small")
            fig.tight_layout()

        fig.savefig(spec.fname, format="png", dpi=DPI)
        return width, height

    def handle(self, line: str) -> tuple[list[str], bool]:
        """Execute one command line. Returns (response lines, keep running)."""
        try:
            args = shlex.split(line)
        except ValueError as e:
            return [f"ERROR: {e}"], True
        if not args:
            return [], True

        verb, rest = args[0], args[1:]
        began = time.process_time()
        try:
            if verb == "quit":
                return [], False
            if verb == "cd":
                if len(rest) != 1:
                    raise ValueError("cd needs exactly one directory")
                os.chdir(rest[0])
                body: list[str] = []
            elif verb == "graph":
                width, height = self.render_graph(parse_graph(rest))
                body = [f"{width}x{height}"]
            else:
                raise ValueError(f"unknown function '{verb}'")
        except (OSError, ValueError) as e:
            return [f"ERROR: {e}"], True

        elapsed = time.process_time() - began
        return body + [f"OK u:{elapsed:.2f} s:0.00 r:{elapsed:.2f}"], True

    def serve(self, stdin: TextIO, stdout: TextIO) -> None:
        for line in stdin:
            response, keep_running = self.handle(line.strip())
            for out in response:
                stdout.write(out + "\n")
            stdout.flush()
            if not keep_running:
                break


def main() -> None:
    MatplotlibRenderer().serve(sys.stdin, sys.stdout)


if __name__ == "__main__":
    main()
