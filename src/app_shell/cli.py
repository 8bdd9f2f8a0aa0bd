import argparse
import logging
import os
import shutil
import sys
from pathlib import Path

from src.adapters.clock import SystemClock
from src.adapters.event_loop import EventLoop
from src.adapters.fs.filestore import ScratchStore
from src.adapters.log_events import LoggingEventSink
from src.adapters.rrdtool_process import SubprocessRenderer
from src.app_shell.config import generator_config, validate_renderer_rules
from src.components.generator import Generator, create_generator
from src.core.entities import PixelSize
from src.rules.loader import load_rules
from src.rules.models import Rules

logger = logging.getLogger("cli")

RULES_PATH = os.environ.get("RRDGEN_RULES_PATH", "rules.yaml")
RENDERER = os.environ.get("RRDGEN_RENDERER", "")

# Use the bundled matplotlib renderer instead of rrdtool
DEV_RENDERER = "dev"


def get_rules(path: str, renderer: str) -> Rules:
    if not Path(path).exists():
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Rules file {path} not found.")
        sys.exit(1)

    rules = load_rules(Path(path))
    if renderer == DEV_RENDERER:
        rules.renderer.binary = sys.executable
        rules.renderer.args = ["-m", "src.adapters.render.mpl_renderer"]
    elif renderer:
        rules.renderer.binary = renderer
    return rules


def build(rules: Rules) -> tuple[Generator, EventLoop, LoggingEventSink]:
    loop = EventLoop()
    sink = LoggingEventSink()
    process = SubprocessRenderer(
        binary=rules.renderer.binary,
        args=rules.renderer.args,
        dispatch=loop.post,
    )
    generator = create_generator(
        process=process,
        store=ScratchStore(),
        clock=SystemClock(),
        scheduler=loop,
        events=sink,
        config=generator_config(rules),
    )
    loop.call_every(rules.cache.check_interval_seconds, generator.check_cache)
    return generator, loop, sink


def time_range(args: argparse.Namespace, clock: SystemClock) -> tuple[float, float]:
    start = args.start if args.start is not None else clock.timestamp() - args.duration
    return start, args.duration


def handle_image(generator: Generator, loop: EventLoop, sink: LoggingEventSink, args: argparse.Namespace) -> int:
    if not generator.is_type_registered(args.type):
        logger.error(f"Image type {args.type} is not configured.")
        return 1

    start, duration = time_range(args, SystemClock())
    generator.get_image(1, args.type, start, duration, args.size, args.full_size, "")
    if not loop.run_until(lambda: 1 in sink.images or bool(sink.errors), timeout=args.timeout):
        logger.error("Timed out waiting for the renderer.")
        return 1
    if 1 not in sink.images:
        return 1

    output = Path(args.output or f"{args.type}.png")
    shutil.copyfile(sink.images[1], output)
    print(output)
    return 0


def handle_report(generator: Generator, loop: EventLoop, sink: LoggingEventSink, args: argparse.Namespace) -> int:
    start, duration = time_range(args, SystemClock())
    directory = generator.make_report(start, duration, args.size)
    print(f"Generating report in {directory}...")
    if not loop.run_until(lambda: bool(sink.reports), timeout=args.timeout):
        logger.error("Timed out waiting for the report.")
        return 1
    print(sink.reports[-1])
    return 1 if sink.errors else 0


def main() -> None:
    parser = argparse.ArgumentParser(description="RRD graph generator CLI")
    parser.add_argument("--rules", default=RULES_PATH, help="Path to rules.yaml")
    parser.add_argument(
        "--renderer",
        default=RENDERER,
        help=f"Renderer binary, or '{DEV_RENDERER}' for the bundled matplotlib renderer",
    )
    parser.add_argument("--timeout", type=float, default=120.0, help="Seconds to wait")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_range(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--from", dest="start", type=float, help="Start (unix time)")
        sub.add_argument("--duration", type=float, default=86400.0, help="Seconds")
        sub.add_argument("--size", type=PixelSize.parse, default=PixelSize(800, 400), help="WxH")

    # image
    image_parser = subparsers.add_parser("image", help="Render a single image")
    image_parser.add_argument("type", help="Configured image type")
    image_parser.add_argument("--full-size", action="store_true", help="Full image with legend")
    image_parser.add_argument("--output", help="Where to save the image")
    add_range(image_parser)

    # report
    report_parser = subparsers.add_parser("report", help="Render every configured type")
    add_range(report_parser)

    # types
    subparsers.add_parser("types", help="List configured image types")

    args = parser.parse_args()
    rules = get_rules(args.rules, args.renderer)

    logging.basicConfig(level=rules.logging.level, format=rules.logging.format)

    if args.command == "types":
        for name, image_type in rules.types.items():
            print(f"{name}{' (full size)' if image_type.full_size else ''}")
        return

    validate_renderer_rules(rules)
    generator, loop, sink = build(rules)
    try:
        if not generator.start():
            sys.exit(1)
        generator.set_single_line_colors()
        if args.command == "image":
            code = handle_image(generator, loop, sink, args)
        else:
            code = handle_report(generator, loop, sink, args)
    finally:
        generator.close()
    sys.exit(code)


if __name__ == "__main__":
    main()
