"""Command-line entry point for map capture."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .config import CaptureConfig
from .errors import ConfigError
from .models import Target
from .runner import run_capture
from .targets import DEFAULT_TARGETS, filter_targets, load_targets

logger = logging.getLogger("mapshot.cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Capture the map area of interactive web maps to image files using Playwright.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Directory where captures are written (default: $OUTPUT_DIR or docs)",
    )
    parser.add_argument(
        "--targets",
        type=Path,
        default=None,
        help="JSON file listing targets to capture instead of the built-in list",
    )
    parser.add_argument(
        "--only",
        nargs="+",
        default=None,
        metavar="ID",
        help="Capture only the targets with these identifiers",
    )
    parser.add_argument(
        "--attempts",
        type=int,
        default=None,
        help="Attempts per target before writing a placeholder",
    )
    parser.add_argument(
        "--padding",
        type=int,
        default=None,
        help="Padding in pixels around the detected map region",
    )
    parser.add_argument(
        "--stabilize-ms",
        type=int,
        default=None,
        help="How long the map geometry must stay unchanged before capturing",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Navigation timeout in seconds",
    )
    parser.add_argument(
        "--no-headless",
        action="store_true",
        help="Show the browser window (for debugging)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 when any target falls back to a placeholder",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(list(sys.argv[1:] if argv is None else argv))


def build_config(args: argparse.Namespace) -> CaptureConfig:
    return CaptureConfig.from_env(
        output_root=args.output,
        max_attempts=args.attempts,
        padding=args.padding,
        stabilize_ms=args.stabilize_ms,
        navigation_timeout=args.timeout,
        headless=False if args.no_headless else None,
    )


def resolve_targets(args: argparse.Namespace, config: CaptureConfig) -> List[Target]:
    if args.targets:
        targets = load_targets(args.targets, config.output_extension)
    else:
        targets = list(DEFAULT_TARGETS)
    return filter_targets(targets, args.only)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    try:
        config = build_config(args)
        targets = resolve_targets(args, config)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        raise SystemExit(2) from exc

    try:
        summary = asyncio.run(run_capture(targets, config))
    except Exception:  # pylint: disable=broad-except
        logger.exception("Capture run failed")
        raise SystemExit(1)

    logger.info(
        "Finished in %.2fs (%d/%d captured, %d placeholder(s))",
        summary.total_seconds,
        len(summary.captured),
        len(summary.outcomes),
        len(summary.placeholders),
    )
    for outcome in summary.outcomes:
        logger.debug(
            "%s -> %s [%s] attempts=%d elapsed=%.2fs",
            outcome.target.identifier,
            outcome.output_path,
            outcome.status,
            outcome.attempts,
            outcome.total_seconds,
        )

    if args.strict and not summary.all_captured:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
