#!/usr/bin/env python3
"""
QIE Decoder - Command Line Interface

Decodes a raw dual-fiber capture file and dumps the events.
"""

import argparse
import logging
import sys
from typing import Optional

from . import __version__
from .core.capture import CaptureFile
from .core.config import DecoderConfig
from .core.decoder import TelemetryDecoder
from .ui.event_dump import JsonLinesEventSink, TextEventSink, format_stats


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="qie-decode",
        description="QIE Decoder - Dual-fiber readout telemetry decoder",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("filename", nargs="?", help="Raw capture file to decode")
    parser.add_argument(
        "--config", "-c", type=str, help="JSON decoder configuration file"
    )
    parser.add_argument(
        "--format",
        "-f",
        choices=["text", "json"],
        default="text",
        help="Event output format (default: text)",
    )
    parser.add_argument(
        "--max-events",
        "-n",
        type=int,
        default=None,
        help="Stop after this many decoded events",
    )
    parser.add_argument(
        "--summary",
        "-s",
        action="store_true",
        help="Only print event counts and diagnostics",
    )
    parser.add_argument(
        "--no-boundary-correction",
        action="store_true",
        help="Do not rejoin frames split across event boundaries",
    )
    parser.add_argument(
        "--debug", "-d", action="store_true", help="Enable debug logging"
    )
    return parser


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point.

    Args:
        argv: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code (0 for success)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.filename is None:
        parser.print_usage(sys.stderr)
        return 1

    if args.config:
        config = DecoderConfig.load(args.config)
        if config is None:
            print(
                f"Error: could not load configuration {args.config}", file=sys.stderr
            )
            return 1
    else:
        config = DecoderConfig()

    if args.no_boundary_correction:
        config.boundary_correction = False

    try:
        capture = CaptureFile(args.filename)
    except OSError as e:
        print(f"Error: cannot open {args.filename}: {e}", file=sys.stderr)
        return 1

    if args.summary:
        sink = None
    elif args.format == "json":
        sink = JsonLinesEventSink(sys.stdout)
    else:
        sink = TextEventSink(sys.stdout)

    decoder = TelemetryDecoder(config)
    decoded = 0
    with capture:
        for event in decoder.iter_events(capture):
            if sink is not None:
                sink(event)
            decoded += 1
            if args.max_events is not None and decoded >= args.max_events:
                break

    # Keep stdout pure JSON lines in json mode
    report = sys.stderr if args.format == "json" else sys.stdout
    stats = decoder.stats
    print(f"Found {stats.events_found} events, decoded {decoded}", file=report)
    print(format_stats(stats), file=report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
