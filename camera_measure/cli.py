"""
Command line measurement on a still image.
Usage:
  python -m camera_measure.cli --image frame.png --calibrate 0:0,0:100 --length 50 \
      --segment 10:10,200:10 --angle 0:100,0:0,100:0 --unit mm --output-dir out
Prints the JSON export to stdout; PNG/JSON/CSV files are written to --output-dir.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List

from . import config
from .capture import load_image_file
from .errors import CaptureUnavailable
from .geometry import Mode, Point
from .logging_config import setup_logging
from .session import CommandResult, MeasurementSession


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Measure distances and angles on a single frame.")
    parser.add_argument("--image", type=Path, required=True)
    parser.add_argument("--calibrate", type=str, help="Reference points, e.g. 10:20,110:20")
    parser.add_argument("--length", type=str, help="Real length of the reference in --unit")
    parser.add_argument("--scale", type=float, help="Unit per pixel, instead of --calibrate")
    parser.add_argument("--segment", type=str, action="append", default=[], help="x:y,x:y (repeatable)")
    parser.add_argument("--angle", type=str, action="append", default=[], help="x:y,x:y,x:y with vertex in the middle (repeatable)")
    parser.add_argument("--unit", choices=["mm", "cm", "in"], default=config.DEFAULT_UNIT)
    parser.add_argument("--grid", action=argparse.BooleanOptionalAction, default=True)
    parser.add_argument("--edges", action="store_true", help="Apply the Sobel edge filter to the frame.")
    parser.add_argument("--mirror", action="store_true", help="Flip the frame horizontally.")
    parser.add_argument("--output-dir", type=Path, default=config.OUTPUT_DIR)
    parser.add_argument("--no-files", action="store_true", help="Only print JSON, do not write exports.")
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    return parser


def parse_points(text: str) -> List[Point]:
    points = []
    for token in text.split(","):
        token = token.strip()
        if not token:
            continue
        x_str, y_str = token.split(":")
        points.append(Point(float(x_str), float(y_str)))
    return points


def _check(result: CommandResult) -> None:
    if not result.ok:
        raise SystemExit(f"Error: {result.error}")


def _click_all(session: MeasurementSession, mode: Mode, text: str) -> None:
    points = parse_points(text)
    if len(points) != mode.arity:
        raise SystemExit(f"Error: {mode.value} needs {mode.arity} points, got {text!r}")
    _check(session.set_mode(mode))
    for p in points:
        _check(session.pointer_at(p.x, p.y))


def run(args: argparse.Namespace) -> MeasurementSession:
    session = MeasurementSession(unit=args.unit, show_grid=args.grid, show_edges=args.edges, mirror=args.mirror)
    try:
        frame = load_image_file(args.image)
    except CaptureUnavailable as exc:
        raise SystemExit(f"Error: {exc}")
    _check(session.freeze(frame))

    if args.calibrate:
        if args.length is None:
            raise SystemExit("Error: --calibrate requires --length")
        _click_all(session, Mode.CALIBRATE, args.calibrate)
        _check(session.supply_calibration_length(args.length))
    elif args.scale is not None:
        _check(session.set_scale(args.scale))

    for text in args.segment:
        _click_all(session, Mode.MEASURE, text)
    for text in args.angle:
        _click_all(session, Mode.ANGLE, text)
    return session


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    session = run(args)
    result = session.export_json()
    _check(result)

    if not args.no_files:
        for kind in ("png", "json", "csv"):
            saved = session.save(kind, args.output_dir)
            _check(saved)
            print(f"[Export] {saved.path}", file=sys.stderr)

    sys.stdout.write(result.data)
    sys.stdout.write("\n")


if __name__ == "__main__":
    main()
