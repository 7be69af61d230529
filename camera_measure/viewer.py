"""
Desktop viewer: live camera in an OpenCV window, freeze, click to measure.

Keys: m measure, a angle, c calibrate, s select, f freeze, r resume,
u refresh frame, g grid, e edges, k mirror, x clear, z reset,
p/j/v export PNG/JSON/CSV, q or Esc quit.
Usage:
  python -m camera_measure.viewer --device 0 --resolution 1920x1080
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, Optional

import cv2
import numpy as np

from . import config
from .capture import acquire, open_device
from .errors import CaptureUnavailable
from .export import composite
from .geometry import CalibrationPair, Mode
from .logging_config import setup_logging
from .session import CommandResult, MeasurementSession

logger = logging.getLogger(__name__)

WINDOW = "camera-measure"

MODE_KEYS = {"m": Mode.MEASURE, "a": Mode.ANGLE, "c": Mode.CALIBRATE, "s": Mode.SELECT}
EXPORT_KEYS = {"p": "png", "j": "json", "v": "csv"}
QUIT_KEYS = {ord("q"), 27}


def ask_length(session: MeasurementSession, prompt: Callable[[str], str] = input) -> CommandResult:
    """Ask for the reference length until it is valid or the user enters nothing."""
    while session.awaiting_calibration is not None:
        pair = session.awaiting_calibration
        answer = prompt(f"Real length of the reference ({pair.length_px:.1f} px) in {session.unit.value}: ")
        if not answer.strip():
            return session.cancel_calibration()
        result = session.supply_calibration_length(answer)
        if result.ok:
            return result
        print(f"Invalid value: {result.error}", file=sys.stderr)
    return CommandResult(ok=True)


def handle_key(
    session: MeasurementSession,
    key: int,
    source=None,
    output_dir: Path = config.OUTPUT_DIR,
) -> Optional[CommandResult]:
    """Dispatch one key code. Returns None for quit, otherwise the command result."""
    if key in QUIT_KEYS:
        return None
    if key < 0:
        return CommandResult(ok=True)
    char = chr(key & 0xFF).lower()

    if char in MODE_KEYS:
        return session.set_mode(MODE_KEYS[char])
    if char in EXPORT_KEYS:
        result = session.save(EXPORT_KEYS[char], output_dir)
        if result.ok:
            print(f"[Export] {result.path}", file=sys.stderr)
        return result
    if char in ("f", "u") and source is None:
        return session.capture_failed("No capture source")
    if char == "f":
        return session.freeze(source)
    if char == "r":
        return session.resume()
    if char == "u":
        return session.refresh_frame(source)
    if char == "g":
        return session.toggle_grid(not session.show_grid)
    if char == "e":
        return session.toggle_edges(not session.show_edges)
    if char == "k":
        return session.set_mirror(not session.mirror)
    if char == "x":
        return session.clear_measurements()
    if char == "z":
        return session.reset_all()
    return CommandResult(ok=True)


def make_mouse_callback(session: MeasurementSession, prompt: Callable[[str], str] = input):
    def on_mouse(event, x, y, flags, param):
        if event != cv2.EVENT_LBUTTONDOWN:
            return
        result = session.pointer_at(x, y)
        if isinstance(result.entity, CalibrationPair):
            ask_length(session, prompt)
    return on_mouse


def compose_view(session: MeasurementSession, live: Optional[np.ndarray]) -> Optional[np.ndarray]:
    if session.is_frozen or live is None:
        base = session.base
    else:
        base = cv2.flip(live, 1) if session.mirror else live
    if base is None:
        return None
    overlay = session.overlay
    if overlay is None or overlay.shape[:2] != base.shape[:2]:
        return base
    return composite(base, overlay)


def _status_line(session: MeasurementSession) -> str:
    scale = "uncalibrated" if session.scale is None else f"{session.scale:.5f} {session.unit.value}/px"
    state = "frozen" if session.is_frozen else "live"
    line = f"{session.mode.value} | {state} | {scale}"
    if session.last_error:
        line += f" | {session.last_error}"
    return line


def run_viewer(device: int, resolution, output_dir: Path) -> None:
    try:
        cap = open_device(device, resolution)
    except CaptureUnavailable as exc:
        logger.error("[Viewer] %s", exc)
        raise SystemExit(f"Error: {exc}")

    session = MeasurementSession()
    cv2.namedWindow(WINDOW, cv2.WINDOW_NORMAL)
    cv2.setMouseCallback(WINDOW, make_mouse_callback(session))
    last_status = None
    try:
        while True:
            live = None
            if not session.is_frozen:
                try:
                    live = acquire(cap).frame
                except CaptureUnavailable as exc:
                    session.capture_failed(str(exc))
            view = compose_view(session, live)
            if view is not None:
                cv2.imshow(WINDOW, view)

            status = _status_line(session)
            if status != last_status:
                cv2.setWindowTitle(WINDOW, status)
                last_status = status

            if handle_key(session, cv2.waitKey(15), cap, output_dir) is None:
                break
    finally:
        cap.release()
        cv2.destroyAllWindows()


def parse_resolution(value: str):
    w_str, h_str = value.lower().split("x")
    return int(w_str), int(h_str)


def build_parser() -> argparse.ArgumentParser:
    presets = ", ".join(f"{w}x{h}" for w, h in config.RESOLUTION_PRESETS)
    parser = argparse.ArgumentParser(description="Live camera measurement viewer.")
    parser.add_argument("--device", type=int, default=0)
    parser.add_argument("--resolution", type=parse_resolution,
                        default=config.DEFAULT_RESOLUTION, help=f"WxH, e.g. {presets}")
    parser.add_argument("--output-dir", type=Path, default=config.OUTPUT_DIR)
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    run_viewer(args.device, args.resolution, args.output_dir)


if __name__ == "__main__":
    main()
