"""
Annotation overlay renderer.

The overlay is a transparent BGRA image at the frame's native resolution.
Every call clears it and draws everything again: grid, segments, angles,
then pending points. Nothing is drawn incrementally.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from . import config
from .geometry import Angle, Mode, Point, Segment, Unit, format_angle, format_length, to_display_length

FONT = cv2.FONT_HERSHEY_SIMPLEX

PENDING_COLORS = {
    Mode.CALIBRATE: config.CALIBRATE_COLOR,
    Mode.ANGLE: config.ANGLE_COLOR,
    Mode.MEASURE: config.SEGMENT_COLOR,
    Mode.SELECT: config.SEGMENT_COLOR,
}


def new_overlay(width: int, height: int) -> np.ndarray:
    return np.zeros((height, width, 4), dtype=np.uint8)


def _bgra(color: Tuple[int, int, int], alpha: int = 255) -> Tuple[int, int, int, int]:
    return (int(color[0]), int(color[1]), int(color[2]), int(alpha))


def _draw_marker(overlay: np.ndarray, p: Point, color: Tuple[int, int, int]) -> None:
    cv2.circle(overlay, p.as_int(), config.MARKER_RADIUS, _bgra(color), -1, cv2.LINE_AA)


def _draw_label(overlay: np.ndarray, text: str, anchor: Point, color: Tuple[int, int, int]) -> None:
    dx, dy = config.LABEL_OFFSET
    org = (int(round(anchor.x + dx)), int(round(anchor.y + dy)))
    # white halo first so the label reads on any background
    cv2.putText(overlay, text, org, FONT, config.FONT_SCALE, _bgra(config.LABEL_OUTLINE_COLOR),
                config.LABEL_OUTLINE, cv2.LINE_AA)
    cv2.putText(overlay, text, org, FONT, config.FONT_SCALE, _bgra(color),
                config.FONT_THICKNESS, cv2.LINE_AA)


def draw_grid(overlay: np.ndarray, step: int = config.GRID_STEP) -> None:
    h, w = overlay.shape[:2]
    color = _bgra(config.GRID_COLOR, round(255 * config.GRID_ALPHA))
    for x in range(0, w + 1, step):
        cv2.line(overlay, (x, 0), (x, h), color, 1)
    for y in range(0, h + 1, step):
        cv2.line(overlay, (0, y), (w, y), color, 1)


def draw_segment(overlay: np.ndarray, segment: Segment, scale: Optional[float], unit: Unit) -> None:
    color = _bgra(config.SEGMENT_COLOR)
    cv2.line(overlay, segment.a.as_int(), segment.b.as_int(), color, config.LINE_WIDTH, cv2.LINE_AA)
    for p in (segment.a, segment.b):
        _draw_marker(overlay, p, config.SEGMENT_COLOR)
    label = format_length(to_display_length(segment.length_px, scale), unit, placeholder="--")
    _draw_label(overlay, label, segment.midpoint, config.SEGMENT_LABEL_COLOR)


def draw_angle(overlay: np.ndarray, angle: Angle) -> None:
    color = _bgra(config.ANGLE_COLOR)
    vertex = angle.b.as_int()
    cv2.line(overlay, vertex, angle.a.as_int(), color, config.LINE_WIDTH, cv2.LINE_AA)
    cv2.line(overlay, vertex, angle.c.as_int(), color, config.LINE_WIDTH, cv2.LINE_AA)
    for p in (angle.a, angle.b, angle.c):
        _draw_marker(overlay, p, config.ANGLE_COLOR)
    # Hershey fonts have no degree glyph
    _draw_label(overlay, format_angle(angle.degrees, suffix=" deg"), angle.b, config.ANGLE_LABEL_COLOR)


def render_overlay(
    overlay: np.ndarray,
    segments: Sequence[Segment],
    angles: Sequence[Angle],
    pending: Sequence[Point],
    mode: Mode,
    scale: Optional[float],
    unit: Unit,
    show_grid: bool = True,
    grid_step: int = config.GRID_STEP,
) -> np.ndarray:
    """Clear `overlay` and redraw all annotations onto it. Returns the same array."""
    overlay[...] = 0

    if show_grid:
        draw_grid(overlay, grid_step)
    for segment in segments:
        draw_segment(overlay, segment, scale, unit)
    for angle in angles:
        draw_angle(overlay, angle)

    pending_color = PENDING_COLORS[Mode(mode)]
    for p in pending:
        _draw_marker(overlay, p, pending_color)
    return overlay
