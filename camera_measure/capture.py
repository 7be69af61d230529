"""
Capture boundary.

The core never drives a camera itself. It asks for one frame and gets back a
CaptureResult or a CaptureUnavailable error; there is no retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from . import config
from .errors import CaptureUnavailable

logger = logging.getLogger(__name__)


@dataclass
class CaptureResult:
    frame: np.ndarray
    width: int
    height: int

    @classmethod
    def from_frame(cls, frame: np.ndarray) -> "CaptureResult":
        if frame is None or frame.ndim not in (2, 3) or frame.size == 0:
            raise CaptureUnavailable("Capture returned an empty frame")
        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        elif frame.shape[2] == 4:
            frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)
        h, w = frame.shape[:2]
        return cls(frame=np.ascontiguousarray(frame), width=w, height=h)


def acquire(source) -> CaptureResult:
    """Read a single frame from anything with the VideoCapture `read()` protocol."""
    try:
        ok, frame = source.read()
    except cv2.error as exc:
        raise CaptureUnavailable(f"Capture read failed: {exc}") from exc
    if not ok or frame is None:
        raise CaptureUnavailable("Capture device did not deliver a frame")
    result = CaptureResult.from_frame(frame)
    logger.debug("[Capture] Frame %dx%d", result.width, result.height)
    return result


def open_device(index: int = 0, resolution: Optional[Tuple[int, int]] = config.DEFAULT_RESOLUTION) -> cv2.VideoCapture:
    """Open a camera. `resolution` is a suggestion; the driver may pick another size."""
    cap = cv2.VideoCapture(index)
    if not cap.isOpened():
        cap.release()
        raise CaptureUnavailable(f"Unable to open camera {index}")
    if resolution:
        width, height = resolution
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    logger.info("[Capture] Opened camera %d (%sx%s)", index,
                int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)), int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)))
    return cap


def decode_image_bytes(data: bytes) -> CaptureResult:
    arr = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(arr, cv2.IMREAD_COLOR) if arr.size else None
    if img is None:
        raise CaptureUnavailable("Failed to decode image buffer")
    return CaptureResult.from_frame(img)


def load_image_file(path: Union[str, Path]) -> CaptureResult:
    img = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if img is None:
        raise CaptureUnavailable(f"Could not load image from {path}")
    return CaptureResult.from_frame(img)


class StaticSource:
    """VideoCapture look-alike that always returns a copy of one frame."""

    def __init__(self, frame: np.ndarray):
        self.frame = frame

    def read(self):
        return True, self.frame.copy()
