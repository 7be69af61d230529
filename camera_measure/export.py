"""
Export serializers: composite PNG, JSON and CSV.

Everything here is a pure function of the entities, the calibration and the
two surfaces. Only `save_export` touches the filesystem.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

import cv2
import numpy as np

from .errors import ExportFailure
from .geometry import Angle, Segment, Unit, to_display_length

logger = logging.getLogger(__name__)

SEGMENT_HEADER = ["type", "x1", "y1", "x2", "y2", "length_px", "length_unit", "unit"]
ANGLE_HEADER = ["type", "ax", "ay", "bx", "by", "cx", "cy", "angle_deg", "-"]

FILE_PATTERNS = {
    "png": "snapshot_{stamp}.png",
    "json": "measurements_{stamp}.json",
    "csv": "measurements_{stamp}.csv",
}

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def composite(base: np.ndarray, overlay: np.ndarray) -> np.ndarray:
    """Base frame with the BGRA overlay alpha-blended on top, at native size."""
    if base.shape[:2] != overlay.shape[:2]:
        raise ExportFailure(
            f"Surface size mismatch: base {base.shape[1]}x{base.shape[0]}, "
            f"overlay {overlay.shape[1]}x{overlay.shape[0]}"
        )
    base_bgr = base[..., :3].astype(np.float32)
    alpha = overlay[..., 3:4].astype(np.float32) / 255.0
    blended = overlay[..., :3].astype(np.float32) * alpha + base_bgr * (1.0 - alpha)
    return np.clip(np.rint(blended), 0, 255).astype(np.uint8)


def encode_png(image: np.ndarray) -> bytes:
    success, buf = cv2.imencode(".png", image)
    if not success:
        raise ExportFailure("Failed to encode PNG.")
    return buf.tobytes()


def segment_record(segment: Segment, scale: Optional[float]) -> Dict:
    length_px = segment.length_px
    return {
        "id": segment.id,
        "a": segment.a.to_dict(),
        "b": segment.b.to_dict(),
        "length_px": length_px,
        "length_unit": to_display_length(length_px, scale),
    }


def angle_record(angle: Angle) -> Dict:
    return {
        "id": angle.id,
        "a": angle.a.to_dict(),
        "b": angle.b.to_dict(),
        "c": angle.c.to_dict(),
        "angle_deg": angle.degrees,
    }


def to_json_payload(
    segments: Sequence[Segment],
    angles: Sequence[Angle],
    scale: Optional[float],
    unit: Union[Unit, str],
    width: Optional[int],
    height: Optional[int],
    clock: Clock = utc_now,
) -> Dict:
    return {
        "unit": Unit.parse(unit).value,
        "scale": scale,
        "segments": [segment_record(s, scale) for s in segments],
        "angles": [angle_record(a) for a in angles],
        "width": None if width is None else int(width),
        "height": None if height is None else int(height),
        "timestamp": _iso(clock()),
    }


def to_json(payload: Dict) -> str:
    try:
        return json.dumps(payload, indent=2, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise ExportFailure(f"JSON serialization failed: {exc}") from exc


def csv_rows(segments: Sequence[Segment], angles: Sequence[Angle], scale: Optional[float],
             unit: Union[Unit, str]) -> List[List[str]]:
    unit_label = Unit.parse(unit).value
    rows: List[List[str]] = [list(SEGMENT_HEADER)]
    for s in segments:
        length_px = s.length_px
        length_unit = to_display_length(length_px, scale)
        rows.append([
            "segment",
            f"{s.a.x:.2f}", f"{s.a.y:.2f}", f"{s.b.x:.2f}", f"{s.b.y:.2f}",
            f"{length_px:.3f}",
            "" if length_unit is None else f"{length_unit:.3f}",
            unit_label,
        ])
    rows.append(list(ANGLE_HEADER))
    for a in angles:
        rows.append([
            "angle",
            f"{a.a.x:.2f}", f"{a.a.y:.2f}", f"{a.b.x:.2f}", f"{a.b.y:.2f}", f"{a.c.x:.2f}", f"{a.c.y:.2f}",
            f"{a.degrees:.2f}",
            "-",
        ])
    return rows


def to_csv(segments: Sequence[Segment], angles: Sequence[Angle], scale: Optional[float],
           unit: Union[Unit, str]) -> str:
    """Segment block then angle block, each under its own header line."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerows(csv_rows(segments, angles, scale, unit))
    return buf.getvalue()


def save_export(directory: Union[str, Path], kind: str, data: Union[bytes, str],
                stamp: Optional[int] = None) -> Path:
    """Write an export under `directory` and return its path."""
    if kind not in FILE_PATTERNS:
        raise ExportFailure(f"Unknown export kind {kind!r}")
    stamp = int(time.time() * 1000) if stamp is None else stamp
    path = Path(directory) / FILE_PATTERNS[kind].format(stamp=stamp)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, bytes):
            path.write_bytes(data)
        else:
            path.write_text(data, encoding="utf-8")
    except OSError as exc:
        raise ExportFailure(f"Could not save {path}: {exc}") from exc
    logger.info("[Export] Wrote %s", path)
    return path
