"""
Measurement session.

One MeasurementSession owns everything a user works on: the mode machine,
the committed segments and angles, the calibration, the frozen base frame and
the annotation overlay. UI layers talk to it only through the command methods
below. Each command returns a CommandResult; core errors are reported there
and in `last_error`, never raised to the caller.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import cv2
import numpy as np

from . import config
from .capture import CaptureResult, acquire
from .edges import apply_edge_filter
from .errors import CaptureUnavailable, ExportFailure, FrameNotFrozen, InvalidLength, MeasureError
from .export import Clock, encode_png, composite, save_export, to_csv, to_json, to_json_payload, utc_now
from .geometry import (
    Angle,
    CalibrationPair,
    DisplayRect,
    Entity,
    IdGenerator,
    Mode,
    Point,
    Segment,
    Unit,
    client_to_surface,
    parse_length,
    resolve_calibration,
    uuid_ids,
)
from .interaction import InteractionStateMachine
from .render import new_overlay, render_overlay

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    ok: bool = True
    changed: bool = False
    error: Optional[str] = None
    entity: Optional[Entity] = None
    data: Optional[Union[bytes, str]] = None
    path: Optional[Path] = None


class MeasurementSession:
    def __init__(
        self,
        unit: Union[Unit, str] = config.DEFAULT_UNIT,
        mode: Union[Mode, str] = Mode.MEASURE,
        show_grid: bool = True,
        show_edges: bool = False,
        mirror: bool = False,
        id_generator: IdGenerator = uuid_ids,
        clock: Clock = utc_now,
        grid_step: int = config.GRID_STEP,
    ):
        self._machine = InteractionStateMachine(mode, id_generator)
        self._segments: List[Segment] = []
        self._angles: List[Angle] = []
        self._scale: Optional[float] = None
        self._unit = Unit.parse(unit)
        self._awaiting: Optional[CalibrationPair] = None

        self._frozen = False
        self._base: Optional[np.ndarray] = None
        self._overlay: Optional[np.ndarray] = None

        self.show_grid = show_grid
        self.show_edges = show_edges
        self.mirror = mirror
        self.grid_step = grid_step
        self._clock = clock
        self.last_error: Optional[str] = None

    # ------------------------------------------------------------------ queries

    @property
    def mode(self) -> Mode:
        return self._machine.mode

    @property
    def pending(self) -> List[Point]:
        return self._machine.pending

    @property
    def segments(self) -> List[Segment]:
        return list(self._segments)

    @property
    def angles(self) -> List[Angle]:
        return list(self._angles)

    @property
    def scale(self) -> Optional[float]:
        return self._scale

    @property
    def unit(self) -> Unit:
        return self._unit

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def awaiting_calibration(self) -> Optional[CalibrationPair]:
        return self._awaiting

    @property
    def base(self) -> Optional[np.ndarray]:
        return self._base

    @property
    def overlay(self) -> Optional[np.ndarray]:
        return self._overlay

    @property
    def size(self) -> Optional[tuple]:
        """(width, height) of the surfaces, or None before the first frame."""
        if self._base is None:
            return None
        h, w = self._base.shape[:2]
        return w, h

    def state(self) -> Dict[str, Any]:
        size = self.size
        pair = self._awaiting
        return {
            "mode": self.mode.value,
            "pending": [p.to_dict() for p in self.pending],
            "segments": [
                {"id": s.id, "a": s.a.to_dict(), "b": s.b.to_dict(), "length_px": s.length_px,
                 "length_unit": None if self._scale is None else s.length_px * self._scale}
                for s in self._segments
            ],
            "angles": [
                {"id": a.id, "a": a.a.to_dict(), "b": a.b.to_dict(), "c": a.c.to_dict(),
                 "angle_deg": a.degrees}
                for a in self._angles
            ],
            "unit": self._unit.value,
            "scale": self._scale,
            "frozen": self._frozen,
            "grid": self.show_grid,
            "edges": self.show_edges,
            "mirror": self.mirror,
            "awaiting_calibration": None if pair is None else {
                "a": pair.a.to_dict(), "b": pair.b.to_dict(), "length_px": pair.length_px,
            },
            "width": None if size is None else size[0],
            "height": None if size is None else size[1],
            "last_error": self.last_error,
        }

    # ------------------------------------------------------------------ helpers

    def _ok(self, changed: bool = True, **kwargs) -> CommandResult:
        self.last_error = None
        if changed:
            self._redraw()
        return CommandResult(ok=True, changed=changed, **kwargs)

    def _fail(self, exc: Exception, changed: bool = False) -> CommandResult:
        self.last_error = str(exc)
        logger.warning("[Session] %s: %s", type(exc).__name__, exc)
        if changed:
            self._redraw()
        return CommandResult(ok=False, changed=changed, error=self.last_error)

    def _redraw(self) -> None:
        if self._overlay is None:
            return
        render_overlay(
            self._overlay,
            self._segments,
            self._angles,
            self._machine.pending,
            self.mode,
            self._scale,
            self._unit,
            show_grid=self.show_grid,
            grid_step=self.grid_step,
        )

    def _take_frame(self, source) -> None:
        capture = source if isinstance(source, CaptureResult) else acquire(source)
        frame = capture.frame.copy()
        if self.mirror:
            frame = cv2.flip(frame, 1)
        if self.show_edges:
            apply_edge_filter(frame)
        self._base = frame
        if self._overlay is None or self._overlay.shape[:2] != frame.shape[:2]:
            self._overlay = new_overlay(capture.width, capture.height)
        logger.info("[Session] Base frame %dx%d (mirror=%s, edges=%s)",
                    capture.width, capture.height, self.mirror, self.show_edges)

    # ------------------------------------------------------------------ frame commands

    def freeze(self, source) -> CommandResult:
        """Snapshot one frame from `source` (CaptureResult or VideoCapture-like) and freeze it."""
        try:
            self._take_frame(source)
        except MeasureError as exc:
            return self._fail(exc)
        self._frozen = True
        return self._ok()

    def resume(self) -> CommandResult:
        self._frozen = False
        return self._ok(changed=False)

    def refresh_frame(self, source) -> CommandResult:
        """Replace the base frame without changing the frozen state or the entities."""
        try:
            self._take_frame(source)
        except MeasureError as exc:
            return self._fail(exc)
        return self._ok()

    def capture_failed(self, reason: str) -> CommandResult:
        """Report an acquisition failure that happened outside the session."""
        return self._fail(CaptureUnavailable(reason))

    # ------------------------------------------------------------------ interaction commands

    def set_mode(self, mode: Union[Mode, str]) -> CommandResult:
        try:
            self._machine.set_mode(mode)
        except ValueError as exc:
            return self._fail(exc)
        self._awaiting = None
        return self._ok()

    def pointer_at(self, x: float, y: float) -> CommandResult:
        if not self._frozen:
            return self._fail(FrameNotFrozen("Freeze the frame before marking points"))
        x, y = float(x), float(y)
        if not (math.isfinite(x) and math.isfinite(y)):
            return self._fail(ValueError(f"Pointer position must be finite, got ({x}, {y})"))
        outcome = self._machine.click(Point(x, y))
        if not outcome.accepted:
            return self._ok(changed=False)
        if outcome.error is not None:
            return self._fail(outcome.error, changed=True)

        completed = outcome.completed
        if isinstance(completed, Segment):
            self._segments.append(completed)
        elif isinstance(completed, Angle):
            self._angles.append(completed)
        elif isinstance(completed, CalibrationPair):
            self._awaiting = completed
        return self._ok(entity=completed)

    def pointer_at_client(self, client_x: float, client_y: float, rect: DisplayRect) -> CommandResult:
        """Pointer position in client space; mapped to surface pixels first."""
        size = self.size
        if size is None:
            return self._fail(FrameNotFrozen("No frame captured yet"))
        try:
            point = client_to_surface(client_x, client_y, rect, size)
        except ValueError as exc:
            return self._fail(exc)
        return self.pointer_at(point.x, point.y)

    def delete_entity(self, entity_id: str) -> CommandResult:
        before = len(self._segments) + len(self._angles)
        self._segments = [s for s in self._segments if s.id != entity_id]
        self._angles = [a for a in self._angles if a.id != entity_id]
        if len(self._segments) + len(self._angles) == before:
            return self._fail(LookupError(f"No measurement with id {entity_id!r}"))
        logger.info("[Session] Deleted %s", entity_id)
        return self._ok()

    def clear_measurements(self) -> CommandResult:
        self._segments = []
        self._angles = []
        self._machine.clear()
        self._awaiting = None
        return self._ok()

    def reset_all(self) -> CommandResult:
        """Clear measurements and drop the calibration scale."""
        self.clear_measurements()
        self._scale = None
        logger.info("[Session] Reset")
        return self._ok()

    # ------------------------------------------------------------------ calibration commands

    def supply_calibration_length(self, real_length) -> CommandResult:
        pair = self._awaiting
        if pair is None:
            return self._fail(InvalidLength("No calibration reference has been marked"))
        try:
            scale = resolve_calibration(pair.a, pair.b, real_length)
        except InvalidLength as exc:
            # keep the pair so the user can be asked again
            return self._fail(exc)
        self._scale = scale
        self._awaiting = None
        logger.info("[Calibration] %.3f %s over %.2f px -> %.6f %s/px",
                    float(real_length), self._unit.value, pair.length_px, scale, self._unit.value)
        return self._ok()

    def cancel_calibration(self) -> CommandResult:
        self._awaiting = None
        return self._ok(changed=False)

    def set_scale(self, value) -> CommandResult:
        """Override the unit-per-pixel scale directly; None removes it."""
        if value is None or (isinstance(value, str) and not value.strip()):
            self._scale = None
        else:
            try:
                self._scale = parse_length(value)
            except InvalidLength as exc:
                return self._fail(exc)
        logger.info("[Calibration] Scale set to %s", self._scale)
        return self._ok()

    def set_unit(self, unit: Union[Unit, str]) -> CommandResult:
        try:
            self._unit = Unit.parse(unit)
        except ValueError as exc:
            return self._fail(exc)
        return self._ok()

    # ------------------------------------------------------------------ display toggles

    def toggle_grid(self, enabled: bool) -> CommandResult:
        self.show_grid = bool(enabled)
        return self._ok()

    def toggle_edges(self, enabled: bool) -> CommandResult:
        """Takes effect on the next freeze or refresh."""
        self.show_edges = bool(enabled)
        return self._ok(changed=False)

    def set_mirror(self, enabled: bool) -> CommandResult:
        """Takes effect on the next freeze or refresh."""
        self.mirror = bool(enabled)
        return self._ok(changed=False)

    # ------------------------------------------------------------------ exports

    def json_payload(self) -> Dict[str, Any]:
        size = self.size or (None, None)
        return to_json_payload(self._segments, self._angles, self._scale, self._unit,
                               size[0], size[1], clock=self._clock)

    def export_png(self) -> CommandResult:
        if self._base is None or self._overlay is None:
            return self._fail(ExportFailure("No frame captured yet"))
        try:
            data = encode_png(composite(self._base, self._overlay))
        except ExportFailure as exc:
            return self._fail(exc)
        return self._ok(changed=False, data=data)

    def export_json(self) -> CommandResult:
        try:
            data = to_json(self.json_payload())
        except ExportFailure as exc:
            return self._fail(exc)
        return self._ok(changed=False, data=data)

    def export_csv(self) -> CommandResult:
        return self._ok(changed=False, data=to_csv(self._segments, self._angles, self._scale, self._unit))

    def save(self, kind: str, directory: Union[str, Path] = config.OUTPUT_DIR) -> CommandResult:
        """Run the export for `kind` (png, json or csv) and write it into `directory`."""
        exporters = {"png": self.export_png, "json": self.export_json, "csv": self.export_csv}
        if kind not in exporters:
            return self._fail(ExportFailure(f"Unknown export kind {kind!r}"))
        result = exporters[kind]()
        if not result.ok:
            return result
        try:
            result.path = save_export(directory, kind, result.data)
        except ExportFailure as exc:
            return self._fail(exc)
        return result
