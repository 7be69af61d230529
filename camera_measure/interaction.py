"""
Interaction mode state machine.
Turns accepted clicks into segments, angles and calibration pairs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Union

from .errors import DegenerateAngle
from .geometry import Angle, CalibrationPair, Entity, IdGenerator, Mode, Point, Segment, add_point, uuid_ids

logger = logging.getLogger(__name__)


@dataclass
class ClickOutcome:
    """Result of one click: the point taken and, on buffer-full, what it completed."""
    point: Point
    accepted: bool
    completed: Optional[Entity] = None
    error: Optional[DegenerateAngle] = None


class InteractionStateMachine:
    def __init__(self, mode: Union[Mode, str] = Mode.MEASURE, id_generator: IdGenerator = uuid_ids):
        self._mode = Mode(mode)
        self._pending: List[Point] = []
        self._new_id = id_generator

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def pending(self) -> List[Point]:
        return list(self._pending)

    def set_mode(self, mode: Union[Mode, str]) -> Mode:
        """Switch mode. Any partially built entity is discarded, even if the mode is unchanged."""
        new_mode = Mode(mode)
        if self._pending:
            logger.debug("[Interaction] Discarding %d pending point(s) from %s mode",
                         len(self._pending), self._mode.value)
        self._pending = []
        self._mode = new_mode
        logger.info("[Interaction] Mode set to %s", new_mode.value)
        return new_mode

    def clear(self) -> None:
        self._pending = []

    def click(self, point: Point) -> ClickOutcome:
        if self._mode is Mode.SELECT:
            # Reserved for entity editing
            return ClickOutcome(point=point, accepted=False)

        try:
            self._pending, completed = add_point(self._mode, self._pending, point, self._new_id)
        except DegenerateAngle as exc:
            logger.warning("[Interaction] %s", exc)
            self._pending = []
            return ClickOutcome(point=point, accepted=True, error=exc)

        if isinstance(completed, Segment):
            logger.info("[Interaction] Segment %s: %.2f px", completed.id, completed.length_px)
        elif isinstance(completed, Angle):
            logger.info("[Interaction] Angle %s: %.2f deg", completed.id, completed.degrees)
        elif isinstance(completed, CalibrationPair):
            logger.info("[Interaction] Calibration pair: %.2f px", completed.length_px)
        return ClickOutcome(point=point, accepted=True, completed=completed)
