"""
Geometric data model and calibration math.

All coordinates are surface-space pixels: the native resolution of the
frozen frame, not the size the frame happens to be displayed at. Use
`client_to_surface` on raw pointer positions before building points.
"""

from __future__ import annotations

import itertools
import math
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .errors import DegenerateAngle, InvalidLength

IdGenerator = Callable[[str], str]


class Unit(str, Enum):
    MM = "mm"
    CM = "cm"
    IN = "in"

    @classmethod
    def parse(cls, value: Union[str, "Unit"]) -> "Unit":
        if isinstance(value, Unit):
            return value
        key = str(value).strip().lower()
        if key == "inch":
            key = "in"
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unsupported unit {value!r}; expected one of mm, cm, in") from None


class Mode(str, Enum):
    SELECT = "select"
    MEASURE = "measure"
    CALIBRATE = "calibrate"
    ANGLE = "angle"

    @property
    def arity(self) -> int:
        """Number of clicks that complete an entity in this mode (0 = never)."""
        return _ARITY[self]


_ARITY = {Mode.SELECT: 0, Mode.MEASURE: 2, Mode.CALIBRATE: 2, Mode.ANGLE: 3}


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": float(self.x), "y": float(self.y)}

    def as_int(self) -> Tuple[int, int]:
        return int(round(self.x)), int(round(self.y))


@dataclass(frozen=True)
class Segment:
    a: Point
    b: Point
    id: str

    @property
    def length_px(self) -> float:
        return distance(self.a, self.b)

    @property
    def midpoint(self) -> Point:
        return Point((self.a.x + self.b.x) / 2.0, (self.a.y + self.b.y) / 2.0)


@dataclass(frozen=True)
class Angle:
    a: Point
    b: Point
    c: Point
    id: str

    @property
    def degrees(self) -> float:
        return angle_at_vertex(self.a, self.b, self.c)


@dataclass(frozen=True)
class CalibrationPair:
    """Two reference points waiting for a real-world length."""
    a: Point
    b: Point

    @property
    def length_px(self) -> float:
        return distance(self.a, self.b)


Entity = Union[Segment, Angle, CalibrationPair]


@dataclass(frozen=True)
class DisplayRect:
    """On-screen box the surface is shown in (client coordinates)."""
    left: float
    top: float
    width: float
    height: float


def sequential_ids(start: int = 1) -> IdGenerator:
    """Deterministic ids: seg-1, ang-2, ... (one counter shared by all kinds)."""
    counter: Iterator[int] = itertools.count(start)

    def _next(kind: str) -> str:
        return f"{kind}-{next(counter)}"

    return _next


def uuid_ids(kind: str) -> str:
    return uuid.uuid4().hex


def distance(p: Point, q: Point) -> float:
    return math.hypot(p.x - q.x, p.y - q.y)


def angle_at_vertex(a: Point, b: Point, c: Point) -> float:
    """
    Angle ABC in degrees, in [0, 180].
    The cosine is clamped so collinear points cannot push acos out of its domain.
    """
    abx, aby = a.x - b.x, a.y - b.y
    cbx, cby = c.x - b.x, c.y - b.y
    la = math.hypot(abx, aby)
    lc = math.hypot(cbx, cby)
    if la == 0.0 or lc == 0.0:
        raise DegenerateAngle(
            f"Angle vertex ({b.x:.2f}, {b.y:.2f}) coincides with an end point"
        )
    cos = (abx * cbx + aby * cby) / (la * lc)
    cos = max(-1.0, min(1.0, cos))
    return math.degrees(math.acos(cos))


def parse_length(value) -> float:
    """Parse a user supplied length; raises InvalidLength unless finite and > 0."""
    if isinstance(value, bool) or value is None:
        raise InvalidLength(f"Invalid length: {value!r}")
    try:
        length = float(value)
    except (TypeError, ValueError):
        raise InvalidLength(f"Invalid length: {value!r}") from None
    if not math.isfinite(length) or length <= 0:
        raise InvalidLength(f"Length must be a positive number, got {value!r}")
    return length


def resolve_calibration(a: Point, b: Point, real_length) -> float:
    """Return unit-per-pixel scale so that the pixel distance a-b equals real_length."""
    length = parse_length(real_length)
    pixels = distance(a, b)
    if pixels == 0.0:
        raise InvalidLength("Calibration points coincide; pick two distinct points")
    return length / pixels


def to_display_length(pixel_length: float, scale: Optional[float]) -> Optional[float]:
    if scale is None:
        return None
    return pixel_length * scale


def format_length(value: Optional[float], unit: Union[Unit, str], placeholder: str = "–") -> str:
    if value is None:
        return placeholder
    # 3 decimals for small values, 2 from 10 upwards
    decimals = 3 if value < 10 else 2
    return f"{value:.{decimals}f} {Unit.parse(unit).value}"


def format_angle(degrees: float, suffix: str = "°") -> str:
    return f"{degrees:.1f}{suffix}"


def add_point(
    mode: Mode,
    pending: Sequence[Point],
    point: Point,
    new_id: IdGenerator = uuid_ids,
) -> Tuple[List[Point], Optional[Entity]]:
    """
    Append a click to the pending buffer of `mode`.

    Returns the new buffer and, once the mode's arity is reached, the completed
    entity (Segment, Angle, or CalibrationPair for calibrate mode) with the
    buffer emptied. Select mode leaves the buffer untouched. A degenerate angle
    raises DegenerateAngle; callers drop the buffer in that case.
    """
    mode = Mode(mode)
    if mode.arity == 0:
        return list(pending), None

    pts = list(pending) + [point]
    if len(pts) < mode.arity:
        return pts, None

    if mode is Mode.MEASURE:
        return [], Segment(pts[0], pts[1], new_id("seg"))
    if mode is Mode.CALIBRATE:
        return [], CalibrationPair(pts[0], pts[1])
    angle_at_vertex(pts[0], pts[1], pts[2])
    return [], Angle(pts[0], pts[1], pts[2], new_id("ang"))


def client_to_surface(
    client_x: float,
    client_y: float,
    rect: DisplayRect,
    surface_size: Tuple[int, int],
) -> Point:
    """Map a pointer position in displayed (client) space to surface pixels; surface_size is (width, height)."""
    if rect.width <= 0 or rect.height <= 0:
        raise ValueError("Display rect must have a positive size")
    width, height = surface_size
    fx = (client_x - rect.left) / rect.width
    fy = (client_y - rect.top) / rect.height
    return Point(fx * width, fy * height)
