import math

import pytest

from camera_measure.errors import DegenerateAngle, InvalidLength
from camera_measure.geometry import (
    Angle,
    CalibrationPair,
    DisplayRect,
    Mode,
    Point,
    Segment,
    Unit,
    add_point,
    angle_at_vertex,
    client_to_surface,
    distance,
    format_angle,
    format_length,
    resolve_calibration,
    sequential_ids,
    to_display_length,
)

POINTS = [Point(0, 0), Point(3, 4), Point(-7.5, 2.25), Point(1e3, -1e3), Point(0.1, 0.2)]


@pytest.mark.parametrize("p", POINTS)
@pytest.mark.parametrize("q", POINTS)
def test_distance_is_symmetric(p, q):
    assert distance(p, q) == distance(q, p)


@pytest.mark.parametrize("p", POINTS)
def test_distance_to_self_is_zero(p):
    assert distance(p, p) == 0


def test_distance_pythagorean():
    assert distance(Point(0, 0), Point(3, 4)) == pytest.approx(5.0)


@pytest.mark.parametrize(
    "a, b, c, expected",
    [
        (Point(0, 100), Point(0, 0), Point(100, 0), 90.0),
        (Point(1, 0), Point(0, 0), Point(1, 1), 45.0),
        (Point(-1, 0), Point(0, 0), Point(1, 0), 180.0),
        (Point(5, 5), Point(0, 0), Point(10, 10), 0.0),
        (Point(2, 0), Point(1, 0), Point(1.5, math.sqrt(3) / 2), 60.0),
    ],
)
def test_angle_at_vertex_known_values(a, b, c, expected):
    assert angle_at_vertex(a, b, c) == pytest.approx(expected, abs=1e-6)


def test_angle_is_symmetric_and_in_range():
    triples = [
        (Point(3, 7), Point(1, 1), Point(-4, 2)),
        (Point(0, 1), Point(0, 0), Point(0, 1e-9)),
        (Point(1e6, 1), Point(0, 0), Point(-1e6, -1)),
    ]
    for a, b, c in triples:
        value = angle_at_vertex(a, b, c)
        assert value == pytest.approx(angle_at_vertex(c, b, a))
        assert 0.0 <= value <= 180.0


def test_collinear_points_do_not_leave_acos_domain():
    # cosine can overshoot 1.0 in floating point for nearly identical directions
    value = angle_at_vertex(Point(0.1, 0.3), Point(0, 0), Point(0.2, 0.6))
    assert value == pytest.approx(0.0, abs=1e-5)


@pytest.mark.parametrize(
    "a, b, c",
    [
        (Point(0, 0), Point(0, 0), Point(1, 1)),
        (Point(1, 1), Point(0, 0), Point(0, 0)),
    ],
)
def test_degenerate_angle_raises(a, b, c):
    with pytest.raises(DegenerateAngle):
        angle_at_vertex(a, b, c)


def test_resolve_calibration_scenario():
    scale = resolve_calibration(Point(0, 0), Point(0, 100), 50)
    assert scale == pytest.approx(0.5)
    assert to_display_length(100.0, scale) == pytest.approx(50.0)


def test_calibration_round_trip():
    a, b = Point(12.5, 40), Point(310.25, 97.5)
    d = distance(a, b)
    scale = resolve_calibration(a, b, 85.6)
    assert to_display_length(d, scale) == pytest.approx(85.6)


def test_resolve_calibration_accepts_numeric_strings():
    assert resolve_calibration(Point(0, 0), Point(10, 0), "2.5") == pytest.approx(0.25)


@pytest.mark.parametrize("bad", [0, -1, "abc", "", None, float("nan"), float("inf"), True])
def test_resolve_calibration_rejects_invalid_length(bad):
    with pytest.raises(InvalidLength):
        resolve_calibration(Point(0, 0), Point(0, 100), bad)


def test_resolve_calibration_rejects_coincident_points():
    with pytest.raises(InvalidLength):
        resolve_calibration(Point(5, 5), Point(5, 5), 10)


def test_to_display_length_without_scale_is_none():
    assert to_display_length(123.0, None) is None


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, "–"),
        (0.5, "0.500 mm"),
        (9.9994, "9.999 mm"),
        (10.0, "10.00 mm"),
        (123.456, "123.46 mm"),
    ],
)
def test_format_length(value, expected):
    assert format_length(value, Unit.MM) == expected


def test_format_angle():
    assert format_angle(90.04) == "90.0°"
    assert format_angle(45.06, suffix=" deg") == "45.1 deg"


def test_unit_parse():
    assert Unit.parse("inch") is Unit.IN
    assert Unit.parse("CM") is Unit.CM
    with pytest.raises(ValueError):
        Unit.parse("furlong")


def test_mode_arity():
    assert Mode.MEASURE.arity == 2
    assert Mode.CALIBRATE.arity == 2
    assert Mode.ANGLE.arity == 3
    assert Mode.SELECT.arity == 0


def test_add_point_builds_segment_on_second_click():
    ids = sequential_ids()
    pending, done = add_point(Mode.MEASURE, [], Point(0, 0), ids)
    assert pending == [Point(0, 0)] and done is None
    pending, done = add_point(Mode.MEASURE, pending, Point(0, 10), ids)
    assert pending == []
    assert done == Segment(Point(0, 0), Point(0, 10), "seg-1")


def test_add_point_calibrate_returns_raw_pair():
    pending, done = add_point(Mode.CALIBRATE, [Point(1, 1)], Point(4, 5))
    assert pending == []
    assert done == CalibrationPair(Point(1, 1), Point(4, 5))
    assert done.length_px == pytest.approx(5.0)


def test_add_point_angle_needs_three_clicks():
    ids = sequential_ids(7)
    pending, done = add_point(Mode.ANGLE, [Point(0, 1), Point(0, 0)], Point(1, 0), ids)
    assert pending == []
    assert isinstance(done, Angle) and done.id == "ang-7"
    assert done.degrees == pytest.approx(90.0)


def test_add_point_select_does_not_accumulate():
    pending, done = add_point(Mode.SELECT, [], Point(3, 3))
    assert pending == [] and done is None


def test_add_point_degenerate_angle_raises():
    with pytest.raises(DegenerateAngle):
        add_point(Mode.ANGLE, [Point(0, 0), Point(0, 0)], Point(1, 1))


def test_client_to_surface_scales_displayed_position():
    rect = DisplayRect(left=10, top=20, width=320, height=240)
    p = client_to_surface(170, 140, rect, (640, 480))
    assert p == Point(320.0, 240.0)


def test_client_to_surface_rejects_empty_rect():
    with pytest.raises(ValueError):
        client_to_surface(0, 0, DisplayRect(0, 0, 0, 10), (640, 480))


def test_sequential_ids_share_one_counter():
    ids = sequential_ids()
    assert [ids("seg"), ids("ang"), ids("seg")] == ["seg-1", "ang-2", "seg-3"]
