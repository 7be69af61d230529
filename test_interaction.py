import pytest

from camera_measure.errors import DegenerateAngle
from camera_measure.geometry import Angle, CalibrationPair, Mode, Point, Segment, sequential_ids
from camera_measure.interaction import InteractionStateMachine


@pytest.fixture
def machine():
    return InteractionStateMachine(Mode.MEASURE, sequential_ids())


def test_default_mode_is_measure():
    assert InteractionStateMachine().mode is Mode.MEASURE


def test_segment_is_emitted_once_on_buffer_full(machine):
    first = machine.click(Point(0, 0))
    assert first.accepted and first.completed is None
    assert machine.pending == [Point(0, 0)]

    second = machine.click(Point(30, 40))
    assert isinstance(second.completed, Segment)
    assert second.completed.length_px == pytest.approx(50.0)
    assert machine.pending == []

    third = machine.click(Point(1, 1))
    assert third.completed is None
    assert machine.pending == [Point(1, 1)]


def test_mode_switch_discards_partial_points(machine):
    machine.click(Point(999, 999))
    assert len(machine.pending) == 1

    machine.set_mode(Mode.ANGLE)
    assert machine.pending == []

    outcomes = [machine.click(p) for p in (Point(0, 10), Point(0, 0), Point(10, 0))]
    angle = outcomes[-1].completed
    assert isinstance(angle, Angle)
    assert (angle.a, angle.b, angle.c) == (Point(0, 10), Point(0, 0), Point(10, 0))
    assert all(o.completed is None for o in outcomes[:2])


def test_setting_same_mode_still_clears(machine):
    machine.click(Point(1, 2))
    machine.set_mode(Mode.MEASURE)
    assert machine.pending == []


def test_select_mode_is_pass_through(machine):
    machine.set_mode("select")
    outcome = machine.click(Point(5, 5))
    assert not outcome.accepted
    assert outcome.completed is None
    assert machine.pending == []


def test_calibrate_mode_emits_pair(machine):
    machine.set_mode(Mode.CALIBRATE)
    machine.click(Point(0, 0))
    outcome = machine.click(Point(0, 100))
    assert outcome.completed == CalibrationPair(Point(0, 0), Point(0, 100))


def test_degenerate_angle_clears_buffer(machine):
    machine.set_mode(Mode.ANGLE)
    machine.click(Point(0, 0))
    machine.click(Point(0, 0))
    outcome = machine.click(Point(1, 1))
    assert isinstance(outcome.error, DegenerateAngle)
    assert outcome.completed is None
    assert machine.pending == []


def test_unknown_mode_is_rejected(machine):
    with pytest.raises(ValueError):
        machine.set_mode("zoom")
    assert machine.mode is Mode.MEASURE
