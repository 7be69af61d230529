import cv2
import numpy as np
import pytest

from camera_measure.capture import CaptureResult, StaticSource
from camera_measure.geometry import Mode
from camera_measure.session import MeasurementSession
from camera_measure.viewer import ask_length, compose_view, handle_key, make_mouse_callback, parse_resolution


@pytest.fixture
def session():
    s = MeasurementSession()
    s.freeze(CaptureResult.from_frame(np.full((60, 80, 3), 40, dtype=np.uint8)))
    return s


def test_quit_keys(session):
    assert handle_key(session, ord("q")) is None
    assert handle_key(session, 27) is None


def test_no_key_is_noop(session):
    assert handle_key(session, -1).ok


@pytest.mark.parametrize("key, mode", [("m", Mode.MEASURE), ("a", Mode.ANGLE), ("c", Mode.CALIBRATE), ("s", Mode.SELECT)])
def test_mode_keys(session, key, mode):
    handle_key(session, ord(key))
    assert session.mode is mode


def test_toggle_keys(session):
    grid = session.show_grid
    handle_key(session, ord("g"))
    assert session.show_grid is not grid
    handle_key(session, ord("e"))
    assert session.show_edges
    handle_key(session, ord("k"))
    assert session.mirror


def test_freeze_resume_keys(session):
    handle_key(session, ord("r"))
    assert not session.is_frozen
    handle_key(session, ord("f"), StaticSource(np.zeros((30, 40, 3), np.uint8)))
    assert session.is_frozen
    assert session.size == (40, 30)


def test_freeze_without_source_reports_error(session):
    result = handle_key(session, ord("f"))
    assert not result.ok
    assert session.last_error


def test_export_key_writes_file(session, tmp_path):
    result = handle_key(session, ord("j"), output_dir=tmp_path)
    assert result.ok
    assert result.path.suffix == ".json"


def test_mouse_click_asks_for_calibration_length(session):
    answers = iter(["abc", "25"])
    on_mouse = make_mouse_callback(session, prompt=lambda _: next(answers))
    session.set_mode(Mode.CALIBRATE)
    on_mouse(cv2.EVENT_LBUTTONDOWN, 0, 0, 0, None)
    on_mouse(cv2.EVENT_MOUSEMOVE, 30, 30, 0, None)
    on_mouse(cv2.EVENT_LBUTTONDOWN, 0, 50, 0, None)
    assert session.scale == pytest.approx(0.5)


def test_empty_answer_cancels_calibration(session):
    session.set_mode(Mode.CALIBRATE)
    session.pointer_at(0, 0)
    session.pointer_at(0, 10)
    ask_length(session, prompt=lambda _: "")
    assert session.awaiting_calibration is None
    assert session.scale is None


def test_compose_view_uses_frozen_frame(session):
    view = compose_view(session, np.zeros((10, 10, 3), np.uint8))
    assert view.shape == (60, 80, 3)


def test_parse_resolution():
    assert parse_resolution("1920x1080") == (1920, 1080)
