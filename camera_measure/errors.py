"""Error types raised by the measurement core."""

from __future__ import annotations


class MeasureError(Exception):
    """Base class for recoverable measurement errors."""


class CaptureUnavailable(MeasureError, RuntimeError):
    """Capture device could not be opened or did not deliver a frame."""


class InvalidLength(MeasureError, ValueError):
    """Calibration length is not a finite positive number."""


class DegenerateAngle(MeasureError, ValueError):
    """Angle requested with an end point on top of the vertex."""


class ExportFailure(MeasureError, RuntimeError):
    """Encoding or saving an export failed."""


class FrameNotFrozen(MeasureError, RuntimeError):
    """Operation needs a frozen frame."""
