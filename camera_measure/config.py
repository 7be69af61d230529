"""
Runtime settings for the measurement core.
Values come from environment variables where it makes sense, otherwise the
constants below are used as-is.
"""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
OUTPUT_DIR = Path(os.getenv("CAMERA_MEASURE_OUTPUT_DIR", BASE_DIR / "output"))

LOG_LEVEL = os.getenv("CAMERA_MEASURE_LOG_LEVEL", "INFO")
DEFAULT_UNIT = os.getenv("CAMERA_MEASURE_DEFAULT_UNIT", "mm")

# Overlay geometry (pixels)
GRID_STEP = int(os.getenv("CAMERA_MEASURE_GRID_STEP", "50"))
GRID_ALPHA = 0.3
LINE_WIDTH = 3
MARKER_RADIUS = 5
LABEL_OFFSET = (8, -8)
LABEL_OUTLINE = 4
FONT_SCALE = 0.5
FONT_THICKNESS = 1

# BGR colours
GRID_COLOR = (136, 136, 136)
SEGMENT_COLOR = (94, 197, 34)
SEGMENT_LABEL_COLOR = (74, 163, 22)
ANGLE_COLOR = (246, 130, 59)
ANGLE_LABEL_COLOR = (235, 99, 37)
CALIBRATE_COLOR = (8, 179, 234)
LABEL_OUTLINE_COLOR = (255, 255, 255)

# Capture resolution suggestions (width, height)
RESOLUTION_PRESETS = [(1280, 720), (1920, 1080), (2560, 1440)]
DEFAULT_RESOLUTION = (1920, 1080)
