"""Console logging for the CLI, the viewer and the Flask app."""
import logging
import sys
from typing import Union

PACKAGE_LOGGER = "camera_measure"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s %(message)s"


def resolve_level(level: Union[int, str]) -> int:
    """Accepts 10, "debug" or "DEBUG"; unknown names fall back to INFO."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Route camera_measure.* records to stderr; stdout stays free for JSON output."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(resolve_level(level))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(handler)
    return logger
