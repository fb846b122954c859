"""
Package-wide logger for release-mirror.
"""

import logging
import sys


LOGGER_NAME = "releasemirror"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _build_logger() -> logging.Logger:
    _logger = logging.getLogger(LOGGER_NAME)
    if not _logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        _logger.addHandler(handler)
    _logger.setLevel(logging.INFO)
    _logger.propagate = False
    return _logger


logger = _build_logger()
