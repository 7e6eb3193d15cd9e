"""Application-wide log sink writing to a single file."""

from __future__ import annotations

import logging
from os import PathLike
from typing import Union

_LOGGER_NAME = "pacrelay"
_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-7s %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_logger = logging.getLogger(_LOGGER_NAME)
_logger.propagate = False
_logger.addHandler(logging.NullHandler())


def init(path: Union[str, "PathLike[str]"]) -> None:
    """Send all messages of debug level and above to the file at *path*.

    Calling it again replaces the previous file target.
    """
    for handler in list(_logger.handlers):
        if isinstance(handler, logging.FileHandler):
            _logger.removeHandler(handler)
            handler.close()
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(_FORMAT, _DATE_FORMAT))
    handler.setLevel(logging.DEBUG)
    _logger.addHandler(handler)
    _logger.setLevel(logging.DEBUG)


def debug(msg: str) -> None:
    """Log *msg* at debug level."""
    _logger.debug(msg)


def info(msg: str) -> None:
    """Log *msg* at info level."""
    _logger.info(msg)


def warning(msg: str) -> None:
    """Log *msg* at warning level."""
    _logger.warning(msg)


def error(msg: str) -> None:
    """Log *msg* at error level."""
    _logger.error(msg)