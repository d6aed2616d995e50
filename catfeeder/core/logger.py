"""Logging helpers.

`get_logger` hands out loggers that share one formatter and stream handler,
plus a rotating file handler when LOG_FILE is configured.
"""

import logging
from logging.handlers import RotatingFileHandler

from catfeeder.core.config import settings

_formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

_stream_handler = logging.StreamHandler()
_stream_handler.setFormatter(_formatter)

_file_handler = None
if settings.LOG_FILE:
    _file_handler = RotatingFileHandler(settings.LOG_FILE, maxBytes=5 * 1024 * 1024, backupCount=3)
    _file_handler.setFormatter(_formatter)


def get_logger(name: str = __name__, level: str | None = None) -> logging.Logger:
    """Return a configured logger.

    Handlers are attached once per logger name, so repeated calls are safe.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(level or settings.LOG_LEVEL)
        logger.addHandler(_stream_handler)
        if _file_handler is not None:
            logger.addHandler(_file_handler)
    return logger
