"""Process-wide logging configuration.

Modules log through ``logging.getLogger(__name__)``; entry points (CLI, API)
call :func:`configure_logging` once to attach a console handler.
"""

from __future__ import annotations

import logging
import sys
from typing import Union

_DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_ROOT_LOGGER = "content_fetcher"


def configure_logging(level: Union[int, str] = "INFO") -> logging.Logger:
    """Attach a single stdout handler to the package logger and set *level*.

    Calling it again only updates the level; handlers are never duplicated.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(level)
    if not any(getattr(h, "_content_fetcher", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
        handler._content_fetcher = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
