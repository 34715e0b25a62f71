"""Runtime logging configuration utilities."""

from __future__ import annotations

import logging
import os
from typing import Mapping

from .structured import JsonFormatter

__all__ = ["setup_logging"]

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _resolve_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    text = (level or os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    return _LEVELS.get(text, logging.INFO)


def _ensure_stream_handler(logger: logging.Logger, formatter: logging.Formatter) -> None:
    """Ensure ``logger`` has a stream handler using ``formatter``."""

    found = False
    for handler in logger.handlers:
        if isinstance(handler, logging.StreamHandler):
            handler.setFormatter(formatter)
            found = True
    if not found:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)


def setup_logging(
    *,
    level: str | int | None = None,
    static_fields: Mapping[str, str] | None = None,
    access_logger_name: str = "aiohttp.access",
) -> logging.Logger:
    """Install the JSON formatter on the root logger and the HTTP access logger.

    ``level`` falls back to ``LOG_LEVEL`` from the environment. ``static_fields``
    are merged into every emitted line (``env``, ``bot`` ...). Returns the
    access logger so the health server can hand it to aiohttp.
    """

    base_static = dict(static_fields or {})

    root_logger = logging.getLogger()
    root_logger.setLevel(_resolve_level(level))
    _ensure_stream_handler(root_logger, JsonFormatter(static=base_static))

    # discord.py is chatty at INFO during reconnects.
    logging.getLogger("discord").setLevel(logging.WARNING)

    access_static = dict(base_static)
    access_static.setdefault("logger", access_logger_name)

    access_logger = logging.getLogger(access_logger_name)
    access_logger.propagate = False
    access_logger.handlers.clear()

    access_handler = logging.StreamHandler()
    access_handler.setFormatter(JsonFormatter(static=access_static))
    access_logger.addHandler(access_handler)
    access_logger.setLevel(logging.INFO)

    return access_logger
