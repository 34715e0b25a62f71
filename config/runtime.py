from __future__ import annotations

# config/runtime.py
import os
from typing import Optional


def get_port(default: int = 10000) -> int:
    """
    Returns the port for the aiohttp health server.
    Render provides $PORT; locally we fall back to 10000.
    """
    try:
        return int(os.getenv("PORT", str(default)))
    except ValueError:
        return default


def get_env_name(default: str = "dev") -> str:
    return os.getenv("ENV_NAME", default)


def get_bot_name(default: str = "Oscar") -> str:
    return os.getenv("BOT_NAME", default)


def _coerce_int(value: Optional[str], fallback: int) -> int:
    try:
        if value is None:
            raise TypeError
        return int(value)
    except (TypeError, ValueError):
        return fallback


def get_command_prefix(default: str = "!") -> str:
    return os.getenv("COMMAND_PREFIX", default)


def get_timezone(default: str = "America/Los_Angeles") -> str:
    """IANA timezone name for the daily bulletin and prompt schedule."""

    return os.getenv("TIMEZONE", default)


def get_scheduler_tick_sec(default: int = 20) -> int:
    """Seconds between daily-scheduler checks."""

    return max(5, _coerce_int(os.getenv("SCHEDULER_TICK_SEC"), default))
