"""Runtime configuration helpers for the academy bot."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Dict, Optional, Set

from config import runtime as _runtime
from shared.redaction import mask_secret, mask_service_account, sanitize_text

__all__ = [
    "reload_config",
    "get_config_snapshot",
    "get_env_name",
    "get_bot_name",
    "get_command_prefix",
    "get_discord_token",
    "get_guild_id",
    "get_log_channel_id",
    "get_announce_channel_id",
    "get_calendar_channel_id",
    "get_student_lounge_channel_id",
    "get_welcome_channel_id",
    "get_rules_channel_id",
    "get_handbook_channel_id",
    "get_enrollment_channel_id",
    "get_pictures_channel_id",
    "get_handbook_url",
    "get_enrollment_url",
    "get_portal_url",
    "PORTAL_KINDS",
    "get_allowed_category_ids",
    "get_ticket_category_id",
    "get_gspread_credentials",
    "get_student_sheet_id",
    "get_teacher_sheet_id",
    "get_admin_role_ids",
    "get_staff_role_ids",
    "get_teacher_role_ids",
    "get_nurse_role_ids",
    "get_timezone",
    "get_daily_bulletin_hour",
    "get_daily_prompt_hour",
    "get_data_dir",
    "redact_value",
]

log = logging.getLogger("oscar.config")

# ===== Config Schema (authoritative) =====
_REQUIRED_ENV = ("DISCORD_TOKEN",)

# Optional keys that switch a feature off when missing.
_FEATURE_ENV = {
    "GSPREAD_CREDENTIALS": "application status lookups",
    "STUDENT_SHEET_ID": "student application workflow",
    "TEACHER_SHEET_ID": "teacher application workflow",
    "TICKET_CATEGORY_ID": "ticket category placement",
    "LOG_CHANNEL_ID": "Discord log posting",
    "GUILD_ID": "daily bulletin and prompt scheduler",
}


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if value is None or str(value).strip() == "":
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


for _name in _REQUIRED_ENV:
    _require_env(_name)

_MISSING_VALUE = "—"
_INT_RE = re.compile(r"\d+")

_CONFIG: Dict[str, object] = {}
_warned_missing: Set[str] = set()

PORTAL_KINDS = ("student", "teacher", "parent", "admin")

_SECRET_KEYS = {
    "DISCORD_TOKEN",
    "GSPREAD_CREDENTIALS",
}


def _first_int(raw: str | None) -> Optional[int]:
    if not raw:
        return None
    for match in _INT_RE.finditer(raw):
        try:
            return int(match.group(0))
        except (TypeError, ValueError):
            continue
    return None


def _int_set(raw: str | None) -> Set[int]:
    values: Set[int] = set()
    if not raw:
        return values
    for match in _INT_RE.finditer(raw):
        try:
            values.add(int(match.group(0)))
        except (TypeError, ValueError):
            continue
    return values


def _int_env(
    key: str,
    default: int,
    *,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    """Parse an optional integer environment variable, falling back on bad input."""

    raw = os.getenv(key)
    if raw is None:
        return default

    text = str(raw).strip()
    if not text:
        return default

    try:
        value = int(text)
    except ValueError:
        log.warning("config: %s='%s' invalid; using default %s", key, text, default)
        return default

    if min_value is not None and value < min_value:
        log.warning("config: %s=%s < min %s; clamping", key, value, min_value)
        value = min_value

    if max_value is not None and value > max_value:
        log.warning("config: %s=%s > max %s; clamping", key, value, max_value)
        value = max_value

    return value


def redact_value(key: str, value: object) -> str:
    """Best-effort redaction for logging and the config command."""

    key_upper = str(key).upper()
    if value in (None, "", [], (), {}, set()):
        return _MISSING_VALUE

    if key_upper in _SECRET_KEYS or "TOKEN" in key_upper or "CREDENTIAL" in key_upper:
        stripped = str(value).strip()
        if not stripped:
            return _MISSING_VALUE
        if "service_account" in stripped and "private_key" in stripped:
            return mask_service_account(stripped)
        return mask_secret(stripped)

    if isinstance(value, (set, frozenset, list, tuple)):
        uniq = sorted(int(v) for v in value if isinstance(v, int))
        if len(uniq) <= 3:
            return ", ".join(str(v) for v in uniq)
        return f"{len(uniq)} ids"

    return str(sanitize_text(value))


def _log_snapshot(snapshot: Dict[str, object]) -> None:
    redacted = {key: redact_value(key, value) for key, value in snapshot.items()}
    log.info("config loaded", extra={"config": str(redacted)})


def _warn_missing_features(snapshot: Dict[str, object]) -> None:
    for key, feature in _FEATURE_ENV.items():
        if snapshot.get(key) not in (None, "", set()):
            _warned_missing.discard(key)
            continue
        if key in _warned_missing:
            continue
        _warned_missing.add(key)
        log.warning("%s disabled; set %s to enable it.", feature.capitalize(), key)


def _load_config() -> Dict[str, object]:
    data_dir = (os.getenv("DATA_DIR") or "").strip() or str(Path.cwd() / "data")

    return {
        "PORT": _runtime.get_port(),
        "BOT_NAME": _runtime.get_bot_name(),
        "ENV_NAME": _runtime.get_env_name(),
        "COMMAND_PREFIX": _runtime.get_command_prefix(),
        "DISCORD_TOKEN": os.getenv("DISCORD_TOKEN", ""),
        "GUILD_ID": _first_int(os.getenv("GUILD_ID")),
        "GSPREAD_CREDENTIALS": os.getenv("GSPREAD_CREDENTIALS", ""),
        "STUDENT_SHEET_ID": (os.getenv("STUDENT_SHEET_ID") or "").strip(),
        "TEACHER_SHEET_ID": (os.getenv("TEACHER_SHEET_ID") or "").strip(),
        "ADMIN_ROLE_IDS": _int_set(os.getenv("ADMIN_ROLE_IDS")),
        "STAFF_ROLE_IDS": _int_set(os.getenv("STAFF_ROLE_IDS")),
        "TEACHER_ROLE_IDS": _int_set(os.getenv("TEACHER_ROLE_IDS")),
        "NURSE_ROLE_IDS": _int_set(os.getenv("NURSE_ROLE_IDS")),
        "TICKET_CATEGORY_ID": _first_int(os.getenv("TICKET_CATEGORY_ID")),
        "ALLOWED_CATEGORY_IDS": _int_set(os.getenv("ALLOWED_CATEGORY_IDS")),
        "LOG_CHANNEL_ID": _first_int(os.getenv("LOG_CHANNEL_ID")),
        "ANNOUNCE_CHANNEL_ID": _first_int(os.getenv("ANNOUNCE_CHANNEL_ID")),
        "CALENDAR_CHANNEL_ID": _first_int(os.getenv("CALENDAR_CHANNEL_ID")),
        "STUDENT_LOUNGE_CHANNEL_ID": _first_int(os.getenv("STUDENT_LOUNGE_CHANNEL_ID")),
        "WELCOME_CHANNEL_ID": _first_int(os.getenv("WELCOME_CHANNEL_ID")),
        "RULES_CHANNEL_ID": _first_int(os.getenv("RULES_CHANNEL_ID")),
        "HANDBOOK_CHANNEL_ID": _first_int(os.getenv("HANDBOOK_CHANNEL_ID")),
        "ENROLL_CHANNEL_ID": _first_int(os.getenv("ENROLL_CHANNEL_ID")),
        "PICTURES_CHANNEL_ID": _first_int(os.getenv("PICTURES_CHANNEL_ID")),
        "HANDBOOK_URL": (os.getenv("HANDBOOK_URL") or "").strip(),
        "ENROLLMENT_URL": (os.getenv("ENROLLMENT_URL") or "").strip(),
        **{
            f"{kind.upper()}_PORTAL_URL": (os.getenv(f"{kind.upper()}_PORTAL_URL") or "").strip()
            for kind in PORTAL_KINDS
        },
        "TIMEZONE": (_runtime.get_timezone() or "").strip() or "America/Los_Angeles",
        "DAILY_BULLETIN_HOUR": _int_env("DAILY_BULLETIN_HOUR", 8, min_value=0, max_value=23),
        "DAILY_PROMPT_HOUR": _int_env("DAILY_PROMPT_HOUR", 9, min_value=0, max_value=23),
        "DATA_DIR": data_dir,
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO"),
    }


def reload_config() -> Dict[str, object]:
    """Reload configuration from environment and return a snapshot."""

    for name in _REQUIRED_ENV:
        _require_env(name)

    snapshot = _load_config()

    global _CONFIG
    _CONFIG = snapshot
    _log_snapshot(snapshot)
    _warn_missing_features(snapshot)
    return dict(_CONFIG)


reload_config()


def get_config_snapshot() -> Dict[str, object]:
    """Return a shallow copy of the cached config values."""

    return dict(_CONFIG)


def _optional_id(key: str) -> Optional[int]:
    value = _CONFIG.get(key)
    if value is None:
        return None
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def _role_set(key: str) -> Set[int]:
    raw = _CONFIG.get(key, set())
    if isinstance(raw, (set, frozenset, list, tuple)):
        result: Set[int] = set()
        for value in raw:
            try:
                result.add(int(value))
            except (TypeError, ValueError):
                continue
        return result
    return set()


def get_env_name(default: str = "dev") -> str:
    value = _CONFIG.get("ENV_NAME")
    return str(value) if isinstance(value, str) and value else default


def get_bot_name(default: str = "Oscar") -> str:
    value = _CONFIG.get("BOT_NAME")
    return str(value) if isinstance(value, str) and value else default


def get_command_prefix(default: str = "!") -> str:
    value = _CONFIG.get("COMMAND_PREFIX")
    return str(value) if isinstance(value, str) and value else default


def get_discord_token() -> str:
    return str(_CONFIG.get("DISCORD_TOKEN", ""))


def get_guild_id() -> Optional[int]:
    return _optional_id("GUILD_ID")


def get_log_channel_id() -> Optional[int]:
    return _optional_id("LOG_CHANNEL_ID")


def get_announce_channel_id() -> Optional[int]:
    return _optional_id("ANNOUNCE_CHANNEL_ID")


def get_calendar_channel_id() -> Optional[int]:
    return _optional_id("CALENDAR_CHANNEL_ID")


def get_student_lounge_channel_id() -> Optional[int]:
    return _optional_id("STUDENT_LOUNGE_CHANNEL_ID")


def get_ticket_category_id() -> Optional[int]:
    return _optional_id("TICKET_CATEGORY_ID")


def get_allowed_category_ids() -> Set[int]:
    return _role_set("ALLOWED_CATEGORY_IDS")


def get_gspread_credentials() -> str:
    return str(_CONFIG.get("GSPREAD_CREDENTIALS", ""))


def get_student_sheet_id() -> str:
    return str(_CONFIG.get("STUDENT_SHEET_ID", ""))


def get_teacher_sheet_id() -> str:
    return str(_CONFIG.get("TEACHER_SHEET_ID", ""))


def get_admin_role_ids() -> Set[int]:
    return _role_set("ADMIN_ROLE_IDS")


def get_staff_role_ids() -> Set[int]:
    return _role_set("STAFF_ROLE_IDS")


def get_teacher_role_ids() -> Set[int]:
    return _role_set("TEACHER_ROLE_IDS")


def get_nurse_role_ids() -> Set[int]:
    return _role_set("NURSE_ROLE_IDS")


def get_timezone(default: str = "America/Los_Angeles") -> str:
    raw = _CONFIG.get("TIMEZONE")
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return default


def get_daily_bulletin_hour(default: int = 8) -> int:
    value = _CONFIG.get("DAILY_BULLETIN_HOUR", default)
    return value if isinstance(value, int) else default


def get_daily_prompt_hour(default: int = 9) -> int:
    value = _CONFIG.get("DAILY_PROMPT_HOUR", default)
    return value if isinstance(value, int) else default


def get_data_dir() -> Path:
    return Path(str(_CONFIG.get("DATA_DIR") or "data"))


def get_welcome_channel_id() -> Optional[int]:
    return _optional_id("WELCOME_CHANNEL_ID")


def get_rules_channel_id() -> Optional[int]:
    return _optional_id("RULES_CHANNEL_ID")


def get_handbook_channel_id() -> Optional[int]:
    return _optional_id("HANDBOOK_CHANNEL_ID")


def get_enrollment_channel_id() -> Optional[int]:
    return _optional_id("ENROLL_CHANNEL_ID")


def get_pictures_channel_id() -> Optional[int]:
    return _optional_id("PICTURES_CHANNEL_ID")


def get_handbook_url() -> str:
    return str(_CONFIG.get("HANDBOOK_URL") or "")


def get_enrollment_url() -> str:
    return str(_CONFIG.get("ENROLLMENT_URL") or "")


def get_portal_url(kind: str) -> str:
    """Return the configured portal link for ``kind``; empty when unset or unknown."""

    key = (kind or "").strip().lower()
    if key not in PORTAL_KINDS:
        return ""
    return str(_CONFIG.get(f"{key.upper()}_PORTAL_URL") or "")
