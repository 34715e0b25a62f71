"""Secret masking helpers used when config snapshots are logged or displayed."""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any, Mapping

__all__ = [
    "mask_secret",
    "mask_service_account",
    "sanitize_text",
]


_DISCORD_TOKEN_RE = re.compile(r"[A-Za-z0-9_-]{24}\.[A-Za-z0-9_-]{6}\.[A-Za-z0-9_-]{27,}")
_PRIVATE_KEY_BLOCK_RE = re.compile(r"-----BEGIN [^-]+-----.*?-----END [^-]+-----", re.DOTALL)
_SECRET_FIELD_RE = re.compile(
    r"(?P<prefix>(token|secret|credential|key)\s*[=:]\s*)(?P<secret>[^\s,;]+)",
    re.IGNORECASE,
)


def _stable_suffix(text: str) -> str:
    digest = hashlib.sha1(text.encode("utf-8", "ignore")).hexdigest()
    return digest[:4]


def mask_secret(text: str) -> str:
    return f"***{_stable_suffix(text)}"


def mask_service_account(text: str) -> str:
    return f"***sa-json:len={len(text)}-{_stable_suffix(text)}"


def _looks_like_service_account(text: str) -> bool:
    if "service_account" not in text or "private_key" not in text:
        return False
    try:
        data = json.loads(text)
    except ValueError:
        return False
    if not isinstance(data, Mapping):
        return False
    return str(data.get("type")) == "service_account"


def sanitize_text(value: Any) -> Any:
    """Mask tokens, private keys and service-account blobs inside ``value``."""

    if value is None:
        return value
    text = str(value)
    if not text:
        return text

    stripped = text.strip()
    if _looks_like_service_account(stripped):
        return mask_service_account(stripped)

    sanitized = _PRIVATE_KEY_BLOCK_RE.sub(lambda m: mask_secret(m.group(0)), text)
    sanitized = _DISCORD_TOKEN_RE.sub(lambda m: mask_secret(m.group(0)), sanitized)
    sanitized = _SECRET_FIELD_RE.sub(
        lambda m: f"{m.group('prefix')}{mask_secret(m.group('secret'))}", sanitized
    )
    return sanitized
