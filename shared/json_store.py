"""Small JSON-file stores for the classroom tables."""

from __future__ import annotations

import copy
import datetime as dt
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, TypeVar

__all__ = ["JsonStore", "base36", "now_iso"]

log = logging.getLogger("oscar.json_store")

T = TypeVar("T")

_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 expects a non-negative integer")
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_DIGITS[rem])
    return "".join(reversed(out))


def now_iso() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="seconds")


class JsonStore:
    """One JSON document on disk, loaded and saved whole.

    A missing, blank or unreadable file yields a fresh copy of ``default``.
    Saves go through a temporary file so a crash never leaves half a document.
    """

    def __init__(self, path: Path | str, default: Any) -> None:
        self.path = Path(path)
        self._default = default

    def _fresh_default(self) -> Any:
        value = self._default() if callable(self._default) else self._default
        return copy.deepcopy(value)

    def load(self) -> Any:
        if not self.path.exists():
            return self._fresh_default()
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                raw = handle.read()
        except OSError:
            log.exception("failed to read json store", extra={"path": str(self.path)})
            return self._fresh_default()
        if not raw.strip():
            return self._fresh_default()
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            log.exception("json store is corrupt; using defaults", extra={"path": str(self.path)})
            return self._fresh_default()

    def save(self, data: Any) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, sort_keys=True)
            handle.write("\n")
        os.replace(tmp, self.path)

    def update(self, mutator: Callable[[Any], T]) -> T:
        """Load, apply ``mutator`` in place, save, and return its result."""

        data = self.load()
        result = mutator(data)
        self.save(data)
        return result
