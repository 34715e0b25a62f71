"""Google Sheets transport shared by the application stores."""

from __future__ import annotations

import json
import logging
import random
import threading
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

import gspread
from gspread.exceptions import APIError, GSpreadException
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from requests import exceptions as requests_exceptions

from shared.config import get_gspread_credentials

__all__ = [
    "ExternalStoreUnavailable",
    "GSpreadBackend",
    "SheetBackend",
    "StoreNotConfigured",
    "TabTitleCache",
    "clear_cached_client",
    "get_client",
    "with_backoff",
]

log = logging.getLogger("oscar.sheets.core")

SCOPES = (
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.readonly",
)

_CLIENT_LOCK = threading.Lock()
_CLIENT: Optional[gspread.Client] = None

_RETRY_STATUS = {408, 425, 429, 500, 502, 503, 504}

T = TypeVar("T")


class ExternalStoreUnavailable(RuntimeError):
    """The spreadsheet could not be reached or the credentials were rejected."""


class StoreNotConfigured(ExternalStoreUnavailable):
    """No spreadsheet id is configured for the requested store."""


class TabTitleCache:
    """Memoizes the first-tab title of each spreadsheet.

    Owned by whoever builds the store; nothing here is process-global.
    """

    def __init__(self) -> None:
        self._titles: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, sheet_id: str) -> Optional[str]:
        with self._lock:
            return self._titles.get(sheet_id)

    def set(self, sheet_id: str, title: str) -> None:
        with self._lock:
            self._titles[sheet_id] = title

    def forget(self, sheet_id: str) -> None:
        with self._lock:
            self._titles.pop(sheet_id, None)

    def reset(self) -> None:
        with self._lock:
            self._titles.clear()

    def __contains__(self, sheet_id: object) -> bool:
        with self._lock:
            return sheet_id in self._titles

    def __len__(self) -> int:
        with self._lock:
            return len(self._titles)


def clear_cached_client() -> None:
    """Drop the cached gspread client (mainly for tests)."""

    global _CLIENT
    with _CLIENT_LOCK:
        _CLIENT = None


def _load_credentials() -> Mapping[str, Any]:
    raw = get_gspread_credentials()
    if not raw:
        raise ExternalStoreUnavailable("GSPREAD_CREDENTIALS is not set")
    try:
        creds = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ExternalStoreUnavailable("GSPREAD_CREDENTIALS must be valid JSON") from exc
    if not isinstance(creds, Mapping):
        raise ExternalStoreUnavailable("GSPREAD_CREDENTIALS JSON must represent an object")
    return creds


def get_client() -> gspread.Client:
    """Return a cached gspread client authorised with the service account."""

    global _CLIENT
    if _CLIENT is not None:
        return _CLIENT
    with _CLIENT_LOCK:
        if _CLIENT is None:
            info = _load_credentials()
            try:
                credentials = Credentials.from_service_account_info(dict(info), scopes=SCOPES)
            except (ValueError, GoogleAuthError) as exc:
                raise ExternalStoreUnavailable(f"service account rejected: {exc}") from exc
            log.debug("Authorising gspread client with service-account credentials")
            _CLIENT = gspread.authorize(credentials)
    return _CLIENT


def _should_retry(exc: Exception) -> bool:
    if isinstance(exc, APIError):
        resp = getattr(exc, "response", None)
        status = getattr(resp, "status_code", None)
        if status in _RETRY_STATUS:
            return True
        text = str(getattr(resp, "text", "") or "")
        detail = str(getattr(exc, "args", [""])[0] or "")
        blob = f"{text} {detail}".lower()
        if "rate limit" in blob or "quota" in blob or "timeout" in blob:
            return True
    if isinstance(exc, requests_exceptions.RequestException):
        return True
    return False


def with_backoff(
    func: Callable[[], T],
    *,
    retries: int = 5,
    base_delay: float = 0.5,
    max_delay: float = 8.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Execute *func* with jittered exponential backoff on transient failures."""

    attempt = 0
    delay = base_delay
    while True:
        try:
            return func()
        except Exception as exc:
            attempt += 1
            if attempt > retries or not _should_retry(exc):
                raise
            sleep_for = min(max_delay, delay) + random.uniform(0.0, base_delay)
            log.warning("Sheets call failed (attempt %s/%s): %s", attempt, retries, exc)
            sleep(sleep_for)
            delay *= 2


class SheetBackend:
    """Minimal transport surface the application store depends on.

    Tests substitute an in-memory implementation holding a value matrix.
    """

    def first_tab_title(self, sheet_id: str) -> str:
        raise NotImplementedError

    def read_values(self, sheet_id: str, a1_range: str) -> List[List[str]]:
        raise NotImplementedError

    def batch_write(self, sheet_id: str, data: Sequence[Mapping[str, Any]]) -> int:
        """Write ``[{"range": ..., "values": [[...]]}]`` in one call; return cells updated."""

        raise NotImplementedError


class GSpreadBackend(SheetBackend):
    """gspread implementation with backoff and uniform failure wrapping."""

    def __init__(self, client_factory: Callable[[], gspread.Client] = get_client) -> None:
        self._client_factory = client_factory

    def _call(self, op: str, sheet_id: str, func: Callable[[], T]) -> T:
        try:
            return with_backoff(func)
        except ExternalStoreUnavailable:
            raise
        except (APIError, GSpreadException, GoogleAuthError, requests_exceptions.RequestException) as exc:
            log.error(
                "sheets %s failed",
                op,
                extra={"sheet_id": sheet_id, "error": f"{type(exc).__name__}: {exc}"},
            )
            raise ExternalStoreUnavailable(f"{op} failed for sheet {sheet_id}: {exc}") from exc

    def _open(self, sheet_id: str) -> gspread.Spreadsheet:
        return self._client_factory().open_by_key(sheet_id)

    def first_tab_title(self, sheet_id: str) -> str:
        def _title() -> str:
            worksheet = self._open(sheet_id).get_worksheet(0)
            if worksheet is None:
                raise ExternalStoreUnavailable(f"spreadsheet {sheet_id} has no tabs")
            return worksheet.title

        return self._call("open", sheet_id, _title)

    def read_values(self, sheet_id: str, a1_range: str) -> List[List[str]]:
        def _read() -> List[List[str]]:
            payload = self._open(sheet_id).values_get(a1_range)
            values = payload.get("values") if isinstance(payload, Mapping) else None
            return [[str(cell) for cell in row] for row in (values or [])]

        return self._call("read", sheet_id, _read)

    def batch_write(self, sheet_id: str, data: Sequence[Mapping[str, Any]]) -> int:
        if not data:
            return 0
        body = {"valueInputOption": "RAW", "data": [dict(entry) for entry in data]}

        def _write() -> int:
            response = self._open(sheet_id).values_batch_update(body)
            if isinstance(response, Mapping):
                return int(response.get("totalUpdatedCells") or 0)
            return len(data)

        return self._call("write", sheet_id, _write)
