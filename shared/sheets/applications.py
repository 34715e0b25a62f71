"""Record store for the student and teacher application spreadsheets.

Every read pulls the bounded range of the first tab; rows are never cached.
That keeps lookups consistent with staff edits made directly in the sheet,
and it is also the ceiling of this design: a store much larger than the read
range needs an indexed backend instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Mapping, Tuple, Union

from gspread.utils import rowcol_to_a1

from shared import config as app_config
from shared.sheets.async_adapter import arun
from shared.sheets.core import (
    GSpreadBackend,
    SheetBackend,
    StoreNotConfigured,
    TabTitleCache,
)
from shared.sheets.headers import CANONICAL_FIELDS, build_column_map

__all__ = [
    "READ_RANGE",
    "ApplicationSheetStore",
    "LookupMiss",
    "SheetRow",
    "build_default_store",
    "configured_sheet_ids",
]

log = logging.getLogger("oscar.sheets.applications")

READ_RANGE = "A1:AZ2000"
HEADER_RANGE = "A1:AZ1"

SheetIdSource = Union[Mapping[str, str], Callable[[str], str]]


@dataclass(frozen=True, slots=True)
class SheetRow:
    """One data row with its canonical fields resolved by header name."""

    row_number: int
    fields: Mapping[str, str]
    raw: Tuple[str, ...] = ()
    resolved: FrozenSet[str] = frozenset()

    def get(self, name: str) -> str:
        return self.fields.get(name, "")

    def has_column(self, name: str) -> bool:
        """True when the sheet has a header for ``name``, even if the cell is blank."""

        return name in self.resolved


@dataclass(frozen=True, slots=True)
class LookupMiss:
    reason: str


@dataclass(slots=True)
class _Table:
    sheet_id: str
    title: str
    headers: List[str]
    columns: Dict[str, int]
    rows: List[SheetRow] = field(default_factory=list)


def _quote_title(title: str) -> str:
    return "'" + title.replace("'", "''") + "'"


def _store_key(store_id: object) -> str:
    value = getattr(store_id, "value", store_id)
    return str(value).strip().lower()


class ApplicationSheetStore:
    """Read/write access to the application sheets, keyed by store id.

    ``sheet_ids`` maps a store id (``"student"``, ``"teacher"``) to a
    spreadsheet key, either as a mapping or as a callable. The backend and
    tab-title cache are injected so tests can run against an in-memory matrix.
    """

    def __init__(
        self,
        sheet_ids: SheetIdSource,
        *,
        backend: SheetBackend | None = None,
        tab_cache: TabTitleCache | None = None,
    ) -> None:
        self._sheet_ids = sheet_ids
        self.backend = backend or GSpreadBackend()
        self.tab_cache = tab_cache or TabTitleCache()

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------
    def sheet_id_for(self, store_id: object) -> str:
        key = _store_key(store_id)
        if callable(self._sheet_ids):
            sheet_id = self._sheet_ids(key)
        else:
            sheet_id = self._sheet_ids.get(key, "")
        sheet_id = (sheet_id or "").strip()
        if not sheet_id:
            raise StoreNotConfigured(f"No spreadsheet configured for {key} applications")
        return sheet_id

    def tab_title(self, sheet_id: str) -> str:
        title = self.tab_cache.get(sheet_id)
        if title is None:
            title = self.backend.first_tab_title(sheet_id)
            self.tab_cache.set(sheet_id, title)
            log.debug("resolved first tab", extra={"sheet_id": sheet_id, "tab": title})
        return title

    def _read(self, store_id: object, a1_range: str) -> _Table:
        sheet_id = self.sheet_id_for(store_id)
        title = self.tab_title(sheet_id)
        values = self.backend.read_values(sheet_id, f"{_quote_title(title)}!{a1_range}")
        headers = [str(cell).strip() for cell in (values[0] if values else [])]
        columns = build_column_map(headers, CANONICAL_FIELDS)
        table = _Table(sheet_id=sheet_id, title=title, headers=headers, columns=columns)
        resolved_names = frozenset(columns)
        for offset, raw in enumerate(values[1:], start=2):
            cells = tuple(str(cell) for cell in raw)
            if not any(cell.strip() for cell in cells):
                continue
            by_field = {
                name: (cells[idx].strip() if idx < len(cells) else "")
                for name, idx in columns.items()
            }
            for name in CANONICAL_FIELDS:
                by_field.setdefault(name, "")
            table.rows.append(
                SheetRow(row_number=offset, fields=by_field, raw=cells, resolved=resolved_names)
            )
        return table

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def fetch_rows(self, store_id: object) -> List[SheetRow]:
        """Return every non-blank data row of the store."""

        return list(self._read(store_id, READ_RANGE).rows)

    def find_by_handle(self, store_id: object, handle: str) -> Union[SheetRow, LookupMiss]:
        wanted = (handle or "").strip().casefold()
        if not wanted:
            return LookupMiss("No handle supplied")
        table = self._read(store_id, READ_RANGE)
        if not table.rows:
            return LookupMiss("Sheet is empty")
        if "handle" not in table.columns:
            log.warning(
                "handle column unresolved",
                extra={"sheet_id": table.sheet_id, "headers": ", ".join(table.headers)},
            )
            return LookupMiss("Handle column not found")
        for row in table.rows:
            if row.get("handle").casefold() == wanted:
                return row
        return LookupMiss(f"No application found for {handle.strip()}")

    def find_by_linked_id(self, store_id: object, linked_id: object) -> Union[SheetRow, LookupMiss]:
        wanted = str(linked_id or "").strip()
        if not wanted:
            return LookupMiss("No account id supplied")
        table = self._read(store_id, READ_RANGE)
        if not table.rows:
            return LookupMiss("Sheet is empty")
        if "linked_account_id" not in table.columns:
            return LookupMiss("Linked account column not found")
        for row in table.rows:
            if row.get("linked_account_id") == wanted:
                return row
        return LookupMiss("No application is linked to this account")

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    def update_fields(self, store_id: object, row_number: int, fields: Mapping[str, object]) -> int:
        """Write ``fields`` into ``row_number`` with a single batch update.

        Only header-resolved cells are touched; unresolved fields are skipped.
        Returns the number of cells the backend reports as updated.
        """

        if row_number < 2:
            raise ValueError("row_number must address a data row (>= 2)")
        table = self._read(store_id, HEADER_RANGE)
        data: List[Dict[str, object]] = []
        skipped: List[str] = []
        for name, value in fields.items():
            idx = table.columns.get(name)
            if idx is None:
                skipped.append(name)
                continue
            cell = rowcol_to_a1(row_number, idx + 1)
            text = "" if value is None else str(value)
            data.append({"range": f"{_quote_title(table.title)}!{cell}", "values": [[text]]})
        if skipped:
            log.info(
                "skipped unresolved fields",
                extra={"sheet_id": table.sheet_id, "fields": ", ".join(sorted(skipped))},
            )
        if not data:
            return 0
        return self.backend.batch_write(table.sheet_id, data)

    # ------------------------------------------------------------------
    # async wrappers (sheets-io pool)
    # ------------------------------------------------------------------
    async def afetch_rows(self, store_id: object) -> List[SheetRow]:
        return await arun(self.fetch_rows, store_id)

    async def afind_by_handle(self, store_id: object, handle: str) -> Union[SheetRow, LookupMiss]:
        return await arun(self.find_by_handle, store_id, handle)

    async def afind_by_linked_id(
        self, store_id: object, linked_id: object
    ) -> Union[SheetRow, LookupMiss]:
        return await arun(self.find_by_linked_id, store_id, linked_id)

    async def aupdate_fields(
        self, store_id: object, row_number: int, fields: Mapping[str, object]
    ) -> int:
        return await arun(self.update_fields, store_id, row_number, fields)


def configured_sheet_ids(store_id: str) -> str:
    """Resolve sheet ids from the live config snapshot."""

    if store_id == "student":
        return app_config.get_student_sheet_id()
    if store_id == "teacher":
        return app_config.get_teacher_sheet_id()
    return ""


def build_default_store(tab_cache: TabTitleCache | None = None) -> ApplicationSheetStore:
    return ApplicationSheetStore(configured_sheet_ids, tab_cache=tab_cache)

