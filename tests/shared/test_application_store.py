import asyncio

import pytest

from shared.sheets.applications import ApplicationSheetStore, LookupMiss, SheetRow
from shared.sheets.core import ExternalStoreUnavailable, StoreNotConfigured, TabTitleCache
from shared.testing.fakes import STUDENT_HEADERS, FakeSheetBackend, student_row


def test_find_by_handle_is_case_insensitive(store):
    row = store.find_by_handle("student", "  maya ")
    assert isinstance(row, SheetRow)
    assert row.row_number == 2
    assert row.get("linked_account_id") == "1001"
    assert row.get("status") == "Pending"


def test_find_by_handle_reports_miss_reason(store):
    miss = store.find_by_handle("student", "Nobody")
    assert isinstance(miss, LookupMiss)
    assert "Nobody" in miss.reason
    assert store.find_by_handle("student", "   ").reason == "No handle supplied"


def test_empty_sheet_and_missing_handle_column():
    backend = FakeSheetBackend({"a": [STUDENT_HEADERS], "b": [["Timestamp", "Score"], ["x", "1"]]})
    store = ApplicationSheetStore({"student": "a", "teacher": "b"}, backend=backend)
    assert store.find_by_handle("student", "Maya").reason == "Sheet is empty"
    assert store.find_by_handle("teacher", "Maya").reason == "Handle column not found"


def test_blank_rows_are_skipped_but_numbering_is_kept():
    backend = FakeSheetBackend(
        {"s": [STUDENT_HEADERS, ["", "", ""], student_row("Late", "9")]}
    )
    store = ApplicationSheetStore({"student": "s"}, backend=backend)
    rows = store.fetch_rows("student")
    assert [r.row_number for r in rows] == [3]


def test_reads_use_bounded_range_on_first_tab(store, sheet_backend):
    store.find_by_handle("student", "Maya")
    sheet_id, a1 = sheet_backend.reads[-1]
    assert sheet_id == "student-sheet"
    assert a1 == "'Form Responses 1'!A1:AZ2000"


def test_tab_title_is_cached_per_store(sheet_backend):
    cache = TabTitleCache()
    store = ApplicationSheetStore({"student": "student-sheet"}, backend=sheet_backend, tab_cache=cache)
    store.find_by_handle("student", "Maya")
    store.find_by_handle("student", "Rex")
    assert sheet_backend.title_calls == 1
    assert "student-sheet" in cache
    cache.forget("student-sheet")
    store.find_by_handle("student", "Rex")
    assert sheet_backend.title_calls == 2


def test_find_by_linked_id(store):
    row = store.find_by_linked_id("student", 1003)
    assert row.get("handle") == "Rex"
    assert isinstance(store.find_by_linked_id("student", "424242"), LookupMiss)


def test_update_fields_writes_one_batch_and_skips_unknown(store, sheet_backend):
    updated = store.update_fields(
        "student", 2, {"status": "Approved", "next_steps": "Pay", "positions": "ignored"}
    )
    assert updated == 2
    assert len(sheet_backend.writes) == 1
    _, data = sheet_backend.writes[0]
    assert {entry["range"] for entry in data} == {
        "'Form Responses 1'!D2",
        "'Form Responses 1'!F2",
    }
    assert sheet_backend.cell("student-sheet", 2, "Application Status") == "Approved"
    # header-only read before the write
    assert sheet_backend.reads[-1][1].endswith("!A1:AZ1")


def test_update_fields_with_nothing_resolvable_is_a_no_op(store, sheet_backend):
    assert store.update_fields("student", 2, {"positions": "x"}) == 0
    assert sheet_backend.writes == []


def test_update_fields_rejects_header_row(store):
    with pytest.raises(ValueError):
        store.update_fields("student", 1, {"status": "Approved"})


def test_unconfigured_store_raises():
    store = ApplicationSheetStore(lambda key: "", backend=FakeSheetBackend({}))
    with pytest.raises(StoreNotConfigured):
        store.find_by_handle("teacher", "anyone")


def test_backend_failures_surface_as_store_unavailable(store, sheet_backend):
    sheet_backend.fail_reads = True
    with pytest.raises(ExternalStoreUnavailable):
        store.find_by_handle("student", "Maya")


def test_async_wrappers_run_off_loop(store):
    async def runner():
        row = await store.afind_by_handle("student", "Ivy")
        rows = await store.afetch_rows("student")
        return row, rows

    row, rows = asyncio.run(runner())
    assert row.get("signature") == "Ivy R."
    assert len(rows) == 4


def test_update_fields_round_trips_through_fetch(store):
    written = {
        "status": "Approved",
        "next_steps": "Pay the enrollment fee",
        "staff_notes": "[2025-03-01] Approved by Skinner",
        "last_updated": "2025-03-01T12:30:00+00:00",
        "payment_status": "Unpaid",
        "linked_account_id": "1002",
    }
    assert store.update_fields("student", 3, written) == len(written)

    row = next(r for r in store.fetch_rows("student") if r.row_number == 3)
    assert {name: row.get(name) for name in written} == written
    assert row.get("handle") == "Jonah"


def test_rows_report_which_columns_the_sheet_has():
    backend = FakeSheetBackend({"s": [["Timestamp", "Handle", "Status"], ["t", "Nova", ""]]})
    store = ApplicationSheetStore({"student": "s"}, backend=backend)
    row = store.find_by_handle("student", "nova")
    assert row.has_column("status")
    assert not row.has_column("linked_account_id")
    assert row.get("linked_account_id") == ""
