import asyncio

import pytest

from modules.applications.followups import FollowupScanner, SignatureNotAllowed
from modules.applications.models import Actor, ApplicationNotFound
from shared.testing.fakes import FakeNotifier


def test_scan_only_reminds_linked_unsigned_non_denied(store, notifier):
    summary = asyncio.run(FollowupScanner(store, notifier).scan())
    # Maya is linked and unsigned; Jonah is unlinked; Rex is denied; Ivy signed.
    assert summary.scanned == 3
    assert summary.notified == 1
    assert summary.skipped == 2
    assert summary.failed == 0
    assert notifier.calls[0][0] == "1001"
    assert "!signature Maya" in notifier.calls[0][1]


def test_scan_counts_failures_and_continues(store):
    notifier = FakeNotifier(result=RuntimeError("closed"))
    summary = asyncio.run(FollowupScanner(store, notifier).scan())
    assert summary.failed == 1
    assert summary.notified == 0


def test_owner_can_sign_and_only_signature_changes(store, sheet_backend, notifier):
    before = list(sheet_backend.values["student-sheet"][1])
    scanner = FollowupScanner(store, notifier)
    record = asyncio.run(
        scanner.record_signature("maya", "  Maya   Lopez ", actor=Actor(id="1001", label="maya"))
    )
    assert record.row_number == 2
    after = sheet_backend.values["student-sheet"][1]
    assert sheet_backend.cell("student-sheet", 2, "Student Signature") == "Maya Lopez"
    assert after[:-1] == before[:-1]


def test_strangers_cannot_sign(store, notifier):
    scanner = FollowupScanner(store, notifier)
    with pytest.raises(SignatureNotAllowed):
        asyncio.run(scanner.record_signature("Maya", "Fake", actor=Actor(id="9", label="x")))
    with pytest.raises(SignatureNotAllowed):
        asyncio.run(scanner.record_signature("Jonah", "Fake", actor=Actor(id="9", label="x")))


def test_staff_may_sign_on_behalf(store, sheet_backend, notifier):
    scanner = FollowupScanner(store, notifier)
    asyncio.run(scanner.record_signature("Jonah", "J. Doe", actor=Actor(id="1", label="s", is_staff=True)))
    assert sheet_backend.cell("student-sheet", 3, "Student Signature") == "J. Doe"


def test_signature_validation(store, notifier):
    scanner = FollowupScanner(store, notifier)
    with pytest.raises(ValueError):
        asyncio.run(scanner.record_signature("Maya", "   ", actor=Actor(id="1001", label="m")))
    with pytest.raises(ApplicationNotFound):
        asyncio.run(scanner.record_signature("Ghost", "x", actor=Actor(id="1001", label="m")))
