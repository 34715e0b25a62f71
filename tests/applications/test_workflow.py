import asyncio
from datetime import datetime, timezone

import pytest

from modules.applications.models import (
    Actor,
    ApplicantType,
    ApplicationNotFound,
    UnsupportedApplicantType,
)
from modules.applications.projector import project
from modules.applications.resolver import Found, IdentityResolver
from modules.applications.workflow import (
    APPROVED_NEXT_STEPS,
    ENROLLMENT_COMPLETE_NEXT_STEPS,
    ApplicationWorkflow,
)
from shared.sheets.core import ExternalStoreUnavailable
from shared.sheets.applications import ApplicationSheetStore
from shared.testing.fakes import FakeNotifier, FakeSheetBackend

STAFF = Actor(id="77", label="Principal Skinner", is_staff=True)
FIXED = datetime(2025, 3, 1, 12, 30, tzinfo=timezone.utc)


def _workflow(store, notifier):
    return ApplicationWorkflow(store, notifier, clock=lambda: FIXED)


def test_approve_commits_fields_then_notifies(store, sheet_backend, notifier):
    flow = _workflow(store, notifier)
    result = asyncio.run(flow.approve(ApplicantType.STUDENT, "maya", actor=STAFF))

    assert result.action == "approve"
    assert result.row_number == 2
    assert result.notified is True
    assert result.notify_target == "1001"
    assert sheet_backend.cell("student-sheet", 2, "Application Status") == "Approved"
    assert sheet_backend.cell("student-sheet", 2, "Next Steps") == APPROVED_NEXT_STEPS[
        ApplicantType.STUDENT
    ]
    assert sheet_backend.cell("student-sheet", 2, "Last Updated") == "2025-03-01T12:30:00+00:00"
    assert sheet_backend.cell("student-sheet", 2, "Staff Notes") == (
        "[2025-03-01T12:30:00+00:00] Approved by Principal Skinner"
    )
    # one batched write, before the one DM
    assert len(sheet_backend.writes) == 1
    assert notifier.calls[0][0] == "1001"
    assert "approved" in notifier.calls[0][1]


def test_custom_next_steps_and_notes_append(store, sheet_backend, notifier):
    flow = _workflow(store, notifier)
    asyncio.run(flow.approve(ApplicantType.STUDENT, "Jonah", "Bring forms", actor=STAFF))
    assert sheet_backend.cell("student-sheet", 3, "Next Steps") == "Bring forms"
    notes = sheet_backend.cell("student-sheet", 3, "Staff Notes").splitlines()
    assert notes[0] == "Call parent"
    assert notes[1].endswith("Approved by Principal Skinner")


def test_unlinked_record_notifies_actor_instead(store, notifier):
    flow = _workflow(store, notifier)
    result = asyncio.run(flow.approve(ApplicantType.STUDENT, "Jonah", actor=STAFF))
    assert result.notified_actor_instead is True
    assert result.notify_target == "77"
    target, message = notifier.calls[0]
    assert target == "77"
    assert message.startswith("(No Discord account is linked to **Jonah** yet")


def test_failed_dm_does_not_roll_back(store, sheet_backend):
    notifier = FakeNotifier(result=False)
    result = asyncio.run(_workflow(store, notifier).deny(ApplicantType.STUDENT, "Maya", "Too young", actor=STAFF))
    assert result.notified is False
    assert sheet_backend.cell("student-sheet", 2, "Application Status") == "Denied"
    assert "Too young" in sheet_backend.cell("student-sheet", 2, "Next Steps")


def test_raising_notifier_counts_as_undelivered(store, sheet_backend):
    notifier = FakeNotifier(result=RuntimeError("gateway down"))
    result = asyncio.run(_workflow(store, notifier).approve(ApplicantType.TEACHER, "Ms. Park", actor=STAFF))
    assert result.notified is False
    assert sheet_backend.cell("teacher-sheet", 2, "Status") == "Approved"


def test_failed_write_fails_decision_without_notifying(store, sheet_backend, notifier):
    sheet_backend.fail_writes = True
    with pytest.raises(ExternalStoreUnavailable):
        asyncio.run(_workflow(store, notifier).approve(ApplicantType.STUDENT, "Maya", actor=STAFF))
    assert notifier.calls == []


def test_deny_requires_reason(store, sheet_backend, notifier):
    with pytest.raises(ValueError):
        asyncio.run(_workflow(store, notifier).deny(ApplicantType.STUDENT, "Maya", "  ", actor=STAFF))
    assert sheet_backend.writes == []


def test_unknown_handle_raises_not_found(store, notifier):
    with pytest.raises(ApplicationNotFound) as excinfo:
        asyncio.run(_workflow(store, notifier).approve(ApplicantType.STUDENT, "Ghost", actor=STAFF))
    assert excinfo.value.handle == "Ghost"


def test_confirm_payment_completes_enrollment(store, sheet_backend, notifier):
    result = asyncio.run(
        _workflow(store, notifier).confirm_payment("Ivy", "cash at front desk", actor=STAFF)
    )
    assert result.action == "confirm_payment"
    assert sheet_backend.cell("student-sheet", 5, "Payment Status") == "Paid"
    assert sheet_backend.cell("student-sheet", 5, "Application Status") == "Enrollment Complete"
    assert sheet_backend.cell("student-sheet", 5, "Next Steps") == ENROLLMENT_COMPLETE_NEXT_STEPS
    assert sheet_backend.cell("student-sheet", 5, "Staff Notes").endswith(
        "Payment confirmed by Principal Skinner: cash at front desk"
    )
    assert notifier.calls[0][0] == "1004"


def test_confirm_payment_rejects_teachers(store, notifier):
    with pytest.raises(UnsupportedApplicantType):
        asyncio.run(
            _workflow(store, notifier).confirm_payment(
                "Ms. Park", actor=STAFF, applicant_type=ApplicantType.TEACHER
            )
        )


def test_link_account_writes_id_without_dm(store, sheet_backend, notifier):
    result = asyncio.run(
        _workflow(store, notifier).link_account(ApplicantType.STUDENT, "Jonah", " 1002 ", actor=STAFF)
    )
    assert result.notified is None
    assert notifier.calls == []
    assert sheet_backend.cell("student-sheet", 3, "Discord ID") == "1002"
    assert "Linked to Discord account 1002" in sheet_backend.cell("student-sheet", 3, "Staff Notes")


def test_link_account_requires_numeric_id(store, notifier):
    with pytest.raises(ValueError):
        asyncio.run(_workflow(store, notifier).link_account(ApplicantType.STUDENT, "Jonah", "abc", actor=STAFF))


def test_approve_then_status_lookup_shows_approved(store, notifier):
    flow = _workflow(store, notifier)
    resolver = IdentityResolver(store)
    owner = Actor(id="1001", label="maya")

    async def runner():
        await flow.approve(ApplicantType.STUDENT, "Maya", actor=STAFF)
        default_view = await resolver.resolve_by_handle(ApplicantType.STUDENT, "maya", actor=owner)
        await flow.approve(ApplicantType.TEACHER, "Ms. Park", "Shadow Mr. Lee on Monday", actor=STAFF)
        custom_view = await resolver.resolve_by_handle(ApplicantType.TEACHER, "Ms. Park", actor=STAFF)
        return default_view, custom_view

    default_view, custom_view = asyncio.run(runner())
    assert isinstance(default_view, Found)
    view = project(default_view.record, viewer_is_staff=False)
    assert view.get("Status") == "Approved"
    assert view.get("Next Steps") == APPROVED_NEXT_STEPS[ApplicantType.STUDENT]

    assert isinstance(custom_view, Found)
    view = project(custom_view.record, viewer_is_staff=True)
    assert view.get("Status") == "Approved"
    assert view.get("Next Steps") == "Shadow Mr. Lee on Monday"


def test_deny_keeps_literal_reason_even_when_notifier_raises(store, sheet_backend):
    notifier = FakeNotifier(result=RuntimeError("dm closed"))
    result = asyncio.run(
        _workflow(store, notifier).deny(
            ApplicantType.STUDENT, "Maya", "incomplete paperwork", actor=STAFF
        )
    )
    assert result.action == "deny"
    assert result.notified is False
    assert len(notifier.calls) == 1
    assert "incomplete paperwork" in sheet_backend.cell("student-sheet", 2, "Next Steps")
    assert sheet_backend.cell("student-sheet", 2, "Application Status") == "Denied"


def test_confirm_payment_skips_approval_when_still_pending(store, sheet_backend, notifier):
    # Maya is still Pending in the fixture sheet.
    result = asyncio.run(_workflow(store, notifier).confirm_payment("Maya", actor=STAFF))
    assert result.action == "confirm_payment"
    assert sheet_backend.cell("student-sheet", 2, "Payment Status") == "Paid"
    assert sheet_backend.cell("student-sheet", 2, "Application Status") == "Enrollment Complete"
    assert notifier.calls[0][0] == "1001"


def test_link_account_refuses_sheet_without_discord_id_column(notifier):
    backend = FakeSheetBackend(
        {"s": [["Timestamp", "Chosen Username", "Staff Notes", "Last Updated"], ["t", "Nova99", "", ""]]}
    )
    store = ApplicationSheetStore({"student": "s"}, backend=backend)
    with pytest.raises(ValueError) as excinfo:
        asyncio.run(
            _workflow(store, notifier).link_account(ApplicantType.STUDENT, "nova99", "111", actor=STAFF)
        )
    assert "no Discord ID column" in str(excinfo.value)
    assert backend.writes == []
