"""Approve / deny / confirm-payment / link decisions for applications.

Every decision runs in two steps. The sheet update is committed first as a
single batched write; if that fails, the decision fails. The applicant is
then told about it through the notifier. Delivery is best-effort: its result
is logged and reported back, and a failed DM never rolls the decision back.

Notifications go to the linked Discord account. When a record has no linked
account yet, the staff member who made the decision receives the message
instead so they can forward it by hand.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Mapping, Optional

from shared.sheets.applications import ApplicationSheetStore, LookupMiss, SheetRow

from .models import (
    Actor,
    ApplicantType,
    ApplicationNotFound,
    ApplicationRecord,
    ApplicationStatus,
    UnsupportedApplicantType,
)
from .notify import Notifier

__all__ = [
    "APPROVED_NEXT_STEPS",
    "ApplicationWorkflow",
    "DecisionResult",
    "ENROLLMENT_COMPLETE_NEXT_STEPS",
]

log = logging.getLogger("oscar.applications.workflow")

APPROVED_NEXT_STEPS = {
    ApplicantType.STUDENT: (
        "Welcome aboard! Please complete your enrollment payment so staff can finish "
        "setting up your student profile."
    ),
    ApplicantType.TEACHER: (
        "Welcome to the faculty! A staff member will reach out with your onboarding "
        "and training details."
    ),
}
ENROLLMENT_COMPLETE_NEXT_STEPS = (
    "Payment received. Your enrollment is complete. Check the student lounge for "
    "your first day schedule!"
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DecisionResult:
    action: str
    applicant_type: ApplicantType
    handle: str
    row_number: int
    updated_cells: int
    fields: Mapping[str, str] = field(default_factory=dict)
    notified: Optional[bool] = None
    notify_target: Optional[str] = None
    notified_actor_instead: bool = False


class ApplicationWorkflow:
    def __init__(
        self,
        store: ApplicationSheetStore,
        notifier: Notifier,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self._clock = clock

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _timestamp(self) -> str:
        return self._clock().astimezone(timezone.utc).replace(microsecond=0).isoformat()

    def _append_note(self, record: ApplicationRecord, stamp: str, line: str) -> str:
        entry = f"[{stamp}] {line}"
        existing = (record.staff_notes or "").rstrip()
        return f"{existing}\n{entry}" if existing else entry

    async def _locate_row(self, applicant_type: ApplicantType, handle: str) -> SheetRow:
        result = await self.store.afind_by_handle(applicant_type, handle)
        if isinstance(result, LookupMiss):
            raise ApplicationNotFound(applicant_type, handle, result.reason)
        return result

    async def _locate(self, applicant_type: ApplicantType, handle: str) -> ApplicationRecord:
        row = await self._locate_row(applicant_type, handle)
        return ApplicationRecord.from_row(applicant_type, row)

    async def _commit(self, record: ApplicationRecord, fields: Dict[str, str]) -> int:
        updated = await self.store.aupdate_fields(record.applicant_type, record.row_number, fields)
        log.info(
            "application updated",
            extra={
                "applicant_type": record.applicant_type.value,
                "row": record.row_number,
                "fields": ", ".join(sorted(fields)),
                "updated_cells": updated,
            },
        )
        return updated

    async def _announce(
        self, record: ApplicationRecord, message: str, actor: Actor
    ) -> tuple[bool, str, bool]:
        fallback = not record.linked_account_id
        target = actor.id if fallback else record.linked_account_id
        if fallback:
            message = (
                f"(No Discord account is linked to **{record.handle}** yet, so this copy "
                f"came to you. Please pass it on.)\n\n{message}"
            )
        try:
            delivered = bool(await self.notifier.notify(target, message))
        except Exception:
            log.exception(
                "notifier raised",
                extra={"target": target, "applicant_type": record.applicant_type.value},
            )
            delivered = False
        log.info(
            "decision notification",
            extra={
                "target": target,
                "delivered": delivered,
                "fallback_to_actor": fallback,
            },
        )
        return delivered, target, fallback

    async def _decide(
        self,
        action: str,
        record: ApplicationRecord,
        fields: Dict[str, str],
        message: Optional[str],
        actor: Actor,
    ) -> DecisionResult:
        updated = await self._commit(record, fields)
        notified: Optional[bool] = None
        target: Optional[str] = None
        fallback = False
        if message is not None:
            notified, target, fallback = await self._announce(record, message, actor)
        return DecisionResult(
            action=action,
            applicant_type=record.applicant_type,
            handle=record.handle,
            row_number=record.row_number,
            updated_cells=updated,
            fields=dict(fields),
            notified=notified,
            notify_target=target,
            notified_actor_instead=fallback,
        )

    # ------------------------------------------------------------------
    # decisions
    # ------------------------------------------------------------------
    async def approve(
        self,
        applicant_type: ApplicantType,
        handle: str,
        next_steps: Optional[str] = None,
        *,
        actor: Actor,
    ) -> DecisionResult:
        record = await self._locate(applicant_type, handle)
        stamp = self._timestamp()
        steps = (next_steps or "").strip() or APPROVED_NEXT_STEPS[applicant_type]
        fields = {
            "status": ApplicationStatus.APPROVED.value,
            "next_steps": steps,
            "last_updated": stamp,
            "staff_notes": self._append_note(record, stamp, f"Approved by {actor.label}"),
        }
        message = (
            f"🎉 Your {applicant_type.value} application for **{record.handle}** "
            f"has been approved!\n**Next steps:** {steps}"
        )
        return await self._decide("approve", record, fields, message, actor)

    async def deny(
        self,
        applicant_type: ApplicantType,
        handle: str,
        reason: str,
        *,
        actor: Actor,
    ) -> DecisionResult:
        reason = (reason or "").strip()
        if not reason:
            raise ValueError("A reason is required to deny an application.")
        record = await self._locate(applicant_type, handle)
        stamp = self._timestamp()
        steps = f"Your application was not approved. Reason: {reason}"
        fields = {
            "status": ApplicationStatus.DENIED.value,
            "next_steps": steps,
            "last_updated": stamp,
            "staff_notes": self._append_note(
                record, stamp, f"Denied by {actor.label}: {reason}"
            ),
        }
        message = (
            f"Your {applicant_type.value} application for **{record.handle}** was not "
            f"approved.\n**Reason:** {reason}\nYou can open a ticket if you have questions."
        )
        return await self._decide("deny", record, fields, message, actor)

    async def confirm_payment(
        self,
        handle: str,
        notes: Optional[str] = None,
        *,
        actor: Actor,
        applicant_type: ApplicantType = ApplicantType.STUDENT,
    ) -> DecisionResult:
        if ApplicationStatus.ENROLLMENT_COMPLETE not in ApplicationStatus.allowed_for(applicant_type):
            raise UnsupportedApplicantType("Payment confirmation only applies to students.")
        record = await self._locate(applicant_type, handle)
        if record.status is not ApplicationStatus.APPROVED:
            log.info(
                "payment confirmed outside approved state",
                extra={"row": record.row_number, "status": record.status_text or "-"},
            )
        stamp = self._timestamp()
        note = f"Payment confirmed by {actor.label}"
        if notes and notes.strip():
            note = f"{note}: {notes.strip()}"
        fields = {
            "payment_status": "Paid",
            "status": ApplicationStatus.ENROLLMENT_COMPLETE.value,
            "next_steps": ENROLLMENT_COMPLETE_NEXT_STEPS,
            "last_updated": stamp,
            "staff_notes": self._append_note(record, stamp, note),
        }
        message = (
            f"✅ Payment received for **{record.handle}**. Your enrollment at Lifeline "
            f"Academy is complete!\n**Next steps:** {ENROLLMENT_COMPLETE_NEXT_STEPS}"
        )
        return await self._decide("confirm_payment", record, fields, message, actor)

    async def link_account(
        self,
        applicant_type: ApplicantType,
        handle: str,
        account_id: object,
        *,
        actor: Actor,
    ) -> DecisionResult:
        account = str(account_id or "").strip()
        if not account.isdigit():
            raise ValueError("Account id must be a numeric Discord id.")
        row = await self._locate_row(applicant_type, handle)
        if not row.has_column("linked_account_id"):
            raise ValueError(
                f"The {applicant_type.value} sheet has no Discord ID column, so nothing was linked. "
                "Add one and try again."
            )
        record = ApplicationRecord.from_row(applicant_type, row)
        if record.linked_account_id and record.linked_account_id != account:
            log.warning(
                "relinking application",
                extra={"row": record.row_number, "previous": record.linked_account_id},
            )
        stamp = self._timestamp()
        fields = {
            "linked_account_id": account,
            "last_updated": stamp,
            "staff_notes": self._append_note(
                record, stamp, f"Linked to Discord account {account} by {actor.label}"
            ),
        }
        return await self._decide("link", record, fields, None, actor)
