"""Student follow-up: chase missing signatures and record them."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from shared.sheets.applications import ApplicationSheetStore, LookupMiss

from .models import (
    Actor,
    ApplicantType,
    ApplicationNotFound,
    ApplicationRecord,
    ApplicationStatus,
)
from .notify import Notifier

__all__ = [
    "FOLLOWUP_MESSAGE",
    "FollowupScanner",
    "FollowupSummary",
    "SignatureNotAllowed",
]

log = logging.getLogger("oscar.applications.followups")

FOLLOWUP_MESSAGE = (
    "Hi! Your Lifeline Academy application for **{handle}** is still missing its student "
    "signature. Reply in the server with `!signature {handle} <your signature>` to finish it."
)


class SignatureNotAllowed(PermissionError):
    """The actor may not sign for this application."""


@dataclass
class FollowupSummary:
    scanned: int = 0
    notified: int = 0
    failed: int = 0
    skipped: int = 0


class FollowupScanner:
    """On-demand sweep over the student sheet.

    Rows are handled one at a time; a failed DM is counted and the sweep
    carries on.
    """

    def __init__(self, store: ApplicationSheetStore, notifier: Notifier) -> None:
        self.store = store
        self.notifier = notifier

    async def scan(self) -> FollowupSummary:
        summary = FollowupSummary()
        rows = await self.store.afetch_rows(ApplicantType.STUDENT)
        for row in rows:
            record = ApplicationRecord.from_row(ApplicantType.STUDENT, row)
            if record.signature or not record.handle:
                continue
            summary.scanned += 1
            if not record.linked_account_id or record.status is ApplicationStatus.DENIED:
                summary.skipped += 1
                continue
            message = FOLLOWUP_MESSAGE.format(handle=record.handle)
            try:
                delivered = bool(await self.notifier.notify(record.linked_account_id, message))
            except Exception:
                log.exception("follow-up notifier raised", extra={"row": record.row_number})
                delivered = False
            if delivered:
                summary.notified += 1
            else:
                summary.failed += 1
        log.info(
            "follow-up scan complete",
            extra={
                "scanned": summary.scanned,
                "notified": summary.notified,
                "failed": summary.failed,
                "skipped": summary.skipped,
            },
        )
        return summary

    async def record_signature(self, handle: str, text: str, *, actor: Actor) -> ApplicationRecord:
        """Write ``text`` into the signature column of the applicant's row.

        Non-staff may only sign rows linked to their own account.
        """

        signature = " ".join((text or "").split())
        if not signature:
            raise ValueError("Signature text is required.")
        result = await self.store.afind_by_handle(ApplicantType.STUDENT, handle)
        if isinstance(result, LookupMiss):
            raise ApplicationNotFound(ApplicantType.STUDENT, handle, result.reason)
        record = ApplicationRecord.from_row(ApplicantType.STUDENT, result)
        if not actor.is_staff and record.linked_account_id != str(actor.id):
            raise SignatureNotAllowed(
                "Only the linked applicant can sign this application. Ask staff to link your account."
            )
        await self.store.aupdate_fields(
            ApplicantType.STUDENT, record.row_number, {"signature": signature}
        )
        log.info("signature recorded", extra={"row": record.row_number, "actor": actor.id})
        return record
