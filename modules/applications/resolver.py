"""Locate an application row from a handle or a linked Discord account."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from shared.sheets.applications import ApplicationSheetStore, LookupMiss
from shared.sheets.core import StoreNotConfigured

from .models import Actor, ApplicantType, ApplicationRecord

__all__ = [
    "AccessBlocked",
    "Found",
    "IdentityResolver",
    "NotFound",
    "Resolution",
]

log = logging.getLogger("oscar.applications.resolver")


@dataclass(frozen=True)
class Found:
    record: ApplicationRecord

    @property
    def row_number(self) -> int:
        return self.record.row_number


@dataclass(frozen=True)
class NotFound:
    reason: str


@dataclass(frozen=True)
class AccessBlocked:
    """The record exists but is linked to a different account.

    The record stays attached so a ticket can reference the handle; callers
    must not show its fields to the actor.
    """

    record: ApplicationRecord
    reason: str = "This application is linked to a different Discord account."


Resolution = Union[Found, NotFound, AccessBlocked]


class IdentityResolver:
    def __init__(self, store: ApplicationSheetStore) -> None:
        self.store = store

    async def resolve_by_handle(
        self,
        applicant_type: ApplicantType,
        handle: str,
        *,
        actor: Actor,
    ) -> Resolution:
        result = await self.store.afind_by_handle(applicant_type, handle)
        if isinstance(result, LookupMiss):
            return NotFound(result.reason)
        record = ApplicationRecord.from_row(applicant_type, result)
        if not record.visible_to(actor):
            log.info(
                "lookup blocked by account link",
                extra={
                    "applicant_type": applicant_type.value,
                    "row": record.row_number,
                    "actor": actor.id,
                },
            )
            return AccessBlocked(record)
        return Found(record)

    async def resolve_by_linked_id(
        self, applicant_type: ApplicantType, linked_id: object
    ) -> Union[Found, NotFound]:
        result = await self.store.afind_by_linked_id(applicant_type, linked_id)
        if isinstance(result, LookupMiss):
            return NotFound(result.reason)
        return Found(ApplicationRecord.from_row(applicant_type, result))

    async def resolve_own(self, actor: Actor) -> Union[Found, NotFound]:
        """Find the actor's own application in either store, students first."""

        reason = "No application is linked to your account."
        for applicant_type in ApplicantType:
            try:
                outcome = await self.resolve_by_linked_id(applicant_type, actor.id)
            except StoreNotConfigured:
                continue
            if isinstance(outcome, Found):
                return outcome
        return NotFound(reason)
