"""Domain types for student and teacher applications."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional

from shared.sheets.applications import SheetRow

__all__ = [
    "Actor",
    "ApplicantType",
    "ApplicationNotFound",
    "ApplicationRecord",
    "ApplicationStatus",
    "UnsupportedApplicantType",
]


class UnsupportedApplicantType(ValueError):
    """Raised when an applicant type is unknown or not valid for an action."""


class ApplicationNotFound(LookupError):
    """No row matched the requested handle."""

    def __init__(self, applicant_type: "ApplicantType", handle: str, reason: str = "") -> None:
        self.applicant_type = applicant_type
        self.handle = handle
        self.reason = reason
        super().__init__(f"No {applicant_type.value} application found for {handle}")


_TYPE_ALIASES = {
    "s": "student",
    "student": "student",
    "students": "student",
    "t": "teacher",
    "teacher": "teacher",
    "teachers": "teacher",
}


class ApplicantType(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"

    @classmethod
    def parse(cls, value: object) -> "ApplicantType":
        if isinstance(value, cls):
            return value
        key = _TYPE_ALIASES.get(str(value or "").strip().lower())
        if key is None:
            raise UnsupportedApplicantType(
                f"Unknown applicant type {value!r}; use `student` or `teacher`."
            )
        return cls(key)

    @property
    def label(self) -> str:
        return self.value.capitalize()


class ApplicationStatus(str, Enum):
    """Closed set of states; the sheet keeps the text form."""

    PENDING = "Pending"
    APPROVED = "Approved"
    DENIED = "Denied"
    ENROLLMENT_COMPLETE = "Enrollment Complete"

    @classmethod
    def parse(cls, text: object) -> Optional["ApplicationStatus"]:
        """Map free-form sheet text onto a state; ``None`` when unrecognised.

        Blank cells count as Pending since new form rows arrive empty.
        """

        value = " ".join(str(text or "").split()).lower()
        if not value:
            return cls.PENDING
        if "complete" in value or "enrolled" in value:
            return cls.ENROLLMENT_COMPLETE
        if value.startswith("approv") or value.startswith("accept"):
            return cls.APPROVED
        if value.startswith(("den", "reject", "declin")):
            return cls.DENIED
        if value.startswith("pend") or "review" in value:
            return cls.PENDING
        return None

    @classmethod
    def allowed_for(cls, applicant_type: ApplicantType) -> FrozenSet["ApplicationStatus"]:
        if applicant_type is ApplicantType.STUDENT:
            return frozenset(cls)
        return frozenset({cls.PENDING, cls.APPROVED, cls.DENIED})


@dataclass(frozen=True)
class Actor:
    """Whoever invoked a command: a Discord account id plus its staff flag."""

    id: str
    label: str
    is_staff: bool = False

    @classmethod
    def from_member(cls, member: object, *, is_staff: bool) -> "Actor":
        ident = getattr(member, "id", "")
        label = getattr(member, "display_name", None) or getattr(member, "name", None) or str(ident)
        return cls(id=str(ident), label=str(label), is_staff=is_staff)


@dataclass(frozen=True)
class ApplicationRecord:
    applicant_type: ApplicantType
    row_number: int
    handle: str
    linked_account_id: str = ""
    status_text: str = ""
    payment_status: str = ""
    next_steps: str = ""
    staff_notes: str = ""
    last_updated: str = ""
    positions: str = ""
    signature: str = ""

    @classmethod
    def from_row(cls, applicant_type: ApplicantType, row: SheetRow) -> "ApplicationRecord":
        return cls(
            applicant_type=applicant_type,
            row_number=row.row_number,
            handle=row.get("handle"),
            linked_account_id=row.get("linked_account_id"),
            status_text=row.get("status"),
            payment_status=row.get("payment_status"),
            next_steps=row.get("next_steps"),
            staff_notes=row.get("staff_notes"),
            last_updated=row.get("last_updated"),
            positions=row.get("positions"),
            signature=row.get("signature"),
        )

    @property
    def status(self) -> Optional[ApplicationStatus]:
        return ApplicationStatus.parse(self.status_text)

    def visible_to(self, actor: Actor) -> bool:
        """Unlinked records are open; linked ones only to the owner or staff."""

        if actor.is_staff or not self.linked_account_id:
            return True
        return self.linked_account_id == str(actor.id).strip()
