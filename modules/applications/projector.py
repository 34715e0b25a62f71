"""Render the applicant-safe view of an application record.

Only fields on the allow-list leave this module; anything else the sheet
grows stays hidden until it is added here on purpose.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Tuple

import discord

from modules.common.embeds import build_embed

from .models import ApplicantType, ApplicationRecord

__all__ = [
    "DEFAULT_NEXT_STEPS",
    "DEFAULT_PAYMENT",
    "DEFAULT_STATUS",
    "PublicView",
    "build_status_embed",
    "project",
]

DEFAULT_STATUS = "Pending"
DEFAULT_NEXT_STEPS = "No next steps listed yet."
DEFAULT_PAYMENT = "N/A"

# field -> (label, default)
_PUBLIC_FIELDS: Mapping[ApplicantType, Tuple[Tuple[str, str, str], ...]] = {
    ApplicantType.STUDENT: (
        ("status_text", "Status", DEFAULT_STATUS),
        ("next_steps", "Next Steps", DEFAULT_NEXT_STEPS),
        ("payment_status", "Payment", DEFAULT_PAYMENT),
    ),
    ApplicantType.TEACHER: (
        ("status_text", "Status", DEFAULT_STATUS),
        ("next_steps", "Next Steps", DEFAULT_NEXT_STEPS),
    ),
}

_STAFF_FIELDS: Tuple[Tuple[str, str], ...] = (("staff_notes", "Staff Notes"),)


@dataclass(frozen=True)
class PublicView:
    applicant_type: ApplicantType
    handle: str
    fields: Tuple[Tuple[str, str], ...]

    def as_dict(self) -> Dict[str, str]:
        return dict(self.fields)

    def get(self, label: str, default: str = "") -> str:
        return self.as_dict().get(label, default)

    def __contains__(self, label: object) -> bool:
        return any(name == label for name, _ in self.fields)


def project(record: ApplicationRecord, viewer_is_staff: bool) -> PublicView:
    rendered = []
    for attr, label, default in _PUBLIC_FIELDS[record.applicant_type]:
        value = (getattr(record, attr, "") or "").strip()
        rendered.append((label, value or default))
    if viewer_is_staff:
        for attr, label in _STAFF_FIELDS:
            value = (getattr(record, attr, "") or "").strip()
            if value:
                rendered.append((label, value))
    return PublicView(
        applicant_type=record.applicant_type,
        handle=record.handle,
        fields=tuple(rendered),
    )


def build_status_embed(view: PublicView) -> discord.Embed:
    embed = build_embed(
        "applications",
        f"{view.applicant_type.label} application • {view.handle}",
    )
    for label, value in view.fields:
        embed.add_field(name=label, value=value[:1024], inline=label in {"Status", "Payment"})
    return embed
