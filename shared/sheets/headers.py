"""Header-name resolution for the application spreadsheets.

Application forms are edited by staff, so column order and wording drift.
Fields are located by header text through an ordered list of strategies:

1. normalized exact match against the canonical field name,
2. the synonym table below,
3. substring containment as a last resort.

Each strategy runs across every field before the next one starts, and a
column claimed by an earlier match is never handed to another field.
"""

from __future__ import annotations

import re
from typing import Callable, Dict, Iterable, Mapping, Optional, Sequence, Tuple

__all__ = [
    "CANONICAL_FIELDS",
    "HEADER_SYNONYMS",
    "build_column_map",
    "normalize_header",
    "resolve_column",
]

CANONICAL_FIELDS: Tuple[str, ...] = (
    "handle",
    "linked_account_id",
    "status",
    "payment_status",
    "next_steps",
    "staff_notes",
    "last_updated",
    "positions",
    "signature",
)

HEADER_SYNONYMS: Mapping[str, Tuple[str, ...]] = {
    "handle": (
        "Handle",
        "Username",
        "Chosen Username",
        "Roblox Username",
        "Discord Username",
        "Character Name",
        "Applicant Name",
        "RP Name",
        "Name",
    ),
    "linked_account_id": (
        "Discord ID",
        "Linked Discord ID",
        "Discord User ID",
        "Linked Account",
        "Account ID",
    ),
    "status": ("Application Status", "Status"),
    "payment_status": ("Payment Status", "Payment", "Paid"),
    "next_steps": ("Next Steps", "Next Step"),
    "staff_notes": ("Staff Notes", "Internal Notes", "Notes"),
    "last_updated": ("Last Updated", "Updated At", "Updated"),
    "positions": ("Positions of Interest", "Desired Positions", "Positions", "Position"),
    "signature": ("Student Signature", "Signature"),
}

# Fragments tried only after exact and synonym matching failed.
_CONTAINS: Mapping[str, Tuple[str, ...]] = {
    "handle": ("username", "handle", "name"),
    "linked_account_id": ("discordid", "accountid"),
    "status": ("status",),
    "payment_status": ("payment", "paid"),
    "next_steps": ("nextstep",),
    "staff_notes": ("note",),
    "last_updated": ("updated",),
    "positions": ("position",),
    "signature": ("signature",),
}

_NON_ALNUM = re.compile(r"[^0-9a-z]+")

Strategy = Callable[[Sequence[str], str, Iterable[int]], Optional[int]]


def normalize_header(value: object) -> str:
    """Lower-case ``value`` and strip whitespace and punctuation."""

    if value is None:
        return ""
    return _NON_ALNUM.sub("", str(value).strip().lower())


def _first_free(normalized: Sequence[str], wanted: Iterable[str], claimed: Iterable[int]) -> Optional[int]:
    taken = set(claimed)
    targets = [w for w in wanted if w]
    for target in targets:
        for idx, header in enumerate(normalized):
            if idx in taken or not header:
                continue
            if header == target:
                return idx
    return None


def _match_exact(normalized: Sequence[str], field: str, claimed: Iterable[int]) -> Optional[int]:
    return _first_free(normalized, [normalize_header(field)], claimed)


def _match_synonym(normalized: Sequence[str], field: str, claimed: Iterable[int]) -> Optional[int]:
    synonyms = HEADER_SYNONYMS.get(field, ())
    return _first_free(normalized, [normalize_header(s) for s in synonyms], claimed)


def _match_contains(normalized: Sequence[str], field: str, claimed: Iterable[int]) -> Optional[int]:
    taken = set(claimed)
    fragments = _CONTAINS.get(field, ()) or (normalize_header(field),)
    for fragment in fragments:
        for idx, header in enumerate(normalized):
            if idx in taken or not header:
                continue
            if fragment in header:
                return idx
    return None


STRATEGIES: Tuple[Strategy, ...] = (_match_exact, _match_synonym, _match_contains)


def resolve_column(
    headers: Sequence[object],
    field: str,
    *,
    claimed: Iterable[int] = (),
) -> Optional[int]:
    """Return the 0-based column index for ``field`` or ``None``."""

    normalized = [normalize_header(h) for h in headers]
    taken = tuple(claimed)
    for strategy in STRATEGIES:
        idx = strategy(normalized, field, taken)
        if idx is not None:
            return idx
    return None


def build_column_map(
    headers: Sequence[object],
    fields: Sequence[str] = CANONICAL_FIELDS,
) -> Dict[str, int]:
    """Resolve every field in ``fields`` against one header row.

    Unresolved fields are left out of the mapping.
    """

    normalized = [normalize_header(h) for h in headers]
    resolved: Dict[str, int] = {}
    for strategy in STRATEGIES:
        for field in fields:
            if field in resolved:
                continue
            idx = strategy(normalized, field, resolved.values())
            if idx is not None:
                resolved[field] = idx
    return resolved
