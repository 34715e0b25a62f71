"""Weekly class schedule kept in ``schedule.json``."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from shared.json_store import JsonStore, now_iso

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday")
ALL_DAYS = WEEKDAYS + ("Saturday", "Sunday")
MAX_POSITION = 20
EMPTY_DAY_TEXT = "No schedule posted yet."

_DAY_ALIASES = {day.lower(): day for day in ALL_DAYS}
_DAY_ALIASES.update({day[:3].lower(): day for day in ALL_DAYS})
_DAY_ALIASES.update({"tues": "Tuesday", "thur": "Thursday", "thurs": "Thursday"})


class ScheduleError(ValueError):
    """Bad day name or empty schedule block."""


@dataclass(frozen=True)
class ScheduleBlock:
    label: str
    details: str
    updated_at: str = ""
    updated_by: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "ScheduleBlock":
        return cls(
            label=str(data.get("label", "")),
            details=str(data.get("details", "")),
            updated_at=str(data.get("updated_at", "")),
            updated_by=str(data.get("updated_by", "")),
        )


def normalize_day(text: str) -> str:
    day = _DAY_ALIASES.get((text or "").strip().lower())
    if day is None:
        raise ScheduleError(f"Unknown day {text!r}. Use a weekday name like `Monday`.")
    return day


def _default() -> dict:
    return {"days": {day: [] for day in WEEKDAYS}, "updated_at": None, "updated_by": None}


def format_blocks(blocks: List[ScheduleBlock]) -> str:
    if not blocks:
        return EMPTY_DAY_TEXT
    return "\n".join(
        f"**{idx}. {block.label}**: {block.details}" for idx, block in enumerate(blocks, start=1)
    )


class ScheduleBook:
    def __init__(self, data_dir: Path) -> None:
        self.store = JsonStore(Path(data_dir) / "schedule.json", _default)

    def blocks_for(self, day: str) -> List[ScheduleBlock]:
        data = self.store.load()
        raw = data.get("days", {}).get(normalize_day(day), [])
        return [ScheduleBlock.from_dict(item) for item in raw if isinstance(item, dict)]

    def week(self) -> Dict[str, List[ScheduleBlock]]:
        return {day: self.blocks_for(day) for day in WEEKDAYS}

    def add_block(
        self,
        day: str,
        label: str,
        details: str,
        *,
        position: Optional[int] = None,
        actor: str,
    ) -> int:
        """Insert a block and return its 1-based position.

        Positions 1..20 insert at that slot; anything else appends.
        """

        day = normalize_day(day)
        label = (label or "").strip()[:200]
        details = (details or "").strip()[:900]
        if not label or not details:
            raise ScheduleError("Both a label and details are required: `<label> | <details>`.")
        stamp = now_iso()
        block = {"label": label, "details": details, "updated_at": stamp, "updated_by": actor}

        def _apply(data: dict) -> int:
            days = data.setdefault("days", {})
            blocks = days.setdefault(day, [])
            if position is not None and 1 <= position <= MAX_POSITION:
                index = min(position - 1, len(blocks))
                blocks.insert(index, block)
                result = index + 1
            else:
                blocks.append(block)
                result = len(blocks)
            data["updated_at"] = stamp
            data["updated_by"] = actor
            return result

        return self.store.update(_apply)

    def clear_day(self, day: str, *, actor: str) -> int:
        """Remove every block for ``day``; returns how many were dropped."""

        day = normalize_day(day)

        def _apply(data: dict) -> int:
            days = data.setdefault("days", {})
            removed = len(days.get(day, []))
            days[day] = []
            data["updated_at"] = now_iso()
            data["updated_by"] = actor
            return removed

        return self.store.update(_apply)
