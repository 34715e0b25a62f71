"""Attendance sessions and the house-points ledger."""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Tuple

from shared.json_store import JsonStore, base36, now_iso

ATTENDANCE_STATUSES = ("present", "late", "excused")
HISTORY_LIMIT = 50
LEADERBOARD_SIZE = 10


class ClassroomError(ValueError):
    """A classroom request that cannot be applied (unknown id, closed session...)."""


def ms_clock() -> int:
    return int(time.time() * 1000)


def next_id(prefix: str, existing: Dict[str, object], clock: Callable[[], int] = ms_clock) -> str:
    """``prefix`` + base36 of the current millisecond, bumped past collisions."""

    stamp = clock()
    candidate = f"{prefix}{base36(stamp)}"
    while candidate in existing:
        stamp += 1
        candidate = f"{prefix}{base36(stamp)}"
    return candidate


@dataclass(frozen=True)
class AttendanceTotals:
    session_id: str
    class_name: str
    present: int
    late: int
    excused: int


class AttendanceBook:
    def __init__(self, data_dir: Path, *, clock: Callable[[], int] = ms_clock) -> None:
        self.store = JsonStore(Path(data_dir) / "attendance.json", {"sessions": {}})
        self._clock = clock

    def start(self, class_name: str, *, channel_id: int, teacher_id: int, teacher: str) -> str:
        class_name = (class_name or "").strip()[:200]
        if not class_name:
            raise ClassroomError("A class name is required.")

        def _apply(data: dict) -> str:
            sessions = data.setdefault("sessions", {})
            session_id = next_id("S", sessions, self._clock)
            sessions[session_id] = {
                "class_name": class_name,
                "channel_id": channel_id,
                "teacher_id": teacher_id,
                "teacher": teacher,
                "opened_at": now_iso(),
                "closed_at": None,
                "marks": {},
            }
            return session_id

        return self.store.update(_apply)

    def mark(self, session_id: str, user_id: int, status: str) -> str:
        status = (status or "").strip().lower()
        if status not in ATTENDANCE_STATUSES:
            raise ClassroomError("Status must be one of: present, late, excused.")
        session_id = (session_id or "").strip().upper()

        def _apply(data: dict) -> str:
            session = data.setdefault("sessions", {}).get(session_id)
            if session is None:
                raise ClassroomError("Session not found.")
            if session.get("closed_at"):
                raise ClassroomError("This attendance session is closed.")
            session.setdefault("marks", {})[str(user_id)] = {"at": now_iso(), "status": status}
            return status

        return self.store.update(_apply)

    def close(self, session_id: str) -> AttendanceTotals:
        session_id = (session_id or "").strip().upper()

        def _apply(data: dict) -> AttendanceTotals:
            session = data.setdefault("sessions", {}).get(session_id)
            if session is None:
                raise ClassroomError("Session not found.")
            if session.get("closed_at"):
                raise ClassroomError("This session is already closed.")
            session["closed_at"] = now_iso()
            counts = {status: 0 for status in ATTENDANCE_STATUSES}
            for mark in session.get("marks", {}).values():
                status = mark.get("status")
                if status in counts:
                    counts[status] += 1
            return AttendanceTotals(
                session_id=session_id,
                class_name=session.get("class_name", ""),
                present=counts["present"],
                late=counts["late"],
                excused=counts["excused"],
            )

        return self.store.update(_apply)


class PointsLedger:
    def __init__(self, data_dir: Path) -> None:
        self.store = JsonStore(Path(data_dir) / "points.json", {"points": {}})

    def add(self, user_id: int, amount: int, reason: str, *, actor: str) -> int:
        """Apply ``amount`` (may be negative) and return the new total."""

        reason = (reason or "").strip()[:200]
        if not reason:
            raise ClassroomError("A reason is required.")

        def _apply(data: dict) -> int:
            entry = data.setdefault("points", {}).setdefault(
                str(user_id), {"total": 0, "history": []}
            )
            entry["total"] = int(entry.get("total", 0)) + int(amount)
            history = [{"at": now_iso(), "delta": int(amount), "reason": reason, "by": actor}]
            history.extend(entry.get("history", []))
            entry["history"] = history[:HISTORY_LIMIT]
            return entry["total"]

        return self.store.update(_apply)

    def total(self, user_id: int) -> int:
        entry = self.store.load().get("points", {}).get(str(user_id))
        return int(entry.get("total", 0)) if entry else 0

    def history(self, user_id: int) -> List[dict]:
        entry = self.store.load().get("points", {}).get(str(user_id))
        return list(entry.get("history", [])) if entry else []

    def leaderboard(self, limit: int = LEADERBOARD_SIZE) -> List[Tuple[int, int]]:
        points = self.store.load().get("points", {})
        ranked = sorted(
            ((int(uid), int(entry.get("total", 0))) for uid, entry in points.items()),
            key=lambda item: item[1],
            reverse=True,
        )
        return ranked[:limit]


def session_totals_text(totals: AttendanceTotals) -> str:
    return (
        f"Present: **{totals.present}**\nLate: **{totals.late}**\nExcused: **{totals.excused}**"
    )


__all__ = [
    "ATTENDANCE_STATUSES",
    "AttendanceBook",
    "AttendanceTotals",
    "ClassroomError",
    "HISTORY_LIMIT",
    "LEADERBOARD_SIZE",
    "PointsLedger",
    "ms_clock",
    "next_id",
    "session_totals_text",
]
