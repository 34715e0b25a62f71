"""Hall passes: students request, teachers decide, the student gets a DM."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from modules.academy.classroom import ms_clock, next_id
from modules.applications.notify import Notifier
from shared.json_store import JsonStore, now_iso

__all__ = [
    "PASS_DECISIONS",
    "PASS_REASONS",
    "PassDecision",
    "PassDesk",
    "PassError",
    "pass_decision_message",
]

log = logging.getLogger("oscar.academy.passes")

PASS_REASONS = ("nurse", "counselor", "office", "bathroom", "pickup")
PASS_DECISIONS = ("approved", "denied")


class PassError(ValueError):
    pass


@dataclass(frozen=True)
class PassDecision:
    pass_id: str
    user_id: int
    decision: str
    notified: bool


def pass_decision_message(pass_id: str, entry: dict) -> str:
    lines = [
        f"Your pass request (**{pass_id}**) was **{str(entry.get('status', '')).upper()}**.",
        f"Reason: {entry.get('reason', '')}",
    ]
    if entry.get("details"):
        lines.append(f"Details: {entry['details']}")
    if entry.get("notes"):
        lines.append(f"Notes: {entry['notes']}")
    return "\n".join(lines)


class PassDesk:
    def __init__(
        self,
        data_dir: Path,
        notifier: Notifier,
        *,
        clock: Callable[[], int] = ms_clock,
    ) -> None:
        self.store = JsonStore(Path(data_dir) / "passes.json", {"passes": {}})
        self.notifier = notifier
        self._clock = clock

    def request(self, user_id: int, user_label: str, reason: str, details: str = "") -> str:
        reason = (reason or "").strip().lower()
        if reason not in PASS_REASONS:
            raise PassError(f"Pass reason must be one of: {', '.join(PASS_REASONS)}.")
        details = (details or "").strip()[:300]

        def _apply(data: dict) -> str:
            passes = data.setdefault("passes", {})
            pass_id = next_id("P", passes, self._clock)
            passes[pass_id] = {
                "user_id": user_id,
                "user": user_label,
                "reason": reason,
                "details": details,
                "status": "pending",
                "created_at": now_iso(),
                "decided_at": None,
                "decided_by": None,
                "notes": None,
            }
            return pass_id

        return self.store.update(_apply)

    def get(self, pass_id: str) -> Optional[dict]:
        return self.store.load().get("passes", {}).get((pass_id or "").strip().upper())

    async def decide(
        self, pass_id: str, decision: str, notes: str = "", *, actor: str
    ) -> PassDecision:
        """Record the decision, then DM the student.

        The DM is best-effort: a failed delivery is logged and reported in the
        result, never raised.
        """

        decision = (decision or "").strip().lower()
        if decision not in PASS_DECISIONS:
            raise PassError("Decision must be `approved` or `denied`.")
        pass_id = (pass_id or "").strip().upper()
        notes = (notes or "").strip()[:300]

        def _apply(data: dict) -> dict:
            entry = data.setdefault("passes", {}).get(pass_id)
            if entry is None:
                raise PassError("Pass not found.")
            if entry.get("status") != "pending":
                raise PassError(f"Pass already decided: {entry.get('status')}")
            entry["status"] = decision
            entry["decided_at"] = now_iso()
            entry["decided_by"] = actor
            entry["notes"] = notes or None
            return dict(entry)

        entry = self.store.update(_apply)
        try:
            notified = await self.notifier.notify(
                entry["user_id"], pass_decision_message(pass_id, entry)
            )
        except Exception:
            log.exception("pass notification raised", extra={"pass_id": pass_id})
            notified = False
        return PassDecision(
            pass_id=pass_id,
            user_id=int(entry["user_id"]),
            decision=decision,
            notified=bool(notified),
        )
