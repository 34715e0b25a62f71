"""First-come first-served nurse queue."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from shared.json_store import JsonStore, now_iso

__all__ = ["NurseQueue", "QueueEntry"]


@dataclass(frozen=True)
class QueueEntry:
    user_id: int
    user: str
    reason: str
    at: str

    @classmethod
    def from_dict(cls, data: dict) -> "QueueEntry":
        return cls(
            user_id=int(data.get("user_id", 0)),
            user=str(data.get("user", "")),
            reason=str(data.get("reason", "")),
            at=str(data.get("at", "")),
        )


class NurseQueue:
    def __init__(self, data_dir: Path) -> None:
        self.store = JsonStore(Path(data_dir) / "nurse_queue.json", {"queue": []})

    def check_in(self, user_id: int, user_label: str, reason: str) -> int:
        """Append to the queue; returns the caller's place in line."""

        reason = (reason or "").strip()[:200]
        if not reason:
            raise ValueError("Tell the nurse why you are checking in.")

        def _apply(data: dict) -> int:
            queue = data.setdefault("queue", [])
            queue.append({"user_id": user_id, "user": user_label, "reason": reason, "at": now_iso()})
            return len(queue)

        return self.store.update(_apply)

    def pop_next(self) -> Optional[QueueEntry]:
        def _apply(data: dict) -> Optional[QueueEntry]:
            queue = data.setdefault("queue", [])
            if not queue:
                return None
            return QueueEntry.from_dict(queue.pop(0))

        return self.store.update(_apply)

    def waiting(self) -> List[QueueEntry]:
        return [QueueEntry.from_dict(item) for item in self.store.load().get("queue", [])]
