"""In-class helpers: random groups, timers, lesson and worksheet templates."""

from __future__ import annotations

import random
import re
from typing import List, Optional, Sequence

from .classroom import ClassroomError

__all__ = [
    "GROUP_SIZE_RANGE",
    "TIMER_MINUTES_RANGE",
    "check_timer_minutes",
    "lesson_template",
    "make_groups",
    "parse_mentions",
    "worksheet_text",
]

TIMER_MINUTES_RANGE = (1, 60)
GROUP_SIZE_RANGE = (2, 10)

_MENTION_RE = re.compile(r"<@!?(\d+)>")


def parse_mentions(text: str) -> List[int]:
    """Member ids mentioned in ``text``, in order, without repeats."""

    seen: List[int] = []
    for match in _MENTION_RE.finditer(text or ""):
        uid = int(match.group(1))
        if uid not in seen:
            seen.append(uid)
    return seen


def check_timer_minutes(minutes: int) -> int:
    low, high = TIMER_MINUTES_RANGE
    if not low <= minutes <= high:
        raise ClassroomError(f"Timer must be between {low} and {high} minutes.")
    return minutes


def make_groups(
    member_ids: Sequence[int], size: int, *, rng: Optional[random.Random] = None
) -> List[List[int]]:
    """Shuffle ``member_ids`` and cut them into groups of ``size``.

    The last group holds the remainder and may be smaller.
    """

    low, high = GROUP_SIZE_RANGE
    if not low <= size <= high:
        raise ClassroomError(f"Group size must be between {low} and {high}.")
    if len(member_ids) < size:
        raise ClassroomError("Not enough mentions for that group size.")
    shuffled = list(member_ids)
    (rng or random).shuffle(shuffled)
    return [shuffled[i : i + size] for i in range(0, len(shuffled), size)]


def lesson_template(title: str, grade: str, subject: str, quarter: str) -> str:
    return (
        f"📘 **Title:** {title[:200]}\n"
        f"🎓 **Grade Level:** {grade[:100]}\n"
        f"📚 **Subject:** {subject[:100]}\n"
        f"📅 **Quarter:** {quarter[:10]}\n"
        "⏱️ **Duration:** \n"
        "📖 **Textbook Focus:** \n"
        "🎯 **Learning Objective:** \n"
        "🧠 **RP Application:** \n"
        "📝 **Activity / Steps:** \n"
        "📎 **Worksheet / Resource:** \n"
        "⭐ **Teacher Notes:**"
    )


def worksheet_text(title: str, notes: str) -> str:
    return (
        "🧾 **Worksheet Posted**\n"
        f"**Title:** {title[:200]}\n\n"
        "**Notes / Instructions:**\n"
        f"{notes[:1500]}"
    )
