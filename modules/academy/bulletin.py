"""Daily bulletin, RP prompts, and the clock that posts them."""

from __future__ import annotations

import logging
import random
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Sequence

import discord
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from modules.academy.schedule import ScheduleBlock, ScheduleBook, format_blocks
from modules.common.embeds import build_embed
from shared.json_store import JsonStore, now_iso
from shared.logfmt import LogTemplates, human_reason

__all__ = [
    "BULLETIN_REMINDER",
    "DEFAULT_PROMPTS",
    "DailyScheduler",
    "FALLBACK_PROMPT",
    "PromptDeck",
    "build_bulletin_embed",
    "build_prompt_embed",
    "fetch_text_channel",
    "resolve_timezone",
]

log = logging.getLogger("oscar.academy.bulletin")

DEFAULT_PROMPTS = (
    "You’re new to campus. Introduce yourself to a classmate and ask where your next class is.",
    "You forgot your homework. Roleplay how you handle it with your teacher respectfully.",
    "You overhear a rumor in the hallway. Decide how you respond in a mature way.",
    "A group project needs leadership. Step up and assign roles to your teammates.",
    "You’re preparing for a school event. Coordinate with classmates to get organized.",
)
FALLBACK_PROMPT = "Create a respectful RP scene that fits school life."
BULLETIN_REMINDER = "Stay respectful, stay in character, and ask staff if you need help."


class PromptDeck:
    def __init__(self, data_dir: Path, *, rng: Optional[random.Random] = None) -> None:
        self.store = JsonStore(
            Path(data_dir) / "prompts.json",
            lambda: {"prompts": list(DEFAULT_PROMPTS), "last_posted_at": None},
        )
        self._rng = rng or random.Random()

    def prompts(self) -> List[str]:
        raw = self.store.load().get("prompts") or []
        return [str(item) for item in raw if str(item).strip()]

    def pick(self) -> str:
        prompts = self.prompts()
        if not prompts:
            return FALLBACK_PROMPT
        return self._rng.choice(prompts)

    def mark_posted(self) -> str:
        stamp = now_iso()

        def _apply(data: dict) -> str:
            data.setdefault("prompts", list(DEFAULT_PROMPTS))
            data["last_posted_at"] = stamp
            return stamp

        return self.store.update(_apply)

    @property
    def last_posted_at(self) -> Optional[str]:
        return self.store.load().get("last_posted_at")


def build_bulletin_embed(day: str, blocks: Sequence[ScheduleBlock]) -> discord.Embed:
    embed = build_embed("academy", "Daily Bulletin", f"**{day}**: Lifeline Academy")
    embed.add_field(name="Today’s Schedule", value=format_blocks(list(blocks))[:1024], inline=False)
    embed.add_field(name="Reminder", value=BULLETIN_REMINDER, inline=False)
    return embed


def build_prompt_embed(prompt: str, *, title: str = "RP Prompt") -> discord.Embed:
    return build_embed("academy", title, prompt)


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("timezone not found; defaulting to UTC", extra={"timezone": name})
        return ZoneInfo("UTC")


async def fetch_text_channel(bot: Any, channel_id: Optional[int]) -> Optional[discord.TextChannel]:
    """Return the text channel for ``channel_id`` or ``None`` when unusable."""

    if not channel_id:
        return None
    channel = bot.get_channel(channel_id)
    if channel is None:
        try:
            channel = await bot.fetch_channel(channel_id)
        except discord.HTTPException as exc:
            log.warning(
                "channel fetch failed",
                extra={"channel_id": channel_id, "reason": human_reason(exc)},
            )
            return None
    if not isinstance(channel, discord.TextChannel):
        return None
    return channel


class DailyScheduler:
    """Posts the bulletin and the RP prompt once per local day.

    ``tick`` is called on a short interval; a job fires when the local clock
    reads ``HH:00`` for its hour and its ``YYYY-MM-DD:job`` key differs from
    the last one posted.
    """

    def __init__(
        self,
        bot: Any,
        schedule: ScheduleBook,
        prompts: PromptDeck,
        *,
        timezone_name: str,
        bulletin_hour: int,
        prompt_hour: int,
        calendar_channel_id: Callable[[], Optional[int]],
        lounge_channel_id: Callable[[], Optional[int]],
        send_log: Optional[Callable[[str], Awaitable[None]]] = None,
    ) -> None:
        self.bot = bot
        self.schedule = schedule
        self.prompts = prompts
        self.tz = resolve_timezone(timezone_name)
        self.bulletin_hour = bulletin_hour
        self.prompt_hour = prompt_hour
        self._calendar_channel_id = calendar_channel_id
        self._lounge_channel_id = lounge_channel_id
        self._send_log = send_log
        self.last_keys: dict[str, str] = {}

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def due_jobs(self, now: datetime) -> List[tuple[str, str]]:
        """Return ``(job, key)`` pairs that should post at ``now``."""

        local = now.astimezone(self.tz)
        if local.minute != 0:
            return []
        ymd = local.strftime("%Y-%m-%d")
        due = []
        for job, hour in (("bulletin", self.bulletin_hour), ("prompt", self.prompt_hour)):
            key = f"{ymd}:{job}"
            if local.hour == hour and self.last_keys.get(job) != key:
                due.append((job, key))
        return due

    async def tick(self, now: Optional[datetime] = None) -> List[str]:
        if not self.bot.is_ready():
            return []
        current = (now or self.now()).astimezone(self.tz)
        posted = []
        for job, key in self.due_jobs(current):
            # Claim the key before posting so a slow send never double-posts.
            self.last_keys[job] = key
            try:
                ok = await (self.post_bulletin(current) if job == "bulletin" else self.post_prompt())
            except discord.HTTPException as exc:
                log.warning("daily post failed", extra={"job": job, "key": key})
                await self._log(
                    LogTemplates.scheduler(job=job, day_key=key, ok=False, reason=human_reason(exc))
                )
                continue
            if ok:
                posted.append(job)
                await self._log(LogTemplates.scheduler(job=job, day_key=key, ok=True))
            else:
                log.info("daily post skipped: channel unavailable", extra={"job": job})
        return posted

    async def post_bulletin(self, local: Optional[datetime] = None) -> bool:
        channel = await fetch_text_channel(self.bot, self._calendar_channel_id())
        if channel is None:
            return False
        day = (local or self.now()).strftime("%A")
        await channel.send(embed=build_bulletin_embed(day, self.schedule.blocks_for(day)))
        return True

    async def post_prompt(self) -> bool:
        channel = await fetch_text_channel(self.bot, self._lounge_channel_id())
        if channel is None:
            return False
        await channel.send(embed=build_prompt_embed(self.prompts.pick(), title="Daily RP Prompt"))
        self.prompts.mark_posted()
        return True

    async def _log(self, message: str) -> None:
        if self._send_log is not None:
            await self._send_log(message)
