"""Human-friendly labels and templates for Discord log-channel posts."""

from __future__ import annotations

from typing import Optional

import discord

__all__ = [
    "LOG_EMOJI",
    "channel_label",
    "user_label",
    "human_reason",
    "LogTemplates",
]

LOG_EMOJI = {
    "success": "✅",
    "info": "📋",
    "lifecycle": "📘",
    "ticket": "🎫",
    "scheduler": "🧭",
    "classroom": "🏫",
    "warning": "⚠️",
    "error": "❌",
}


def _clean_name(name: Optional[str], default: str) -> str:
    if not name:
        return default
    text = str(name).strip()
    return text or default


def channel_label(guild: Optional[discord.Guild], cid: Optional[int]) -> str:
    """Return a human-friendly label for a guild channel or thread."""

    if guild is None or cid is None:
        return "#unknown"

    channel = guild.get_channel(cid)
    if channel is None:
        getter = getattr(guild, "get_thread", None)
        channel = getter(cid) if callable(getter) else None

    if isinstance(channel, discord.Thread):
        parent = getattr(channel, "parent", None)
        parent_name = _clean_name(getattr(parent, "name", None), "unknown")
        return f"#{parent_name} › {_clean_name(channel.name, 'thread')}"

    if channel is not None:
        name = _clean_name(getattr(channel, "name", None), "channel")
        category = getattr(channel, "category", None)
        if category is not None:
            cat_name = _clean_name(getattr(category, "name", None), "category")
            return f"#{cat_name} › {name}"
        return f"#{name}"

    return "#unknown"


def user_label(guild: Optional[discord.Guild], uid: Optional[int]) -> str:
    """Return a human label for a guild member, falling back to the raw id."""

    if uid is None:
        return "unknown"
    getter = getattr(guild, "get_member", None) if guild is not None else None
    member = getter(uid) if callable(getter) else None
    if member is None:
        return str(uid)
    return _clean_name(getattr(member, "display_name", None), str(uid))


_HTTP_ERROR_CODES = {
    50001: "Missing Access",
    50007: "Cannot Send Messages to This User",
    50013: "Missing Permissions",
    50035: "Invalid Form Body",
    10013: "Unknown User",
}


def human_reason(exc_or_msg: object) -> str:
    """Normalize Discord HTTP errors to human-friendly text."""

    if exc_or_msg is None:
        return "-"
    if isinstance(exc_or_msg, str):
        text = " ".join(exc_or_msg.split())
        return text or "-"
    if isinstance(exc_or_msg, discord.HTTPException):
        status = getattr(exc_or_msg, "status", None)
        code = getattr(exc_or_msg, "code", None)
        base = _HTTP_ERROR_CODES.get(code, exc_or_msg.__class__.__name__)
        suffix = ""
        if status or code:
            suffix = f" ({status or '?'}" + (f"/{code}" if code else "") + ")"
        detail = " ".join(str(getattr(exc_or_msg, "text", "")).split())
        if detail:
            return f"{base}{suffix}: {detail}"
        return f"{base}{suffix}".strip()
    if isinstance(exc_or_msg, Exception):
        text = " ".join(str(exc_or_msg).split())
        label = exc_or_msg.__class__.__name__
        return f"{label}: {text}" if text else label
    return "-"


class LogTemplates:
    """Factory helpers for humanized log-channel lines."""

    @staticmethod
    def decision(
        *, action: str, applicant_type: str, handle: str, actor: str, notified: bool
    ) -> str:
        emoji = LOG_EMOJI["success"] if notified else LOG_EMOJI["warning"]
        dm = "sent" if notified else "failed"
        return (
            f"{emoji} **Application** — {action} • type={applicant_type} • "
            f"handle={handle} • by={actor} • dm={dm}"
        )

    @staticmethod
    def ticket(*, action: str, channel: str, actor: str) -> str:
        return f"{LOG_EMOJI['ticket']} **Ticket** — {action} • channel={channel} • by={actor}"

    @staticmethod
    def followups(*, scanned: int, notified: int, failed: int, skipped: int, actor: str) -> str:
        return (
            f"{LOG_EMOJI['info']} **Follow-ups** — scanned={scanned} • notified={notified} • "
            f"failed={failed} • skipped={skipped} • by={actor}"
        )

    @staticmethod
    def classroom(*, action: str, detail: str, actor: str) -> str:
        return f"{LOG_EMOJI['classroom']} **Academy** — {action} • {detail} • by={actor}"

    @staticmethod
    def scheduler(*, job: str, day_key: str, ok: bool, reason: str = "") -> str:
        if ok:
            return f"{LOG_EMOJI['scheduler']} **Daily** — {job} posted • key={day_key}"
        detail = reason or "-"
        return f"{LOG_EMOJI['error']} **Daily** — {job} failed • key={day_key} • reason={detail}"

    @staticmethod
    def command_error(*, command: str, actor: str, reason: str) -> str:
        return (
            f"{LOG_EMOJI['error']} **Command error** — command={command} • "
            f"by={actor} • reason={reason}"
        )
