"""Private ticket channels between an applicant and staff."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

import discord

from modules.common.embeds import build_embed
from shared.config import get_admin_role_ids, get_staff_role_ids, get_ticket_category_id
from shared.logfmt import human_reason

from .models import Actor, ApplicantType
from .projector import DEFAULT_NEXT_STEPS, DEFAULT_STATUS
from .resolver import AccessBlocked, Found, Resolution
from .views import TicketCloseView

log = logging.getLogger("oscar.applications.tickets")

TOPIC_PREFIX = "oscar-ticket:"
_TOPIC_RE = re.compile(r"oscar-ticket:(\d+)")
_SLUG_RE = re.compile(r"[^a-z0-9]+")


class TicketError(RuntimeError):
    """A ticket channel could not be created or closed."""


@dataclass(frozen=True)
class TicketContext:
    """Snapshot of what the requester knew when the ticket was opened.

    Not live-linked: later sheet edits do not update the ticket.
    """

    applicant_type: Optional[ApplicantType] = None
    handle: str = ""
    status: str = ""
    next_steps: str = ""
    access_blocked: bool = False

    @classmethod
    def from_resolution(
        cls,
        applicant_type: Optional[ApplicantType],
        handle: str,
        resolution: Optional[Resolution],
    ) -> "TicketContext":
        if isinstance(resolution, AccessBlocked):
            return cls(applicant_type=applicant_type, handle=handle, access_blocked=True)
        if isinstance(resolution, Found):
            record = resolution.record
            return cls(
                applicant_type=applicant_type,
                handle=record.handle or handle,
                status=record.status_text or DEFAULT_STATUS,
                next_steps=record.next_steps or DEFAULT_NEXT_STEPS,
            )
        return cls(applicant_type=applicant_type, handle=handle)


def ticket_topic(requester_id: int) -> str:
    return f"{TOPIC_PREFIX}{int(requester_id)}"


def parse_ticket_owner(topic: Optional[str]) -> Optional[int]:
    """Return the requester id embedded in a ticket topic, if any."""

    match = _TOPIC_RE.search(topic or "")
    return int(match.group(1)) if match else None


def is_ticket_channel(channel: object) -> bool:
    return parse_ticket_owner(getattr(channel, "topic", None)) is not None


def ticket_channel_name(requester: discord.abc.User) -> str:
    base = getattr(requester, "display_name", None) or getattr(requester, "name", "") or "member"
    slug = _SLUG_RE.sub("-", str(base).lower()).strip("-")[:40] or "member"
    return f"ticket-{slug}"


def build_snapshot_embed(context: TicketContext, requester: discord.abc.User) -> discord.Embed:
    embed = build_embed(
        "applications",
        "Application ticket",
        f"Opened by {getattr(requester, 'mention', requester)}. Staff will be with you shortly.",
        footer="Snapshot taken when the ticket opened; it does not update.",
    )
    if context.handle:
        embed.add_field(name="Handle", value=context.handle[:1024], inline=True)
    if context.applicant_type is not None:
        embed.add_field(name="Applicant type", value=context.applicant_type.label, inline=True)
    if context.access_blocked:
        embed.add_field(
            name="Note",
            value="This application is linked to another account; details are withheld.",
            inline=False,
        )
    elif context.status or context.next_steps:
        embed.add_field(name="Status", value=context.status or DEFAULT_STATUS, inline=True)
        embed.add_field(
            name="Next Steps", value=(context.next_steps or DEFAULT_NEXT_STEPS)[:1024], inline=False
        )
    embed.timestamp = datetime.now(timezone.utc)
    return embed


def _staff_roles(guild: discord.Guild, role_ids: Iterable[int]) -> list[discord.Role]:
    roles = []
    for role_id in sorted(set(role_ids)):
        role = guild.get_role(role_id)
        if role is not None:
            roles.append(role)
    return roles


def build_overwrites(
    guild: discord.Guild,
    requester: discord.abc.Snowflake,
    staff_role_ids: Iterable[int],
) -> dict:
    allow = discord.PermissionOverwrite(
        view_channel=True,
        send_messages=True,
        read_message_history=True,
        attach_files=True,
    )
    overwrites: dict = {
        guild.default_role: discord.PermissionOverwrite(view_channel=False),
        requester: allow,
    }
    for role in _staff_roles(guild, staff_role_ids):
        overwrites[role] = allow
    me = getattr(guild, "me", None)
    if me is not None:
        overwrites[me] = discord.PermissionOverwrite(
            view_channel=True,
            send_messages=True,
            manage_channels=True,
            read_message_history=True,
        )
    return overwrites


class TicketGateway:
    """Open and close ticket channels. Every call creates a new channel."""

    def __init__(
        self,
        *,
        category_id: Callable[[], Optional[int]] = get_ticket_category_id,
        staff_role_ids: Callable[[], Iterable[int]] = lambda: get_staff_role_ids() | get_admin_role_ids(),
    ) -> None:
        self._category_id = category_id
        self._staff_role_ids = staff_role_ids
        self._warned_no_category = False

    def _category(self, guild: discord.Guild) -> Optional[discord.CategoryChannel]:
        category_id = self._category_id()
        category = guild.get_channel(category_id) if category_id else None
        if isinstance(category, discord.CategoryChannel):
            return category
        if not self._warned_no_category:
            self._warned_no_category = True
            log.warning(
                "ticket category unavailable; creating tickets at guild level",
                extra={"category_id": category_id or 0},
            )
        return None

    async def open_ticket(
        self,
        guild: discord.Guild,
        requester: discord.Member,
        context: TicketContext,
    ) -> discord.TextChannel:
        overwrites = build_overwrites(guild, requester, self._staff_role_ids())
        kwargs = {
            "overwrites": overwrites,
            "topic": ticket_topic(requester.id),
            "reason": f"Application ticket for {requester}",
        }
        category = self._category(guild)
        if category is not None:
            kwargs["category"] = category
        try:
            channel = await guild.create_text_channel(ticket_channel_name(requester), **kwargs)
        except discord.HTTPException as exc:
            raise TicketError(f"Could not create the ticket channel: {human_reason(exc)}") from exc

        try:
            await channel.send(
                content=getattr(requester, "mention", None),
                embed=build_snapshot_embed(context, requester),
                view=TicketCloseView(),
            )
        except discord.HTTPException as exc:
            log.warning(
                "ticket snapshot post failed",
                extra={"channel_id": channel.id, "reason": human_reason(exc)},
            )
        log.info(
            "ticket opened",
            extra={
                "channel_id": channel.id,
                "requester": requester.id,
                "handle": context.handle,
                "access_blocked": context.access_blocked,
            },
        )
        return channel

    async def close_ticket(self, channel: discord.abc.GuildChannel, actor: Actor) -> None:
        if not actor.is_staff:
            raise TicketError("Only staff can close tickets.")
        if not is_ticket_channel(channel):
            raise TicketError("This channel is not an application ticket.")
        try:
            await channel.send(f"🔒 Ticket closed by {actor.label}. This channel will now be deleted.")
        except discord.HTTPException as exc:
            log.warning(
                "ticket close notice failed",
                extra={"channel_id": getattr(channel, "id", None), "reason": human_reason(exc)},
            )
        try:
            await channel.delete(reason=f"Ticket closed by {actor.label}")
        except discord.HTTPException as exc:
            raise TicketError(f"Could not delete the ticket channel: {human_reason(exc)}") from exc
        log.info(
            "ticket closed",
            extra={"channel_id": getattr(channel, "id", None), "actor": actor.id},
        )


__all__ = [
    "TOPIC_PREFIX",
    "TicketContext",
    "TicketError",
    "TicketGateway",
    "build_overwrites",
    "build_snapshot_embed",
    "is_ticket_channel",
    "parse_ticket_owner",
    "ticket_channel_name",
    "ticket_topic",
]
