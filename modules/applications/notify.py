"""Best-effort direct-message delivery for application updates."""

from __future__ import annotations

import logging
from typing import Protocol

import discord

from shared.logfmt import human_reason

__all__ = ["DiscordNotifier", "NotificationDeliveryFailed", "Notifier"]

log = logging.getLogger("oscar.applications.notify")


class NotificationDeliveryFailed(RuntimeError):
    """A direct message could not be delivered."""


class Notifier(Protocol):
    async def notify(self, account_id: object, message: str) -> bool: ...


class DiscordNotifier:
    """Send DMs through the bot client.

    ``deliver`` raises :class:`NotificationDeliveryFailed`; ``notify`` turns
    every failure into ``False`` so callers never have to guard it.
    """

    def __init__(self, bot: discord.Client) -> None:
        self.bot = bot

    async def _resolve_user(self, user_id: int) -> discord.abc.User:
        user = self.bot.get_user(user_id)
        if user is not None:
            return user
        try:
            return await self.bot.fetch_user(user_id)
        except discord.NotFound as exc:
            raise NotificationDeliveryFailed(f"unknown user {user_id}") from exc
        except discord.HTTPException as exc:
            raise NotificationDeliveryFailed(human_reason(exc)) from exc

    async def deliver(self, account_id: object, message: str) -> None:
        try:
            user_id = int(str(account_id).strip())
        except (TypeError, ValueError) as exc:
            raise NotificationDeliveryFailed(f"invalid account id {account_id!r}") from exc
        if user_id <= 0:
            raise NotificationDeliveryFailed(f"invalid account id {account_id!r}")
        user = await self._resolve_user(user_id)
        try:
            await user.send(message[:2000])
        except discord.Forbidden as exc:
            raise NotificationDeliveryFailed("direct messages are closed") from exc
        except discord.HTTPException as exc:
            raise NotificationDeliveryFailed(human_reason(exc)) from exc

    async def notify(self, account_id: object, message: str) -> bool:
        try:
            await self.deliver(account_id, message)
        except NotificationDeliveryFailed as exc:
            log.warning(
                "dm delivery failed",
                extra={"account_id": str(account_id), "reason": str(exc)},
            )
            return False
        log.info("dm delivered", extra={"account_id": str(account_id)})
        return True
