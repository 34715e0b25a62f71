"""Buttons attached to status replies and ticket channels."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import discord

log = logging.getLogger("oscar.applications.views")

CLOSE_TICKET_CUSTOM_ID = "oscar:ticket:close"
COG_NAME = "Applications"


class TicketButtonController(Protocol):
    async def handle_ticket_button(
        self,
        interaction: discord.Interaction,
        *,
        applicant_type: Optional[str],
        handle: str,
    ) -> None: ...

    async def handle_close_button(self, interaction: discord.Interaction) -> None: ...


def _controller(interaction: discord.Interaction) -> Optional[TicketButtonController]:
    client = interaction.client
    getter = getattr(client, "get_cog", None)
    return getter(COG_NAME) if callable(getter) else None


async def _unavailable(interaction: discord.Interaction) -> None:
    log.warning("applications cog missing for button interaction")
    await interaction.response.send_message(
        "Tickets are unavailable right now. Please try again later.", ephemeral=True
    )


class StatusTicketView(discord.ui.View):
    """Ticket button shown under a status reply."""

    def __init__(
        self,
        *,
        owner_id: int,
        applicant_type: Optional[str],
        handle: str,
        timeout: float | None = 600,
    ) -> None:
        super().__init__(timeout=timeout)
        self.owner_id = owner_id
        self.applicant_type = applicant_type
        self.handle = handle

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if getattr(interaction.user, "id", None) == self.owner_id:
            return True
        await interaction.response.send_message(
            "Only the member who ran this lookup can open a ticket from it.", ephemeral=True
        )
        return False

    @discord.ui.button(label="Open a ticket", style=discord.ButtonStyle.primary, emoji="🎫")
    async def open_ticket_button(
        self, interaction: discord.Interaction, button: discord.ui.Button
    ) -> None:
        controller = _controller(interaction)
        if controller is None:
            await _unavailable(interaction)
            return
        await controller.handle_ticket_button(
            interaction, applicant_type=self.applicant_type, handle=self.handle
        )


class TicketCloseView(discord.ui.View):
    """Persistent close button posted in every ticket channel."""

    def __init__(self) -> None:
        super().__init__(timeout=None)

    @discord.ui.button(
        label="Close",
        style=discord.ButtonStyle.danger,
        emoji="🔒",
        custom_id=CLOSE_TICKET_CUSTOM_ID,
    )
    async def close_button(
        self, interaction: discord.Interaction, button: discord.ui.Button
    ) -> None:
        controller = _controller(interaction)
        if controller is None:
            await _unavailable(interaction)
            return
        await controller.handle_close_button(interaction)


def register_persistent_views(bot: discord.Client) -> None:
    try:
        bot.add_view(TicketCloseView())
    except Exception:
        log.warning("failed to register persistent ticket close view", exc_info=True)


__all__ = [
    "CLOSE_TICKET_CUSTOM_ID",
    "COG_NAME",
    "StatusTicketView",
    "TicketCloseView",
    "register_persistent_views",
]
