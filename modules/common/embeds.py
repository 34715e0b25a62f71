from __future__ import annotations

"""Shared helpers for Discord embeds."""

from typing import Literal

import discord


EmbedCategory = Literal["admin", "applications", "academy", "nurse"]

_COLOURS: dict[EmbedCategory, discord.Colour] = {
    "admin": discord.Colour(0xF200E5),
    "applications": discord.Colour(0x1B8009),
    "academy": discord.Colour(0x3498DB),
    "nurse": discord.Colour(0xE74C3C),
}


def get_embed_colour(category: EmbedCategory) -> discord.Colour:
    """Return the embed colour for the given category."""

    return _COLOURS.get(category, discord.Colour.default())


def build_embed(
    category: EmbedCategory, title: str, description: str = "", *, footer: str | None = None
) -> discord.Embed:
    embed = discord.Embed(
        title=title[:256],
        description=description[:4000] or None,
        colour=get_embed_colour(category),
    )
    if footer:
        embed.set_footer(text=footer[:2048])
    return embed


__all__ = ["EmbedCategory", "build_embed", "get_embed_colour"]
