"""Application status, decisions, tickets and follow-ups."""

import logging

from discord.ext import commands

from .cog import ApplicationsCog
from .views import register_persistent_views

__all__ = ["ApplicationsCog", "setup"]


async def setup(bot: commands.Bot) -> None:
    """Load the applications cog and its persistent ticket button."""

    await bot.add_cog(ApplicationsCog(bot))
    register_persistent_views(bot)
    logging.getLogger("oscar.applications.cog").info("Applications cog loaded")
