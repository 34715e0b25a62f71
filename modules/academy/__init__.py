"""Lifeline Academy routines and classroom tools."""

import logging

from discord.ext import commands

from config.runtime import get_scheduler_tick_sec
from modules.common import runtime
from shared.config import get_guild_id

from .cog import AcademyCog

__all__ = ["AcademyCog", "setup"]

log = logging.getLogger("oscar.academy")


async def setup(bot: commands.Bot) -> None:
    """Load the academy cog and start the daily bulletin/prompt clock."""

    cog = AcademyCog(bot)
    await bot.add_cog(cog)
    log.info("Academy cog loaded")

    active = runtime.get_active_runtime()
    if active is None:
        return
    if get_guild_id() is None:
        log.info("daily scheduler disabled: GUILD_ID not set")
        return
    tick = get_scheduler_tick_sec()
    active.scheduler.every(seconds=tick, tag="academy", name="academy_daily").do(cog.daily.tick)
    log.info(
        "daily scheduler active",
        extra={
            "tick_sec": tick,
            "bulletin_hour": cog.daily.bulletin_hour,
            "prompt_hour": cog.daily.prompt_hour,
        },
    )
