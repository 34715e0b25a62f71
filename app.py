from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands

from modules.common.runtime import Runtime
from shared import health as healthmod
from shared.config import (
    get_admin_role_ids,
    get_command_prefix,
    get_discord_token,
    get_env_name,
    get_staff_role_ids,
)
from shared.logfmt import LogTemplates, human_reason, user_label
from shared.logging import set_trace_id

log = logging.getLogger("oscar.app")

INTENTS = discord.Intents.default()
INTENTS.message_content = True
INTENTS.members = True

BANG_PREFIX = get_command_prefix()

bot = commands.Bot(
    command_prefix=commands.when_mentioned_or(BANG_PREFIX),
    intents=INTENTS,
)

runtime = Runtime(bot)


@bot.event
async def on_ready():
    healthmod.set_component("discord", True)
    log.info(
        'Bot ready as %s | env=%s | prefixes=["%s", "@mention"]',
        bot.user,
        get_env_name(),
        BANG_PREFIX,
    )
    log.info(
        "RBAC: admin_role_ids=%s staff_role_ids=%s",
        sorted(get_admin_role_ids()),
        sorted(get_staff_role_ids()),
    )


@bot.event
async def on_disconnect():
    healthmod.set_component("discord", False)


@bot.event
async def on_resumed():
    healthmod.set_component("discord", True)


@bot.event
async def on_message(message: discord.Message):
    if message.author.bot:
        return
    set_trace_id()
    await bot.process_commands(message)


@bot.event
async def on_command_error(ctx: commands.Context, error: Exception):
    cog = ctx.cog
    if cog is not None and cog.has_error_handler():
        return
    if isinstance(error, (commands.CommandNotFound, commands.CheckFailure)):
        return
    log.warning(
        "cmd error: cmd=%s user=%s err=%r",
        getattr(ctx.command, "qualified_name", None),
        getattr(ctx.author, "id", None),
        error,
    )
    try:
        await runtime.send_log_message(
            LogTemplates.command_error(
                command=getattr(ctx.command, "qualified_name", None) or "-",
                actor=user_label(getattr(ctx, "guild", None), getattr(ctx.author, "id", None)),
                reason=human_reason(getattr(error, "original", error)),
            )
        )
    except Exception:
        log.exception("failed to send command error to log channel")


async def main() -> None:
    token = get_discord_token()
    if not token:
        raise RuntimeError("DISCORD_TOKEN not set")
    try:
        await runtime.start(token)
    finally:
        await runtime.close()


if __name__ == "__main__":
    asyncio.run(main())
