"""Academy routines: schedule, bulletins, prompts, classroom tools."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional, Set

import discord
from discord.ext import commands

from modules.applications.notify import DiscordNotifier, Notifier
from modules.common import runtime
from modules.common.embeds import build_embed
from modules.common.rbac import admin_only, in_academy_scope, is_teacher, nurse_only, teacher_only
from shared import config as app_config
from shared.logfmt import LogTemplates, human_reason, user_label

from .bulletin import (
    DailyScheduler,
    PromptDeck,
    build_prompt_embed,
    fetch_text_channel,
)
from .classroom import (
    AttendanceBook,
    ClassroomError,
    PointsLedger,
    session_totals_text,
)
from .lessons import (
    check_timer_minutes,
    lesson_template,
    make_groups,
    parse_mentions,
    worksheet_text,
)
from .nurse import NurseQueue
from .passes import PASS_REASONS, PassDesk, PassError
from .posts import INFO_POSTS, PORTAL_MISSING, build_portal_embed
from .schedule import ScheduleBook, ScheduleError, format_blocks, normalize_day

log = logging.getLogger("oscar.academy.cog")

COG_NAME = "Academy"
ERROR_REPLY = "Oscar hit an error while processing that."
SCOPE_DENIAL = "Oscar only works inside the Lifeline Academy channels."
_SCOPE_EXEMPT = {"oscar", "oscar ping", "oscar help", "oscar portal"}
EVERYONE_FLAG = "--everyone"


def _mapping(value: Optional[int]) -> str:
    return f"<#{value}>" if value else "Not set"


def _ids(values: Iterable[int]) -> str:
    text = ", ".join(str(value) for value in sorted(values))
    return text or "Not set"


def _split_pipe(text: str) -> tuple[str, str]:
    head, sep, tail = (text or "").partition("|")
    if not sep:
        return "", ""
    return head.strip(), tail.strip()


class AcademyCog(commands.Cog, name=COG_NAME):
    def __init__(
        self,
        bot: commands.Bot,
        *,
        data_dir: Path | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.bot = bot
        root = Path(data_dir) if data_dir is not None else app_config.get_data_dir()
        self.notifier = notifier or DiscordNotifier(bot)
        self.schedule = ScheduleBook(root)
        self.prompts = PromptDeck(root)
        self.attendance = AttendanceBook(root)
        self.points = PointsLedger(root)
        self.passes = PassDesk(root, self.notifier)
        self.nurse_queue = NurseQueue(root)
        self._timers: Set[asyncio.Task] = set()
        self._sleep: Callable[[float], Awaitable[object]] = asyncio.sleep
        self.daily = DailyScheduler(
            bot,
            self.schedule,
            self.prompts,
            timezone_name=app_config.get_timezone(),
            bulletin_hour=app_config.get_daily_bulletin_hour(),
            prompt_hour=app_config.get_daily_prompt_hour(),
            calendar_channel_id=app_config.get_calendar_channel_id,
            lounge_channel_id=app_config.get_student_lounge_channel_id,
            send_log=runtime.send_log_message,
        )

    async def cog_unload(self) -> None:
        for task in list(self._timers):
            task.cancel()
        self._timers.clear()

    async def cog_check(self, ctx: commands.Context) -> bool:
        command = ctx.command.qualified_name if ctx.command else ""
        if command in _SCOPE_EXEMPT or in_academy_scope(ctx.channel):
            return True
        try:
            await ctx.reply(SCOPE_DENIAL, mention_author=False)
        except discord.HTTPException:
            pass
        raise commands.CheckFailure(SCOPE_DENIAL)

    # === !oscar ===

    @commands.group(name="oscar", invoke_without_command=True, help="Oscar core tools.")
    async def oscar(self, ctx: commands.Context) -> None:
        await ctx.reply(f"Try `{ctx.prefix}oscar help`.", mention_author=False)

    @oscar.command(name="ping", help="Check that Oscar is awake.")
    async def oscar_ping(self, ctx: commands.Context) -> None:
        await ctx.reply("✅ Oscar is awake. (Academy systems online)", mention_author=False)

    @oscar.command(name="help", help="Show what Oscar can do.")
    async def oscar_help(self, ctx: commands.Context) -> None:
        p = ctx.prefix or app_config.get_command_prefix()
        embed = build_embed(
            "academy",
            "Oscar Help",
            "Oscar runs **Lifeline Academy** routines, schedules, prompts, and classroom tools.",
        )
        embed.add_field(
            name="Student",
            value=(
                f"`{p}student here` `{p}student pass` `{p}schedule today` `{p}status` "
                f"`{p}nurse checkin` `{p}oscar portal`"
            ),
            inline=False,
        )
        embed.add_field(
            name="Teacher",
            value=(
                f"`{p}class attendance_start` `{p}class attendance_close` `{p}class points add` "
                f"`{p}class timer` `{p}class groups` `{p}class shoutout` `{p}class lesson_post` "
                f"`{p}class worksheet_post` `{p}schedule set` `{p}oscar announce` `{p}oscar bulletin` "
                f"`{p}oscar welcome_post` `{p}oscar rules_post` `{p}oscar handbook_post` "
                f"`{p}oscar enrollment_post`"
            ),
            inline=False,
        )
        embed.add_field(
            name="Staff",
            value=(
                f"`{p}staff pass_decide` `{p}approve` `{p}deny` `{p}confirmpayment` "
                f"`{p}link` `{p}followups scan`"
            ),
            inline=False,
        )
        await ctx.reply(embed=embed, mention_author=False)

    @oscar.command(name="config", help="Show the channel and role mapping.")
    @teacher_only()
    async def oscar_config(self, ctx: commands.Context) -> None:
        embed = build_embed("admin", "Oscar Config", "Current environment mapping (IDs):")
        allowed = app_config.get_allowed_category_ids()
        embed.add_field(
            name="Allowed Category IDs",
            value=_ids(allowed) if allowed else "Not set (all channels allowed)",
            inline=False,
        )
        embed.add_field(name="Log Channel", value=_mapping(app_config.get_log_channel_id()))
        embed.add_field(name="Announcements", value=_mapping(app_config.get_announce_channel_id()))
        embed.add_field(name="Calendar", value=_mapping(app_config.get_calendar_channel_id()))
        embed.add_field(
            name="Student Lounge", value=_mapping(app_config.get_student_lounge_channel_id())
        )
        embed.add_field(name="Welcome", value=_mapping(app_config.get_welcome_channel_id()))
        embed.add_field(name="Rules", value=_mapping(app_config.get_rules_channel_id()))
        embed.add_field(name="Handbook", value=_mapping(app_config.get_handbook_channel_id()))
        embed.add_field(name="Enrollment", value=_mapping(app_config.get_enrollment_channel_id()))
        embed.add_field(name="Pictures", value=_mapping(app_config.get_pictures_channel_id()))
        embed.add_field(name="Ticket Category", value=str(app_config.get_ticket_category_id() or "Not set"))
        embed.add_field(name="Admin Roles", value=_ids(app_config.get_admin_role_ids()))
        embed.add_field(name="Staff Roles", value=_ids(app_config.get_staff_role_ids()))
        embed.add_field(name="Teacher Roles", value=_ids(app_config.get_teacher_role_ids()))
        embed.add_field(name="Nurse Roles", value=_ids(app_config.get_nurse_role_ids()))
        embed.set_footer(
            text=(
                f"timezone={app_config.get_timezone()} • bulletin={app_config.get_daily_bulletin_hour():02d}:00"
                f" • prompt={app_config.get_daily_prompt_hour():02d}:00"
            )
        )
        await ctx.reply(embed=embed, mention_author=False)

    @oscar.command(
        name="announce",
        usage="[--everyone] <title> | <message>",
        help="Post an announcement; --everyone pings the server.",
    )
    @teacher_only()
    async def oscar_announce(self, ctx: commands.Context, *, text: str) -> None:
        ping_everyone = False
        if text.strip().lower().startswith(EVERYONE_FLAG):
            ping_everyone = True
            text = text.strip()[len(EVERYONE_FLAG) :]
        title, message = _split_pipe(text)
        if not title or not message:
            await ctx.reply(
                f"Usage: `{ctx.prefix}oscar announce [--everyone] <title> | <message>`",
                mention_author=False,
            )
            return
        channel = await fetch_text_channel(self.bot, app_config.get_announce_channel_id()) or ctx.channel
        if not isinstance(channel, discord.TextChannel):
            await ctx.reply("❌ Announcement channel not available.", mention_author=False)
            return
        await channel.send(
            content="@everyone" if ping_everyone else None,
            embed=build_embed("academy", title[:200], message[:3500]),
            allowed_mentions=discord.AllowedMentions(everyone=ping_everyone),
        )
        await ctx.reply("✅ Announcement posted.", mention_author=False)
        await self._audit(ctx, "announcement", f"{title[:200]} • everyone={'yes' if ping_everyone else 'no'}")

    @oscar.command(name="bulletin", usage="<message>", help="Post a bulletin to the calendar channel.")
    @teacher_only()
    async def oscar_bulletin(self, ctx: commands.Context, *, message: str) -> None:
        channel = await fetch_text_channel(self.bot, app_config.get_calendar_channel_id()) or ctx.channel
        if not isinstance(channel, discord.TextChannel):
            await ctx.reply("❌ Calendar channel not available.", mention_author=False)
            return
        await channel.send(embed=build_embed("academy", "Daily Bulletin", message[:3500]))
        await ctx.reply("✅ Bulletin posted.", mention_author=False)
        await self._audit(ctx, "bulletin", f"channel={channel.id}")

    @oscar.command(name="prompt", usage="[post]", help="Get a random RP prompt, or post one.")
    async def oscar_prompt(self, ctx: commands.Context, mode: Optional[str] = None) -> None:
        embed = build_prompt_embed(self.prompts.pick())
        if (mode or "").strip().lower() != "post":
            await ctx.reply(embed=embed, mention_author=False)
            return
        if not is_teacher(ctx):
            await ctx.reply("Teachers only.", mention_author=False)
            return
        channel = (
            await fetch_text_channel(self.bot, app_config.get_student_lounge_channel_id()) or ctx.channel
        )
        if not isinstance(channel, discord.TextChannel):
            await ctx.reply("❌ Student lounge channel not available.", mention_author=False)
            return
        await channel.send(embed=embed)
        self.prompts.mark_posted()
        await ctx.reply("✅ Prompt posted.", mention_author=False)
        await self._audit(ctx, "prompt", f"channel={channel.id}")

    @oscar.command(name="welcome_post", help="Post the welcome embed.")
    @teacher_only()
    async def oscar_welcome_post(self, ctx: commands.Context) -> None:
        await self._info_post(ctx, "welcome")

    @oscar.command(name="rules_post", help="Post the rules embed.")
    @teacher_only()
    async def oscar_rules_post(self, ctx: commands.Context) -> None:
        await self._info_post(ctx, "rules")

    @oscar.command(name="handbook_post", help="Post the handbook info.")
    @teacher_only()
    async def oscar_handbook_post(self, ctx: commands.Context) -> None:
        await self._info_post(ctx, "handbook")

    @oscar.command(name="enrollment_post", help="Post the enrollment info.")
    @teacher_only()
    async def oscar_enrollment_post(self, ctx: commands.Context) -> None:
        await self._info_post(ctx, "enrollment")

    @oscar.command(
        name="portal",
        usage=f"<{'|'.join(app_config.PORTAL_KINDS)}>",
        help="Get the right portal link.",
    )
    async def oscar_portal(self, ctx: commands.Context, kind: str) -> None:
        if kind.strip().lower() not in app_config.PORTAL_KINDS:
            await ctx.reply(
                f"Usage: `{ctx.prefix}oscar portal <{'|'.join(app_config.PORTAL_KINDS)}>`",
                mention_author=False,
            )
            return
        embed = build_portal_embed(kind)
        if embed is None:
            await ctx.reply(PORTAL_MISSING, mention_author=False)
            return
        await ctx.reply(embed=embed, mention_author=False)

    # === !schedule ===

    @commands.group(name="schedule", invoke_without_command=True, help="Academy class schedule.")
    async def schedule_group(self, ctx: commands.Context) -> None:
        await ctx.reply(
            f"Usage: `{ctx.prefix}schedule today|week|set|clear`", mention_author=False
        )

    @schedule_group.command(name="today", help="Show today's schedule.")
    async def schedule_today(self, ctx: commands.Context) -> None:
        day = self.daily.now().strftime("%A")
        embed = build_embed("academy", "Today's Schedule", f"**{day}**")
        embed.add_field(name="Blocks", value=format_blocks(self.schedule.blocks_for(day))[:1024])
        await ctx.reply(embed=embed, mention_author=False)

    @schedule_group.command(name="week", help="Show the Monday to Friday schedule.")
    async def schedule_week(self, ctx: commands.Context) -> None:
        embed = build_embed("academy", "Weekly Schedule", "Lifeline Academy weekly overview.")
        for day, blocks in self.schedule.week().items():
            embed.add_field(name=day, value=format_blocks(blocks)[:1024], inline=False)
        await ctx.reply(embed=embed, mention_author=False)

    @schedule_group.command(
        name="set",
        usage="<day> [position] <label> | <details>",
        help="Add a block to a day's schedule.",
    )
    @teacher_only()
    async def schedule_set(
        self,
        ctx: commands.Context,
        day: str,
        position: Optional[int] = None,
        *,
        text: str,
    ) -> None:
        label, details = _split_pipe(text)
        actor = str(ctx.author)
        slot = self.schedule.add_block(day, label, details, position=position, actor=actor)
        day_name = normalize_day(day)
        await ctx.reply(
            f"✅ Added schedule block for **{day_name}** at position {slot}.", mention_author=False
        )
        await self._audit(ctx, "schedule set", f"day={day_name} • label={label}")

    @schedule_group.command(name="clear", usage="<day>", help="Clear a day's schedule.")
    @admin_only()
    async def schedule_clear(self, ctx: commands.Context, day: str) -> None:
        removed = self.schedule.clear_day(day, actor=str(ctx.author))
        day_name = normalize_day(day)
        await ctx.reply(
            f"✅ Cleared schedule for **{day_name}** ({removed} block(s) removed).",
            mention_author=False,
        )
        await self._audit(ctx, "schedule clear", f"day={day_name} • removed={removed}")

    # === !class ===

    @commands.group(name="class", invoke_without_command=True, help="Teacher classroom tools.")
    @teacher_only()
    async def class_group(self, ctx: commands.Context) -> None:
        await ctx.reply(
            f"Usage: `{ctx.prefix}class attendance_start|attendance_close|points|timer|groups|"
            "shoutout|lesson_post|worksheet_post`",
            mention_author=False,
        )

    @class_group.command(name="attendance_start", usage="<class name>", help="Open attendance.")
    @teacher_only()
    async def attendance_start(self, ctx: commands.Context, *, class_name: str) -> None:
        session_id = self.attendance.start(
            class_name,
            channel_id=ctx.channel.id,
            teacher_id=ctx.author.id,
            teacher=str(ctx.author),
        )
        embed = build_embed(
            "academy",
            "Attendance Open",
            f"**Class:** {class_name[:200]}\n**Session ID:** `{session_id}`\n\n"
            f"Students use:\n`{ctx.prefix}student here {session_id} present`",
        )
        await ctx.reply(embed=embed, mention_author=False)
        await self._audit(ctx, "attendance start", f"session={session_id}")

    @class_group.command(name="attendance_close", usage="<session_id>", help="Close attendance.")
    @teacher_only()
    async def attendance_close(self, ctx: commands.Context, session_id: str) -> None:
        totals = self.attendance.close(session_id)
        embed = build_embed(
            "academy",
            "Attendance Closed",
            f"**Class:** {totals.class_name}\n**Session ID:** `{totals.session_id}`",
        )
        embed.add_field(name="Totals", value=session_totals_text(totals))
        await ctx.reply(embed=embed, mention_author=False)
        await self._audit(
            ctx,
            "attendance close",
            f"session={totals.session_id} • present={totals.present} • late={totals.late} • excused={totals.excused}",
        )

    @class_group.group(name="points", invoke_without_command=True, help="House points.")
    async def points_group(self, ctx: commands.Context) -> None:
        await ctx.reply(f"Usage: `{ctx.prefix}class points add|leaderboard`", mention_author=False)

    @points_group.command(name="add", usage="<@member> <amount> <reason>", help="Award or remove points.")
    @teacher_only()
    async def points_add(
        self, ctx: commands.Context, member: discord.Member, amount: int, *, reason: str
    ) -> None:
        total = self.points.add(member.id, amount, reason, actor=str(ctx.author))
        await ctx.reply(
            f"✅ Updated points for **{member.display_name}** by **{amount}** (total {total}).",
            mention_author=False,
        )
        await self._audit(ctx, "points", f"member={member.id} • delta={amount} • total={total}")

    @points_group.command(name="leaderboard", help="Top students by points.")
    @teacher_only()
    async def points_leaderboard(self, ctx: commands.Context) -> None:
        ranked = self.points.leaderboard()
        if not ranked:
            await ctx.reply("No points recorded yet.", mention_author=False)
            return
        lines = [f"**{idx}.** <@{uid}>: **{total}** pts" for idx, (uid, total) in enumerate(ranked, 1)]
        embed = build_embed("academy", "Points Leaderboard", "Top students by points")
        embed.add_field(name="Leaderboard", value="\n".join(lines)[:1024])
        await ctx.reply(embed=embed, mention_author=False)

    @class_group.command(name="timer", usage="<minutes 1-60> [label]", help="Start a class timer.")
    @teacher_only()
    async def class_timer(
        self, ctx: commands.Context, minutes: int, *, label: Optional[str] = None
    ) -> None:
        minutes = check_timer_minutes(minutes)
        label = (label or "Class Timer").strip()[:200] or "Class Timer"
        await ctx.reply(f"⏳ **{label}** started for **{minutes} minute(s)**.", mention_author=False)
        task = asyncio.create_task(self._run_timer(ctx, label, minutes), name=f"class_timer:{label}")
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)

    @class_group.command(name="groups", usage="<size 2-10> <@members...>", help="Make random groups.")
    @teacher_only()
    async def class_groups(self, ctx: commands.Context, size: int, *, mentions: str) -> None:
        groups = make_groups(parse_mentions(mentions), size)
        lines = [
            f"**Group {idx}:** {' '.join(f'<@{uid}>' for uid in group)}"
            for idx, group in enumerate(groups, 1)
        ]
        embed = build_embed("academy", "Random Groups", f"Group size: **{size}**")
        embed.add_field(name="Groups", value="\n".join(lines)[:1024])
        await ctx.reply(embed=embed, mention_author=False)
        await self._audit(ctx, "groups", f"size={size} • groups={len(groups)}")

    @class_group.command(name="shoutout", usage="<@member> <reason>", help="Spotlight a student.")
    @teacher_only()
    async def class_shoutout(
        self, ctx: commands.Context, member: discord.Member, *, reason: str
    ) -> None:
        channel = await fetch_text_channel(self.bot, app_config.get_pictures_channel_id()) or ctx.channel
        if not isinstance(channel, discord.TextChannel):
            await ctx.reply("❌ Pictures channel not available.", mention_author=False)
            return
        embed = build_embed(
            "academy",
            "Student Spotlight",
            f"🌟 Spotlight: {member.mention}\n\n**Reason:** {reason[:400]}",
        )
        embed.add_field(name="Recognized By", value=ctx.author.mention, inline=True)
        await channel.send(embed=embed)
        await ctx.reply("✅ Spotlight posted.", mention_author=False)
        await self._audit(ctx, "shoutout", f"student={member.id}")

    @class_group.command(
        name="lesson_post",
        usage="<title> | <grade> | <subject> | <quarter>",
        help="Post a lesson plan template.",
    )
    @teacher_only()
    async def class_lesson_post(self, ctx: commands.Context, *, text: str) -> None:
        parts = [part.strip() for part in text.split("|")]
        if len(parts) != 4 or not all(parts):
            await ctx.reply(
                f"Usage: `{ctx.prefix}class lesson_post <title> | <grade> | <subject> | <quarter>`",
                mention_author=False,
            )
            return
        await ctx.send(lesson_template(*parts))

    @class_group.command(
        name="worksheet_post", usage="<title> | <notes>", help="Post worksheet instructions."
    )
    @teacher_only()
    async def class_worksheet_post(self, ctx: commands.Context, *, text: str) -> None:
        title, notes = _split_pipe(text)
        if not title or not notes:
            await ctx.reply(
                f"Usage: `{ctx.prefix}class worksheet_post <title> | <notes>`", mention_author=False
            )
            return
        await ctx.send(worksheet_text(title, notes))

    # === !student ===

    @commands.group(name="student", invoke_without_command=True, help="Student tools.")
    async def student_group(self, ctx: commands.Context) -> None:
        await ctx.reply(f"Usage: `{ctx.prefix}student here|pass`", mention_author=False)

    @student_group.command(
        name="here",
        usage="<session_id> <present|late|excused>",
        help="Mark your attendance.",
    )
    async def student_here(self, ctx: commands.Context, session_id: str, status: str = "present") -> None:
        marked = self.attendance.mark(session_id, ctx.author.id, status)
        await ctx.reply(
            f"✅ Marked **{marked}** for session `{session_id.strip().upper()}`.", mention_author=False
        )
        await self._audit(ctx, "attendance mark", f"session={session_id.strip().upper()} • status={marked}")

    @student_group.command(
        name="pass",
        usage=f"<{'|'.join(PASS_REASONS)}> [details]",
        help="Request a hall pass.",
    )
    async def student_pass(
        self, ctx: commands.Context, reason: str, *, details: Optional[str] = None
    ) -> None:
        pass_id = self.passes.request(ctx.author.id, str(ctx.author), reason, details or "")
        await ctx.reply(
            f"✅ Pass request submitted.\n**Pass ID:** `{pass_id}`\nStaff will review shortly.",
            mention_author=False,
        )
        await self._audit(ctx, "pass request", f"pass={pass_id} • reason={reason.lower()}")

    # === !staff ===

    @commands.group(name="staff", invoke_without_command=True, help="Staff tools.")
    @teacher_only()
    async def staff_group(self, ctx: commands.Context) -> None:
        await ctx.reply(f"Usage: `{ctx.prefix}staff pass_decide`", mention_author=False)

    @staff_group.command(
        name="pass_decide",
        usage="<pass_id> <approved|denied> [notes]",
        help="Approve or deny a hall pass.",
    )
    @teacher_only()
    async def pass_decide(
        self,
        ctx: commands.Context,
        pass_id: str,
        decision: str,
        *,
        notes: Optional[str] = None,
    ) -> None:
        result = await self.passes.decide(pass_id, decision, notes or "", actor=str(ctx.author))
        tail = "and the student was notified." if result.notified else "but the DM could not be delivered."
        await ctx.reply(
            f"✅ Pass **{result.pass_id}** marked **{result.decision}** {tail}", mention_author=False
        )
        await self._audit(
            ctx,
            "pass decide",
            f"pass={result.pass_id} • decision={result.decision} • dm={'sent' if result.notified else 'failed'}",
        )

    # === !nurse ===

    @commands.group(name="nurse", invoke_without_command=True, help="Nurse office queue.")
    async def nurse_group(self, ctx: commands.Context) -> None:
        await ctx.reply(f"Usage: `{ctx.prefix}nurse checkin|next`", mention_author=False)

    @nurse_group.command(name="checkin", usage="<reason>", help="Check in with the nurse.")
    async def nurse_checkin(self, ctx: commands.Context, *, reason: str) -> None:
        place = self.nurse_queue.check_in(ctx.author.id, str(ctx.author), reason)
        await ctx.reply(
            f"✅ You’re checked in (#{place} in line). Please wait to be called.",
            mention_author=False,
        )
        await self._audit(ctx, "nurse checkin", f"place={place}")

    @nurse_group.command(name="next", help="Call the next student in the queue.")
    @nurse_only()
    async def nurse_next(self, ctx: commands.Context) -> None:
        entry = self.nurse_queue.pop_next()
        if entry is None:
            await ctx.reply("Queue is empty.", mention_author=False)
            return
        await ctx.send(f"🏥 **Nurse is ready for:** <@{entry.user_id}> ({entry.reason})")
        await self._audit(ctx, "nurse next", f"student={entry.user_id}")

    # === Internal helpers ===

    async def _info_post(self, ctx: commands.Context, key: str) -> None:
        post = INFO_POSTS[key]
        channel = await fetch_text_channel(self.bot, post.channel_id())
        if channel is None:
            await ctx.reply(f"❌ {post.label} channel not set.", mention_author=False)
            return
        await channel.send(embed=post.build())
        await ctx.reply(f"✅ {post.label} posted.", mention_author=False)
        await self._audit(ctx, f"{key} post", f"channel={channel.id}")

    async def _run_timer(self, ctx: commands.Context, label: str, minutes: int) -> None:
        await self._sleep(minutes * 60)
        try:
            await ctx.send(f"⏰ **Time's up!** ({label})")
        except discord.HTTPException as exc:
            log.warning("class timer post failed", extra={"label": label, "reason": human_reason(exc)})

    async def _audit(self, ctx: commands.Context, action: str, detail: str) -> None:
        await runtime.send_log_message(
            LogTemplates.classroom(
                action=action,
                detail=detail,
                actor=user_label(ctx.guild, ctx.author.id),
            )
        )

    async def cog_command_error(self, ctx: commands.Context, error: Exception) -> None:
        if isinstance(error, commands.CheckFailure):
            return
        if isinstance(error, commands.MissingRequiredArgument):
            usage = f"{ctx.prefix}{ctx.command.qualified_name} {ctx.command.usage or ''}".strip()
            await ctx.reply(f"Usage: `{usage}`", mention_author=False)
            return
        if isinstance(error, commands.UserInputError):
            await ctx.reply(str(error), mention_author=False)
            return

        original = getattr(error, "original", error)
        if isinstance(original, (ScheduleError, ClassroomError, PassError, ValueError)):
            await ctx.reply(f"❌ {original}", mention_author=False)
            return

        command = getattr(ctx.command, "qualified_name", "?")
        log.error(
            "academy command failed",
            exc_info=(type(original), original, original.__traceback__),
            extra={"command": command},
        )
        await runtime.send_log_message(
            LogTemplates.command_error(
                command=command,
                actor=user_label(ctx.guild, ctx.author.id),
                reason=human_reason(original),
            )
        )
        try:
            await ctx.reply(ERROR_REPLY, mention_author=False)
        except discord.HTTPException:
            log.warning("error reply failed", extra={"command": command})


__all__ = ["AcademyCog", "COG_NAME", "ERROR_REPLY", "SCOPE_DENIAL"]
