"""Discord commands for application status, decisions, and tickets."""

from __future__ import annotations

import logging
import re
from typing import Optional

import discord
from discord.ext import commands

from modules.common import runtime
from modules.common.rbac import is_staff_member, staff_only
from shared.logfmt import LogTemplates, channel_label, human_reason, user_label
from shared.sheets.applications import ApplicationSheetStore, build_default_store
from shared.sheets.core import ExternalStoreUnavailable, StoreNotConfigured, TabTitleCache

from .followups import FollowupScanner, SignatureNotAllowed
from .models import Actor, ApplicantType, ApplicationNotFound, UnsupportedApplicantType
from .notify import DiscordNotifier, Notifier
from .projector import build_status_embed, project
from .resolver import AccessBlocked, IdentityResolver, NotFound
from .tickets import TicketContext, TicketError, TicketGateway, is_ticket_channel
from .views import COG_NAME, StatusTicketView
from .workflow import ApplicationWorkflow, DecisionResult

log = logging.getLogger("oscar.applications.cog")

_ACCOUNT_RE = re.compile(r"^(?:<@!?(\d+)>|(\d+))$")

STORE_UNAVAILABLE = "The application sheet is unavailable right now. Please try again in a few minutes."
GENERIC_FAILURE = "Something went wrong while handling that command. Staff have been notified."


def parse_account_id(token: str) -> Optional[str]:
    """Accept a mention (``<@123>``/``<@!123>``) or a raw numeric id."""

    match = _ACCOUNT_RE.match((token or "").strip())
    if not match:
        return None
    return match.group(1) or match.group(2)


def _actor(member: object) -> Actor:
    return Actor.from_member(member, is_staff=is_staff_member(member))


class ApplicationsCog(commands.Cog, name=COG_NAME):
    def __init__(
        self,
        bot: commands.Bot,
        *,
        store: ApplicationSheetStore | None = None,
        notifier: Notifier | None = None,
        tickets: TicketGateway | None = None,
    ) -> None:
        self.bot = bot
        self.tab_cache = TabTitleCache()
        self.store = store or build_default_store(self.tab_cache)
        self.notifier = notifier or DiscordNotifier(bot)
        self.resolver = IdentityResolver(self.store)
        self.workflow = ApplicationWorkflow(self.store, self.notifier)
        self.followups = FollowupScanner(self.store, self.notifier)
        self.tickets = tickets or TicketGateway()

    # === Status ===

    @commands.command(
        name="status",
        usage="[student|teacher] [handle]",
        help="Look up an application. With no arguments, shows the one linked to you.",
    )
    async def status(
        self,
        ctx: commands.Context,
        applicant_type: Optional[str] = None,
        *,
        handle: Optional[str] = None,
    ) -> None:
        actor = _actor(ctx.author)
        if applicant_type is not None and not handle:
            await ctx.reply("Usage: `!status <student|teacher> <handle>`", mention_author=False)
            return
        kind = ApplicantType.parse(applicant_type) if applicant_type else None

        async with ctx.typing():
            if kind is None:
                outcome = await self.resolver.resolve_own(actor)
            else:
                outcome = await self.resolver.resolve_by_handle(kind, handle or "", actor=actor)

        if isinstance(outcome, NotFound):
            target = f"a {kind.value} application for **{handle}**" if kind else "an application linked to you"
            await ctx.reply(
                f"I could not find {target}. ({outcome.reason})",
                mention_author=False,
                view=StatusTicketView(
                    owner_id=ctx.author.id,
                    applicant_type=kind.value if kind else None,
                    handle=handle or "",
                ),
            )
            return

        if isinstance(outcome, AccessBlocked):
            await ctx.reply(
                "That application is linked to a different Discord account, so I can't show it "
                "here. If it's yours, open a ticket and staff will sort it out.",
                mention_author=False,
                view=StatusTicketView(
                    owner_id=ctx.author.id,
                    applicant_type=outcome.record.applicant_type.value,
                    handle=handle or "",
                ),
            )
            return

        record = outcome.record
        view = project(record, actor.is_staff)
        await ctx.reply(
            embed=build_status_embed(view),
            mention_author=False,
            view=StatusTicketView(
                owner_id=ctx.author.id,
                applicant_type=record.applicant_type.value,
                handle=record.handle,
            ),
        )

    # === Decisions (staff) ===

    @commands.command(
        name="link",
        usage="<student|teacher> <handle> <@member|id>",
        help="Bind an application to a Discord account.",
    )
    @staff_only()
    async def link(
        self, ctx: commands.Context, applicant_type: str, handle: str, account: str
    ) -> None:
        kind = ApplicantType.parse(applicant_type)
        account_id = parse_account_id(account)
        if account_id is None:
            await ctx.reply("Mention the member or give their numeric Discord id.", mention_author=False)
            return
        async with ctx.typing():
            result = await self.workflow.link_account(kind, handle, account_id, actor=_actor(ctx.author))
        await ctx.reply(
            f"🔗 Linked **{result.handle}** ({kind.value}) to <@{account_id}>.",
            mention_author=False,
        )
        await self._log_decision(ctx, result)

    @commands.command(
        name="approve",
        usage="<student|teacher> <handle> [next steps...]",
        help="Approve an application and DM the applicant.",
    )
    @staff_only()
    async def approve(
        self,
        ctx: commands.Context,
        applicant_type: str,
        handle: str,
        *,
        next_steps: Optional[str] = None,
    ) -> None:
        kind = ApplicantType.parse(applicant_type)
        async with ctx.typing():
            result = await self.workflow.approve(kind, handle, next_steps, actor=_actor(ctx.author))
        await ctx.reply(self._decision_reply("Approved", result), mention_author=False)
        await self._log_decision(ctx, result)

    @commands.command(
        name="deny",
        usage="<student|teacher> <handle> <reason...>",
        help="Deny an application with a reason and DM the applicant.",
    )
    @staff_only()
    async def deny(
        self, ctx: commands.Context, applicant_type: str, handle: str, *, reason: str
    ) -> None:
        kind = ApplicantType.parse(applicant_type)
        async with ctx.typing():
            result = await self.workflow.deny(kind, handle, reason, actor=_actor(ctx.author))
        await ctx.reply(self._decision_reply("Denied", result), mention_author=False)
        await self._log_decision(ctx, result)

    @commands.command(
        name="confirmpayment",
        usage="<handle> [notes...]",
        help="Mark a student's payment as received and complete their enrollment.",
    )
    @staff_only()
    async def confirmpayment(
        self, ctx: commands.Context, handle: str, *, notes: Optional[str] = None
    ) -> None:
        async with ctx.typing():
            result = await self.workflow.confirm_payment(handle, notes, actor=_actor(ctx.author))
        await ctx.reply(self._decision_reply("Enrollment complete for", result), mention_author=False)
        await self._log_decision(ctx, result)

    # === Tickets ===

    @commands.command(
        name="ticket",
        usage="[student|teacher] [handle]",
        help="Open a private channel with staff about your application.",
    )
    async def ticket(
        self,
        ctx: commands.Context,
        applicant_type: Optional[str] = None,
        *,
        handle: Optional[str] = None,
    ) -> None:
        if ctx.guild is None:
            await ctx.reply("Tickets can only be opened inside the server.", mention_author=False)
            return
        kind = ApplicantType.parse(applicant_type) if applicant_type else None
        async with ctx.typing():
            context = await self._ticket_context(ctx.author, kind, handle or "")
            channel = await self.tickets.open_ticket(ctx.guild, ctx.author, context)
        await ctx.reply(f"🎫 Ticket opened: {channel.mention}", mention_author=False)
        await self._log_ticket("opened", ctx.guild, channel.id, ctx.author)

    @commands.command(name="closeticket", help="Close and delete the current ticket channel.")
    @staff_only()
    async def closeticket(self, ctx: commands.Context) -> None:
        if not is_ticket_channel(ctx.channel):
            await ctx.reply("This channel is not an application ticket.", mention_author=False)
            return
        guild = ctx.guild
        channel_id = ctx.channel.id
        label = channel_label(guild, channel_id)
        await self.tickets.close_ticket(ctx.channel, _actor(ctx.author))
        await self._log_ticket("closed", guild, channel_id, ctx.author, label=label)

    # === Follow-ups ===

    @commands.group(name="followups", invoke_without_command=True, help="Student follow-up tools.")
    @staff_only()
    async def followups_group(self, ctx: commands.Context) -> None:
        await ctx.reply("Usage: `!followups scan`", mention_author=False)

    @followups_group.command(name="scan", help="DM linked students whose signature is missing.")
    @staff_only()
    async def followups_scan(self, ctx: commands.Context) -> None:
        async with ctx.typing():
            summary = await self.followups.scan()
        await ctx.reply(
            f"📋 Follow-up scan: {summary.scanned} missing signature • {summary.notified} notified • "
            f"{summary.failed} failed • {summary.skipped} skipped",
            mention_author=False,
        )
        await runtime.send_log_message(
            LogTemplates.followups(
                scanned=summary.scanned,
                notified=summary.notified,
                failed=summary.failed,
                skipped=summary.skipped,
                actor=user_label(ctx.guild, ctx.author.id),
            )
        )

    @commands.command(
        name="signature",
        usage="<handle> <signature...>",
        help="Sign your student application.",
    )
    async def signature(self, ctx: commands.Context, handle: str, *, text: str) -> None:
        async with ctx.typing():
            record = await self.followups.record_signature(handle, text, actor=_actor(ctx.author))
        await ctx.reply(f"✍️ Signature saved for **{record.handle}**. Thank you!", mention_author=False)

    # === Button controller ===

    async def handle_ticket_button(
        self,
        interaction: discord.Interaction,
        *,
        applicant_type: Optional[str],
        handle: str,
    ) -> None:
        guild = interaction.guild
        if guild is None:
            await interaction.response.send_message(
                "Tickets can only be opened inside the server.", ephemeral=True
            )
            return
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            kind = ApplicantType.parse(applicant_type) if applicant_type else None
            context = await self._ticket_context(interaction.user, kind, handle)
            channel = await self.tickets.open_ticket(guild, interaction.user, context)
        except (TicketError, ExternalStoreUnavailable, UnsupportedApplicantType) as exc:
            log.warning("ticket button failed", extra={"reason": human_reason(exc)})
            await interaction.followup.send(self._error_text(exc), ephemeral=True)
            return
        except Exception:
            log.exception("ticket button crashed", extra={"user_id": getattr(interaction.user, "id", None)})
            await interaction.followup.send(GENERIC_FAILURE, ephemeral=True)
            return
        await interaction.followup.send(f"🎫 Ticket opened: {channel.mention}", ephemeral=True)
        await self._log_ticket("opened", guild, channel.id, interaction.user)

    async def handle_close_button(self, interaction: discord.Interaction) -> None:
        actor = _actor(interaction.user)
        if not actor.is_staff:
            await interaction.response.send_message("Only staff can close tickets.", ephemeral=True)
            return
        channel = interaction.channel
        guild = interaction.guild
        channel_id = getattr(channel, "id", None)
        label = channel_label(guild, channel_id)
        await interaction.response.defer()
        try:
            await self.tickets.close_ticket(channel, actor)
        except TicketError as exc:
            await interaction.followup.send(str(exc), ephemeral=True)
            return
        except Exception:
            log.exception("ticket close button crashed", extra={"channel_id": channel_id})
            await interaction.followup.send(GENERIC_FAILURE, ephemeral=True)
            return
        await self._log_ticket("closed", guild, channel_id, interaction.user, label=label)

    # === Internal helpers ===

    async def _ticket_context(
        self, member: object, kind: Optional[ApplicantType], handle: str
    ) -> TicketContext:
        if kind is None or not handle:
            return TicketContext(applicant_type=kind, handle=handle)
        outcome = await self.resolver.resolve_by_handle(kind, handle, actor=_actor(member))
        return TicketContext.from_resolution(kind, handle, outcome)

    def _decision_reply(self, verb: str, result: DecisionResult) -> str:
        head = f"✅ {verb} **{result.handle}** ({result.applicant_type.value})."
        if result.notified and result.notified_actor_instead:
            return f"{head} No account is linked yet, so the applicant's message was DMed to you."
        if result.notified:
            return f"{head} The applicant has been notified."
        return f"{head} ⚠️ The sheet is updated, but the DM could not be delivered."

    async def _log_decision(self, ctx: commands.Context, result: DecisionResult) -> None:
        await runtime.send_log_message(
            LogTemplates.decision(
                action=result.action,
                applicant_type=result.applicant_type.value,
                handle=result.handle,
                actor=user_label(ctx.guild, ctx.author.id),
                notified=result.notified is not False,
            )
        )

    async def _log_ticket(
        self,
        action: str,
        guild: Optional[discord.Guild],
        channel_id: Optional[int],
        user: discord.abc.User,
        *,
        label: Optional[str] = None,
    ) -> None:
        await runtime.send_log_message(
            LogTemplates.ticket(
                action=action,
                channel=label or channel_label(guild, channel_id),
                actor=user_label(guild, getattr(user, "id", None)),
            )
        )

    def _error_text(self, error: BaseException) -> str:
        if isinstance(error, StoreNotConfigured):
            return "That application sheet isn't configured yet. Please let an admin know."
        if isinstance(error, ExternalStoreUnavailable):
            return STORE_UNAVAILABLE
        if isinstance(error, ApplicationNotFound):
            return f"I could not find a {error.applicant_type.value} application for **{error.handle}**."
        if isinstance(error, (UnsupportedApplicantType, TicketError, SignatureNotAllowed, ValueError)):
            return str(error)
        return GENERIC_FAILURE

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
        text = self._error_text(original)
        if isinstance(original, ExternalStoreUnavailable):
            log.error(
                "application store unavailable",
                extra={"command": ctx.command.qualified_name, "reason": human_reason(original)},
            )
            await runtime.send_log_message(
                LogTemplates.command_error(
                    command=ctx.command.qualified_name,
                    actor=user_label(ctx.guild, ctx.author.id),
                    reason=human_reason(original),
                )
            )
        elif text == GENERIC_FAILURE:
            log.error(
                "application command failed",
                exc_info=(type(original), original, original.__traceback__),
                extra={"command": getattr(ctx.command, "qualified_name", "?")},
            )
            await runtime.send_log_message(
                LogTemplates.command_error(
                    command=getattr(ctx.command, "qualified_name", "?"),
                    actor=user_label(ctx.guild, ctx.author.id),
                    reason=human_reason(original),
                )
            )
        try:
            await ctx.reply(text, mention_author=False)
        except discord.HTTPException:
            log.warning("error reply failed", extra={"command": getattr(ctx.command, "qualified_name", "?")})


__all__ = ["ApplicationsCog", "parse_account_id"]
