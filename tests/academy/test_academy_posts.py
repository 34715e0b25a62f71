import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from modules.academy import cog as cog_module
from modules.academy.cog import AcademyCog
from modules.academy.posts import PORTAL_MISSING
from modules.common import runtime as runtime_helpers
from shared import config as app_config
from shared.testing.fakes import FakeNotifier


class FakeMember:
    def __init__(self, user_id: int, name: str = "member") -> None:
        self.id = user_id
        self.name = name
        self.display_name = name
        self.mention = f"<@{user_id}>"

    def __str__(self) -> str:
        return self.name


def _ctx(author: FakeMember, command_name: str):
    ctx = SimpleNamespace()
    ctx.author = author
    ctx.guild = None
    ctx.prefix = "!"
    ctx.channel = SimpleNamespace(id=321, category_id=None)
    ctx.reply = AsyncMock()
    ctx.send = AsyncMock()
    ctx.command = SimpleNamespace(qualified_name=command_name, usage="")
    return ctx


def _text_channel(channel_id: int = 900):
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = channel_id
    channel.send = AsyncMock()
    return channel


@pytest.fixture
def academy(tmp_path, monkeypatch):
    logs: list[str] = []

    async def fake_log(message: str) -> None:
        logs.append(message)

    monkeypatch.setattr(runtime_helpers, "send_log_message", fake_log)
    cog = AcademyCog(object(), data_dir=tmp_path, notifier=FakeNotifier())
    return SimpleNamespace(cog=cog, logs=logs)


def _route_channels(monkeypatch, channel):
    async def fake_fetch(_bot, _channel_id):
        return channel

    monkeypatch.setattr(cog_module, "fetch_text_channel", fake_fetch)


def test_welcome_post_goes_to_configured_channel(academy, monkeypatch):
    cog = academy.cog
    channel = _text_channel()
    _route_channels(monkeypatch, channel)

    async def runner():
        ctx = _ctx(FakeMember(2, "Ms. Park"), "oscar welcome_post")
        await cog.oscar_welcome_post.callback(cog, ctx)
        return ctx

    ctx = asyncio.run(runner())
    embed = channel.send.await_args.kwargs["embed"]
    assert embed.title == "Welcome to Lifeline Academy"
    ctx.reply.assert_awaited_once_with("✅ Welcome posted.", mention_author=False)
    assert any("welcome post" in line for line in academy.logs)


@pytest.mark.parametrize(
    "command, label",
    [
        ("oscar_welcome_post", "Welcome"),
        ("oscar_rules_post", "Rules"),
        ("oscar_handbook_post", "Handbook"),
        ("oscar_enrollment_post", "Enrollment"),
    ],
)
def test_info_posts_report_missing_channel(academy, monkeypatch, command, label):
    cog = academy.cog
    _route_channels(monkeypatch, None)

    async def runner():
        ctx = _ctx(FakeMember(2), f"oscar {command}")
        await getattr(cog, command).callback(cog, ctx)
        return ctx

    ctx = asyncio.run(runner())
    ctx.reply.assert_awaited_once_with(f"❌ {label} channel not set.", mention_author=False)
    assert academy.logs == []


def test_handbook_post_includes_configured_link(academy, monkeypatch):
    cog = academy.cog
    channel = _text_channel()
    _route_channels(monkeypatch, channel)
    monkeypatch.setenv("HANDBOOK_URL", "https://example.org/handbook")
    try:
        app_config.reload_config()

        async def runner():
            await cog.oscar_handbook_post.callback(cog, _ctx(FakeMember(2), "oscar handbook_post"))

        asyncio.run(runner())
    finally:
        monkeypatch.undo()
        app_config.reload_config()

    embed = channel.send.await_args.kwargs["embed"]
    assert "📘 Handbook: https://example.org/handbook" in embed.description


def test_portal_link_configured_missing_and_unknown(academy, monkeypatch):
    cog = academy.cog
    monkeypatch.setenv("STUDENT_PORTAL_URL", "https://example.org/students")
    monkeypatch.delenv("PARENT_PORTAL_URL", raising=False)
    try:
        app_config.reload_config()

        async def runner():
            found = _ctx(FakeMember(10), "oscar portal")
            await cog.oscar_portal.callback(cog, found, "Student")
            missing = _ctx(FakeMember(10), "oscar portal")
            await cog.oscar_portal.callback(cog, missing, "parent")
            unknown = _ctx(FakeMember(10), "oscar portal")
            await cog.oscar_portal.callback(cog, unknown, "janitor")
            return found, missing, unknown

        found, missing, unknown = asyncio.run(runner())
    finally:
        monkeypatch.undo()
        app_config.reload_config()

    embed = found.reply.await_args.kwargs["embed"]
    assert embed.description == "Here is the **student** portal link:\nhttps://example.org/students"
    missing.reply.assert_awaited_once_with(PORTAL_MISSING, mention_author=False)
    assert unknown.reply.await_args.args[0] == "Usage: `!oscar portal <student|teacher|parent|admin>`"


def test_portal_is_open_outside_academy_categories(academy, monkeypatch):
    cog = academy.cog
    monkeypatch.setattr(cog_module, "in_academy_scope", lambda channel: False)

    allowed = asyncio.run(cog.cog_check(_ctx(FakeMember(10), "oscar portal")))
    assert allowed is True


def test_announce_pings_everyone_only_when_asked(academy, monkeypatch):
    cog = academy.cog
    channel = _text_channel()
    _route_channels(monkeypatch, channel)

    async def runner():
        teacher = FakeMember(2, "Ms. Park")
        await cog.oscar_announce.callback(
            cog, _ctx(teacher, "oscar announce"), text="--everyone Assembly | Gym at noon"
        )
        loud = channel.send.await_args.kwargs
        await cog.oscar_announce.callback(
            cog, _ctx(teacher, "oscar announce"), text="Quiet day | Library closed"
        )
        quiet = channel.send.await_args.kwargs
        return loud, quiet

    loud, quiet = asyncio.run(runner())
    assert loud["content"] == "@everyone"
    assert loud["allowed_mentions"].everyone is True
    assert loud["embed"].title == "Assembly"
    assert quiet["content"] is None
    assert quiet["allowed_mentions"].everyone is False
    assert "everyone=yes" in academy.logs[0]
    assert "everyone=no" in academy.logs[1]


def test_class_timer_announces_when_time_is_up(academy):
    cog = academy.cog
    slept: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        slept.append(seconds)

    cog._sleep = fake_sleep

    async def runner():
        ctx = _ctx(FakeMember(2), "class timer")
        await cog.class_timer.callback(cog, ctx, 5, label="Quiz")
        await asyncio.gather(*list(cog._timers))
        return ctx

    ctx = asyncio.run(runner())
    ctx.reply.assert_awaited_once_with("⏳ **Quiz** started for **5 minute(s)**.", mention_author=False)
    ctx.send.assert_awaited_once_with("⏰ **Time's up!** (Quiz)")
    assert slept == [300]
    assert not cog._timers


def test_class_timer_rejects_out_of_range(academy):
    cog = academy.cog

    async def runner():
        await cog.class_timer.callback(cog, _ctx(FakeMember(2), "class timer"), 90)

    with pytest.raises(cog_module.ClassroomError):
        asyncio.run(runner())
    assert not cog._timers


def test_class_groups_lists_every_mention(academy):
    cog = academy.cog

    async def runner():
        ctx = _ctx(FakeMember(2), "class groups")
        await cog.class_groups.callback(cog, ctx, 2, mentions="<@10> <@11> <@12> <@13>")
        return ctx

    ctx = asyncio.run(runner())
    value = ctx.reply.await_args.kwargs["embed"].fields[0].value
    lines = value.splitlines()
    assert [line.split(":**")[0] for line in lines] == ["**Group 1", "**Group 2"]
    for uid in (10, 11, 12, 13):
        assert value.count(f"<@{uid}>") == 1
    assert "size=2 • groups=2" in academy.logs[0]


def test_shoutout_posts_spotlight_or_reports_missing_channel(academy, monkeypatch):
    cog = academy.cog
    channel = _text_channel(901)

    async def runner():
        teacher = FakeMember(2, "Ms. Park")
        _route_channels(monkeypatch, channel)
        posted = _ctx(teacher, "class shoutout")
        await cog.class_shoutout.callback(cog, posted, FakeMember(10, "maya"), reason="Great essay")

        _route_channels(monkeypatch, None)
        fallback = _ctx(teacher, "class shoutout")
        await cog.class_shoutout.callback(cog, fallback, FakeMember(10, "maya"), reason="Again")
        return posted, fallback

    posted, fallback = asyncio.run(runner())
    embed = channel.send.await_args.kwargs["embed"]
    assert embed.title == "Student Spotlight"
    assert "<@10>" in embed.description and "Great essay" in embed.description
    assert embed.fields[0].value == "<@2>"
    posted.reply.assert_awaited_once_with("✅ Spotlight posted.", mention_author=False)
    fallback.reply.assert_awaited_once_with("❌ Pictures channel not available.", mention_author=False)


def test_lesson_and_worksheet_posts(academy):
    cog = academy.cog

    async def runner():
        teacher = FakeMember(2)
        bad = _ctx(teacher, "class lesson_post")
        await cog.class_lesson_post.callback(cog, bad, text="Cells | 9th")
        lesson = _ctx(teacher, "class lesson_post")
        await cog.class_lesson_post.callback(cog, lesson, text="Cells | 9th | Biology | Q2")
        sheet = _ctx(teacher, "class worksheet_post")
        await cog.class_worksheet_post.callback(cog, sheet, text="Fractions | Pages 4-6")
        no_notes = _ctx(teacher, "class worksheet_post")
        await cog.class_worksheet_post.callback(cog, no_notes, text="Fractions")
        return bad, lesson, sheet, no_notes

    bad, lesson, sheet, no_notes = asyncio.run(runner())
    assert bad.reply.await_args.args[0].startswith("Usage: `!class lesson_post")
    bad.send.assert_not_awaited()
    assert lesson.send.await_args.args[0].startswith("📘 **Title:** Cells\n🎓 **Grade Level:** 9th")
    assert "**Title:** Fractions" in sheet.send.await_args.args[0]
    assert no_notes.reply.await_args.args[0].startswith("Usage: `!class worksheet_post")
