import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from discord.ext import commands

from modules.common import rbac


def _member(*role_ids: int, administrator: bool = False):
    return SimpleNamespace(
        roles=[SimpleNamespace(id=rid) for rid in role_ids],
        guild_permissions=SimpleNamespace(administrator=administrator),
    )


def _context(author):
    ctx = MagicMock(spec=commands.Context)
    ctx.author = author
    ctx.reply = AsyncMock()
    return ctx


@pytest.fixture(autouse=True)
def _roles(monkeypatch):
    monkeypatch.setattr(rbac, "get_admin_role_ids", lambda: {1})
    monkeypatch.setattr(rbac, "get_staff_role_ids", lambda: {2})
    monkeypatch.setattr(rbac, "get_teacher_role_ids", lambda: {3})
    monkeypatch.setattr(rbac, "get_nurse_role_ids", lambda: {4})
    monkeypatch.setattr(rbac, "get_allowed_category_ids", lambda: set())


def test_tiers_nest():
    admin = _member(1)
    assert rbac.is_staff_member(admin)
    assert rbac.is_teacher(admin)
    assert rbac.is_nurse(admin)

    teacher = _member(3)
    assert rbac.is_nurse(teacher)
    assert not rbac.is_staff_member(teacher)

    nurse = _member(4)
    assert rbac.is_nurse(nurse)
    assert not rbac.is_teacher(nurse)

    assert not rbac.is_nurse(_member(2))
    assert rbac.is_admin_member(_member(administrator=True))
    assert not rbac.is_admin_member(None)


def test_scope_allows_everything_when_unconfigured():
    assert rbac.in_academy_scope(SimpleNamespace(category_id=999))


def test_scope_checks_category_and_thread_parent(monkeypatch):
    monkeypatch.setattr(rbac, "get_allowed_category_ids", lambda: {50})
    assert rbac.in_academy_scope(SimpleNamespace(category_id=50))
    assert not rbac.in_academy_scope(SimpleNamespace(category_id=51))
    thread = SimpleNamespace(category_id=None, parent=SimpleNamespace(category_id=50))
    assert rbac.in_academy_scope(thread)


def test_gate_replies_and_raises_check_failure():
    check = rbac.teacher_only()

    @check
    async def command(ctx):  # pragma: no cover - body never runs here
        return None

    predicate = command.__commands_checks__[0]
    ctx = _context(_member(2))
    with pytest.raises(commands.CheckFailure):
        asyncio.run(predicate(ctx))
    ctx.reply.assert_awaited_once_with("Teachers only.", mention_author=False)

    allowed = _context(_member(3))
    assert asyncio.run(predicate(allowed)) is True

