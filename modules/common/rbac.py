"""Role gates for academy and application commands.

Tiers nest: admins count as teachers and staff, teachers count as nurses.
Admin is either a configured admin role or the Discord Administrator
permission.
"""

from __future__ import annotations

from typing import Any, Iterable, Set

import discord
from discord.ext import commands

from shared.config import (
    get_admin_role_ids,
    get_allowed_category_ids,
    get_nurse_role_ids,
    get_staff_role_ids,
    get_teacher_role_ids,
)

__all__ = [
    "admin_only",
    "in_academy_scope",
    "is_admin_member",
    "is_nurse",
    "is_staff_member",
    "is_teacher",
    "nurse_only",
    "staff_only",
    "teacher_only",
]


def _resolve_member(target: Any) -> Any:
    if isinstance(target, commands.Context):
        return getattr(target, "author", None)
    return target


def _member_role_ids(member: Any) -> Set[int]:
    roles: Iterable[Any] = getattr(member, "roles", None) or ()
    ids: Set[int] = set()
    for role in roles:
        role_id = getattr(role, "id", None)
        if isinstance(role_id, int):
            ids.add(role_id)
    return ids


def _has_administrator_permission(member: Any) -> bool:
    perms = getattr(member, "guild_permissions", None)
    return bool(getattr(perms, "administrator", False))


def is_admin_member(target: Any) -> bool:
    member = _resolve_member(target)
    if member is None:
        return False
    if _member_role_ids(member) & get_admin_role_ids():
        return True
    return _has_administrator_permission(member)


def is_staff_member(target: Any) -> bool:
    member = _resolve_member(target)
    if member is None:
        return False
    return is_admin_member(member) or bool(_member_role_ids(member) & get_staff_role_ids())


def is_teacher(target: Any) -> bool:
    member = _resolve_member(target)
    if member is None:
        return False
    return is_admin_member(member) or bool(_member_role_ids(member) & get_teacher_role_ids())


def is_nurse(target: Any) -> bool:
    member = _resolve_member(target)
    if member is None:
        return False
    return is_teacher(member) or bool(_member_role_ids(member) & get_nurse_role_ids())


def in_academy_scope(channel: Any) -> bool:
    """True when ``channel`` sits in an allowed category (or none are configured)."""

    allowed = get_allowed_category_ids()
    if not allowed:
        return True
    if isinstance(channel, discord.DMChannel):
        return False
    category_id = getattr(channel, "category_id", None)
    if category_id is None:
        parent = getattr(channel, "parent", None)
        category_id = getattr(parent, "category_id", None)
    return category_id in allowed


def _gate(predicate_fn, denial: str):
    async def predicate(ctx: commands.Context) -> bool:
        if predicate_fn(ctx):
            return True
        try:
            await ctx.reply(denial, mention_author=False)
        except discord.HTTPException:
            pass
        raise commands.CheckFailure(denial)

    return commands.check(predicate)


def staff_only():
    """Allow staff/admin roles or Discord Administrator fallback."""

    return _gate(is_staff_member, "Staff only.")


def admin_only():
    return _gate(is_admin_member, "Admins only.")


def teacher_only():
    return _gate(is_teacher, "Teachers only.")


def nurse_only():
    return _gate(is_nurse, "Nurse staff only.")
