"""Standing info posts for the academy channels and the portal links."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

import discord

from modules.common.embeds import build_embed
from shared import config as app_config

__all__ = [
    "InfoPost",
    "INFO_POSTS",
    "PORTAL_MISSING",
    "build_enrollment_embed",
    "build_handbook_embed",
    "build_portal_embed",
    "build_rules_embed",
    "build_welcome_embed",
]

PORTAL_MISSING = "⚠️ Portal link not configured yet."


def build_welcome_embed() -> discord.Embed:
    return build_embed(
        "academy",
        "Welcome to Lifeline Academy",
        "Welcome to **Lifeline Academy**, a structured, realism-focused school experience "
        "inside the Lifeline RP System.\n\n"
        "Start here:\n"
        "• Read **#academy-rules**\n"
        "• Check **#academy-calendar** for schedules & events\n"
        "• Browse **#academy-handbook** for policies and expectations\n"
        "• Use **#academy-enrollment** to get started\n\n"
        "Need help? Ask in the right lounge (student/parent/faculty) and staff will assist.",
    )


def build_rules_embed() -> discord.Embed:
    return build_embed(
        "academy",
        "Academy Rules",
        "• Stay respectful and keep RP professional.\n"
        "• Follow teacher/staff direction during classes.\n"
        "• No disruptive behavior, harassment, or trolling.\n"
        "• Use channels as intended (students/parents/faculty).\n"
        "• Keep information appropriate for school RP.\n\n"
        "If you need support, contact staff. Repeated issues may lead to removal.",
    )


def build_handbook_embed(url: str = "") -> discord.Embed:
    link = f"📘 Handbook: {url}\n\n" if url else ""
    return build_embed(
        "academy",
        "Academy Handbook",
        "The Academy Handbook contains policies, structure, and expectations.\n\n"
        f"{link}"
        "If you have questions, staff will assist in the appropriate lounge channels.",
    )


def build_enrollment_embed(url: str = "") -> discord.Embed:
    link = f"📝 Enrollment Link: {url}\n\n" if url else ""
    return build_embed(
        "academy",
        "Enrollment & Getting Started",
        "Enrollment is open based on Academy operations.\n\n"
        f"{link}"
        "After you apply, staff will review your vision and confirm next steps.\n"
        "Once approved, you’ll receive role access and guidance.",
    )


def build_portal_embed(kind: str) -> Optional[discord.Embed]:
    """Embed with the portal link, or ``None`` when the link is not configured."""

    url = app_config.get_portal_url(kind)
    if not url:
        return None
    return build_embed(
        "academy",
        "Academy Portal",
        f"Here is the **{kind.strip().lower()}** portal link:\n{url}",
    )


@dataclass(frozen=True)
class InfoPost:
    label: str
    channel_id: Callable[[], Optional[int]]
    build: Callable[[], discord.Embed]


INFO_POSTS: Dict[str, InfoPost] = {
    "welcome": InfoPost("Welcome", app_config.get_welcome_channel_id, build_welcome_embed),
    "rules": InfoPost("Rules", app_config.get_rules_channel_id, build_rules_embed),
    "handbook": InfoPost(
        "Handbook",
        app_config.get_handbook_channel_id,
        lambda: build_handbook_embed(app_config.get_handbook_url()),
    ),
    "enrollment": InfoPost(
        "Enrollment",
        app_config.get_enrollment_channel_id,
        lambda: build_enrollment_embed(app_config.get_enrollment_url()),
    ),
}
