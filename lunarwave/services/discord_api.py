"""
lunarwave.services.discord_api — Discord REST Lookups
=======================================================

Thin ``httpx`` wrapper around the three bot-token lookups the directory
needs: invite resolution (to verify and describe a submitted guild),
guild lookup, and user lookup.  Failures surface immediately as
:class:`UpstreamError`; nothing is retried.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any

import httpx

from lunarwave.services.errors import UpstreamError

logger = logging.getLogger(__name__)

DISCORD_API = "https://discord.com/api/v10"
REQUEST_TIMEOUT_SECONDS = 10


@dataclass(frozen=True, slots=True)
class InviteInfo:
    """Guild metadata resolved from an invite code."""

    id: str
    name: str
    icon: str | None
    banner: str | None
    approximate_member_count: int
    approximate_presence_count: int

    def to_listing_fields(self) -> dict[str, Any]:
        return asdict(self)


def invite_code(invite_url: str) -> str:
    """Return the trailing code of an invite URL."""
    return invite_url.rstrip("/").rsplit("/", 1)[-1]


class DiscordClient:
    """Bot-authenticated Discord REST client."""

    def __init__(self, bot_token: str, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.bot_token = bot_token
        self._transport = transport

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        headers = {"Authorization": f"Bot {self.bot_token}"}
        try:
            async with httpx.AsyncClient(
                timeout=REQUEST_TIMEOUT_SECONDS, transport=self._transport
            ) as client:
                resp = await client.get(f"{DISCORD_API}{path}", headers=headers, params=params)
                data = resp.json()
        except (httpx.HTTPError, ValueError):
            logger.exception("Discord request failed: GET %s", path)
            raise UpstreamError("Internal server error.", status_code=500)

        if resp.status_code >= 400:
            message = data.get("message") if isinstance(data, dict) else None
            raise UpstreamError(message or "Discord request failed.", status_code=resp.status_code)
        return data

    async def fetch_invite(self, code: str) -> InviteInfo:
        data = await self._get(f"/invites/{code}", params={"with_counts": "true"})
        guild = data.get("guild")
        if not guild:
            raise UpstreamError("Invalid invite link.", status_code=400)
        return InviteInfo(
            id=str(guild["id"]),
            name=guild.get("name", ""),
            icon=guild.get("icon"),
            banner=guild.get("banner"),
            approximate_member_count=data.get("approximate_member_count") or 0,
            approximate_presence_count=data.get("approximate_presence_count") or 0,
        )

    async def fetch_guild(self, guild_id: str) -> dict[str, Any]:
        return await self._get(f"/guilds/{guild_id}", params={"with_counts": "true"})

    async def fetch_user(self, user_id: str) -> dict[str, Any]:
        return await self._get(f"/users/{user_id}")
