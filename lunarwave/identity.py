"""
lunarwave.identity — Caller Identity & Roles
==============================================

Every service call that depends on *who* is asking takes an explicit
:class:`Identity`.  Roles are resolved per request from the signed token
claims plus the live ``admins`` and ``banned_users`` documents, so granting
or revoking admin rights and bans takes effect immediately.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from lunarwave.database.store import RecordStore


class Role(enum.StrEnum):
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    BANNED = "banned"


@dataclass(frozen=True, slots=True)
class Identity:
    """The authenticated caller of one request."""

    user_id: str
    username: str = "Unknown"
    display_name: str = "Unknown"
    avatar: str | None = None
    roles: frozenset[Role] = field(default_factory=lambda: frozenset({Role.USER}))
    ban_reason: str | None = None
    guilds: tuple[dict, ...] = ()

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles or Role.SUPER_ADMIN in self.roles

    @property
    def is_super_admin(self) -> bool:
        return Role.SUPER_ADMIN in self.roles

    @property
    def is_banned(self) -> bool:
        return Role.BANNED in self.roles

    @property
    def profile_role(self) -> str:
        """Role label stored on profiles: ``superadmin``, ``admin`` or ``user``."""
        if self.is_super_admin:
            return "superadmin"
        if Role.ADMIN in self.roles:
            return "admin"
        return "user"

    def sender_fields(self) -> dict[str, Any]:
        """Sender snapshot embedded in messages and announcements."""
        return {
            "sender_id": self.user_id,
            "sender_username": self.username,
            "sender_display_name": self.display_name,
            "sender_avatar": self.avatar,
        }


def resolve_identity(store: RecordStore, claims: dict[str, Any], super_admin_id: str) -> Identity:
    """Build an :class:`Identity` from verified token *claims*."""
    user_id = str(claims["sub"])
    username = claims.get("username") or "Unknown"

    roles = {Role.USER}
    if user_id == super_admin_id:
        roles.add(Role.SUPER_ADMIN)
    if user_id in store.load("admins"):
        roles.add(Role.ADMIN)

    ban = store.load("banned_users").get(user_id)
    if ban is not None:
        roles.add(Role.BANNED)

    return Identity(
        user_id=user_id,
        username=username,
        display_name=claims.get("global_name") or username,
        avatar=claims.get("avatar"),
        roles=frozenset(roles),
        ban_reason=ban.get("reason") if ban else None,
        guilds=tuple(claims.get("guilds") or ()),
    )
