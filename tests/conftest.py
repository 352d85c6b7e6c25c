"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of lunarwave.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from lunarwave.config import LunarwaveConfig  # noqa: E402
from lunarwave.database.models import Base  # noqa: E402
from lunarwave.database.store import MemoryStore  # noqa: E402
from lunarwave.identity import Identity, Role  # noqa: E402
from lunarwave.services.discord_api import InviteInfo, invite_code  # noqa: E402
from lunarwave.services.errors import UpstreamError  # noqa: E402

SUPER_ADMIN_ID = "100000000000000001"
ADMIN_ID = "100000000000000002"
OWNER_ID = "100000000000000003"
USER_ID = "100000000000000004"

GUILD_ID = "200000000000000001"
GUILD_INVITE = "https://discord.gg/lunar"
OTHER_GUILD_ID = "200000000000000002"
OTHER_INVITE = "https://discord.gg/other"


def run_async(coro):
    """Run a coroutine to completion from a sync test."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Fake Discord REST client
# ---------------------------------------------------------------------------
class FakeDiscord:
    """Stands in for :class:`DiscordClient`; unknown ids raise a 404 upstream error."""

    def __init__(self) -> None:
        self.invites: dict[str, InviteInfo] = {}
        self.users: dict[str, dict] = {}
        self.guilds: dict[str, dict] = {}
        self.invite_calls = 0

    def add_guild(self, guild_id: str, invite: str, name: str = "Lunar Lounge",
                  members: int = 100, online: int = 10) -> None:
        self.invites[invite_code(invite)] = InviteInfo(
            id=guild_id,
            name=name,
            icon="iconhash",
            banner=None,
            approximate_member_count=members,
            approximate_presence_count=online,
        )
        self.guilds[guild_id] = {"id": guild_id, "name": name}

    async def fetch_invite(self, code: str) -> InviteInfo:
        self.invite_calls += 1
        if code not in self.invites:
            raise UpstreamError("Unknown Invite", status_code=404)
        return self.invites[code]

    async def fetch_guild(self, guild_id: str) -> dict:
        if guild_id not in self.guilds:
            raise UpstreamError("Unknown Guild", status_code=404)
        return self.guilds[guild_id]

    async def fetch_user(self, user_id: str) -> dict:
        if user_id not in self.users:
            raise UpstreamError("Unknown User", status_code=404)
        return self.users[user_id]


# ---------------------------------------------------------------------------
# Store, config, identities
# ---------------------------------------------------------------------------
@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore({"admins": [ADMIN_ID]})


@pytest.fixture
def cfg() -> LunarwaveConfig:
    return LunarwaveConfig(site_name="Lunarwave", super_admin_id=SUPER_ADMIN_ID)


@pytest.fixture
def discord() -> FakeDiscord:
    fake = FakeDiscord()
    fake.add_guild(GUILD_ID, GUILD_INVITE)
    fake.add_guild(OTHER_GUILD_ID, OTHER_INVITE, name="Other Place", members=50, online=40)
    return fake


def make_identity(user_id: str = USER_ID, *roles: Role, username: str | None = None) -> Identity:
    name = username or f"user{user_id[-2:]}"
    return Identity(
        user_id=user_id,
        username=name,
        display_name=name.title(),
        avatar=None,
        roles=frozenset({Role.USER, *roles}),
    )


@pytest.fixture
def user() -> Identity:
    return make_identity(USER_ID)


@pytest.fixture
def admin() -> Identity:
    return make_identity(ADMIN_ID, Role.ADMIN)


@pytest.fixture
def super_admin() -> Identity:
    return make_identity(SUPER_ADMIN_ID, Role.SUPER_ADMIN)


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with the documents table.

    Uses StaticPool so every session shares the same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------
def make_token(sub: str = USER_ID, username: str = "FixtureUser", **claims) -> str:
    """Create a signed session JWT.  Usable as a factory inside tests."""
    import jwt

    from lunarwave.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "username": username, **claims},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def auth(sub: str = USER_ID, **claims) -> dict:
    return {"Authorization": f"Bearer {make_token(sub, **claims)}"}


@pytest.fixture
def client(store, cfg, discord):
    """TestClient wired to the in-memory store, test config and fake Discord.

    The lifespan is not entered, so the periodic sweeps never start.
    """
    from fastapi.testclient import TestClient

    from lunarwave.api.deps import get_config, get_discord, get_store
    from lunarwave.api.main import app

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_config] = lambda: cfg
    app.dependency_overrides[get_discord] = lambda: discord
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
