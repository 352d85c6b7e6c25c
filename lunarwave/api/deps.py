"""
lunarwave.api.deps — FastAPI dependency injection
===================================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError

from lunarwave.config import LunarwaveConfig, load_config
from lunarwave.constants import BANNED_NOTICE
from lunarwave.database.store import RecordStore, create_store
from lunarwave.identity import Identity, resolve_identity
from lunarwave.services.discord_api import DiscordClient

_WEAK_SECRETS = frozenset({
    "lunarwave-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_config() -> LunarwaveConfig:
    return load_config()


@lru_cache(maxsize=1)
def get_store() -> RecordStore:
    return create_store(get_config())


@lru_cache(maxsize=1)
def get_discord() -> DiscordClient:
    return DiscordClient(os.getenv("DISCORD_BOT_TOKEN", "").strip())


def _decode(authorization: str | None) -> dict | None:
    if not authorization:
        return None
    if not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")


def resolve_caller(
    authorization: Annotated[str | None, Header()] = None,
    store: RecordStore = Depends(get_store),
    cfg: LunarwaveConfig = Depends(get_config),
) -> Identity | None:
    """Identity of the caller without the ban gate (used by ``/auth/me``)."""
    claims = _decode(authorization)
    if claims is None:
        return None
    return resolve_identity(store, claims, cfg.super_admin_id)


def get_optional_user(caller: Identity | None = Depends(resolve_caller)) -> Identity | None:
    """Caller identity, or None for anonymous requests.  Banned users get 403."""
    if caller is not None and caller.is_banned:
        raise HTTPException(
            status.HTTP_403_FORBIDDEN,
            {"error": "banned", "message": BANNED_NOTICE, "reason": caller.ban_reason},
        )
    return caller


def get_current_user(caller: Identity | None = Depends(get_optional_user)) -> Identity:
    """Require a logged-in, non-banned caller.  Raises 401 if anonymous."""
    if caller is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Login required")
    return caller


def get_current_admin(caller: Identity = Depends(get_current_user)) -> Identity:
    if not caller.is_admin:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return caller


def get_super_admin(caller: Identity = Depends(get_current_user)) -> Identity:
    if not caller.is_super_admin:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Super-admin only")
    return caller
