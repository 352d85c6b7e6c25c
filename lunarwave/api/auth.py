"""
lunarwave.api.auth — Discord OAuth2 + JWT issuance
====================================================
"""

from __future__ import annotations

import logging
import os
import secrets
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

import httpx
import jwt
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse

from lunarwave.api.deps import (
    JWT_ALGORITHM,
    JWT_SECRET,
    get_current_user,
    get_store,
    resolve_caller,
)
from lunarwave.constants import MINUTE_MS, now_ms
from lunarwave.database.store import RecordStore
from lunarwave.identity import Identity

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

DISCORD_API = "https://discord.com/api/v10"
OAUTH_SCOPE = "identify guilds"
OAUTH_STATE_TTL_MS = 10 * MINUTE_MS
TOKEN_TTL = timedelta(hours=12)

ADMINISTRATOR = 0x8


def _oauth_env() -> tuple[str, str, str, str]:
    """Return required OAuth env vars or raise a clear 500."""
    client_id = os.getenv("DISCORD_CLIENT_ID", "").strip()
    client_secret = os.getenv("DISCORD_CLIENT_SECRET", "").strip()
    redirect_uri = os.getenv("DISCORD_REDIRECT_URI", "").strip()
    frontend_url = os.getenv("FRONTEND_URL", "").strip()

    missing = [
        name for name, value in (
            ("DISCORD_CLIENT_ID", client_id),
            ("DISCORD_CLIENT_SECRET", client_secret),
            ("DISCORD_REDIRECT_URI", redirect_uri),
            ("FRONTEND_URL", frontend_url),
        )
        if not value
    ]
    if missing:
        raise HTTPException(
            status_code=500,
            detail="Discord OAuth is not configured: missing " + ", ".join(missing),
        )

    return client_id, client_secret, redirect_uri, frontend_url.rstrip("/")


def _prune_states(states: dict, now: int) -> None:
    for stale in [s for s, v in states.items() if now - v["created_at"] > OAUTH_STATE_TTL_MS]:
        del states[stale]


def store_oauth_state(store: RecordStore, state: str, return_to: str | None) -> None:
    """Persist a one-time OAuth state token and prune stale entries."""
    now = now_ms()
    states = store.load("oauth_states")
    _prune_states(states, now)
    states[state] = {"created_at": now, "return_to": return_to}
    store.save("oauth_states", states)


def consume_oauth_state(store: RecordStore, state: str) -> dict | None:
    """Consume a state token; returns its record if valid and unexpired."""
    now = now_ms()
    states = store.load("oauth_states")
    _prune_states(states, now)
    record = states.pop(state, None)
    store.save("oauth_states", states)
    return record


def _safe_return_path(redirect: str | None) -> str | None:
    # Only same-site paths; never an absolute URL.
    if redirect and redirect.startswith("/") and not redirect.startswith("//"):
        return redirect
    return None


def issue_token(user_info: dict, guilds: list[dict]) -> str:
    payload = {
        "sub": str(user_info["id"]),
        "username": user_info.get("username", "Unknown"),
        "global_name": user_info.get("global_name"),
        "avatar": user_info.get("avatar"),
        "guilds": guilds,
        "exp": datetime.now(UTC) + TOKEN_TTL,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


@router.get("/login")
async def login(redirect: str | None = None, store: RecordStore = Depends(get_store)):
    """Redirect to the Discord OAuth2 consent screen."""
    client_id, _, redirect_uri, _ = _oauth_env()

    state = secrets.token_urlsafe(32)
    store_oauth_state(store, state, _safe_return_path(redirect))

    query = urlencode(
        {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": OAUTH_SCOPE,
            "state": state,
        }
    )
    return RedirectResponse(f"https://discord.com/oauth2/authorize?{query}")


@router.get("/callback")
async def callback(code: str, state: str, store: RecordStore = Depends(get_store)):
    """Exchange the OAuth code for a Lunarwave JWT."""
    client_id, client_secret, redirect_uri, frontend_url = _oauth_env()

    record = consume_oauth_state(store, state)
    if record is None:
        raise HTTPException(400, "Invalid or expired OAuth state")

    async with httpx.AsyncClient(timeout=10) as client:
        token_resp = await client.post(
            f"{DISCORD_API}/oauth2/token",
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": client_id,
                "client_secret": client_secret,
                "scope": OAUTH_SCOPE,
            },
        )
        if token_resp.status_code != 200:
            raise HTTPException(400, "OAuth token exchange failed")

        access_token = token_resp.json().get("access_token")
        if not access_token:
            raise HTTPException(400, "No access token returned")

        headers = {"Authorization": f"Bearer {access_token}"}
        user_resp = await client.get(f"{DISCORD_API}/users/@me", headers=headers)
        guilds_resp = await client.get(f"{DISCORD_API}/users/@me/guilds", headers=headers)

    if user_resp.status_code != 200:
        raise HTTPException(400, "Failed to fetch Discord user")

    # Only guilds the user administers are useful (server submission).
    managed = []
    if guilds_resp.status_code == 200:
        managed = [
            {"id": g["id"], "name": g.get("name"), "icon": g.get("icon")}
            for g in guilds_resp.json()
            if int(g.get("permissions", 0)) & ADMINISTRATOR == ADMINISTRATOR
        ]

    user_info = user_resp.json()
    token = issue_token(user_info, managed)
    logger.info("User %s logged in", user_info["id"])

    query = urlencode({"token": token, "next": record.get("return_to") or "/"})
    return RedirectResponse(f"{frontend_url}/auth/callback?{query}")


@router.get("/me")
async def me(caller: Identity | None = Depends(resolve_caller)):
    """Return the caller's identity; banned callers can still see their status."""
    if caller is None:
        return {"logged_in": False}
    return {
        "logged_in": True,
        "user": {
            "id": caller.user_id,
            "username": caller.username,
            "display_name": caller.display_name,
            "avatar": caller.avatar,
        },
        "is_admin": caller.is_admin and not caller.is_banned,
        "is_super_admin": caller.is_super_admin and not caller.is_banned,
        "is_banned": caller.is_banned,
        "ban_reason": caller.ban_reason,
    }


@router.get("/guilds")
async def guilds(caller: Identity = Depends(get_current_user)):
    """Guilds where the caller holds the Administrator permission."""
    return list(caller.guilds)
