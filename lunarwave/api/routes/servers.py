"""
lunarwave.api.routes.servers — Listings, bumps, reviews, server pages
=======================================================================
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lunarwave.api.deps import (
    get_config,
    get_current_user,
    get_discord,
    get_optional_user,
    get_store,
)
from lunarwave.config import LunarwaveConfig
from lunarwave.database.store import RecordStore
from lunarwave.identity import Identity
from lunarwave.services import directory_service, moderation_service, review_service
from lunarwave.services.discord_api import DiscordClient

router = APIRouter(tags=["servers"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ServerSubmit(BaseModel):
    id: str | None = None
    invite: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    nsfw: bool = False


class ServerUpdate(BaseModel):
    tags: list[str] | None = None
    description: str | None = None
    page_image_link: str | None = None
    invite: str | None = None
    nsfw: bool | None = None


class ReviewSubmit(BaseModel):
    rating: Any = None


class ReportSubmit(BaseModel):
    reason: str | None = None


class PageSave(BaseModel):
    elements: Any = None


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------
@router.get("/servers")
async def list_servers(
    _caller: Identity | None = Depends(get_optional_user),
    store: RecordStore = Depends(get_store),
):
    return directory_service.list_servers(store)


@router.get("/myservers")
async def my_servers(
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    return directory_service.list_owned(store, caller.user_id)


@router.post("/submit")
async def submit_server(
    body: ServerSubmit,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
    discord: DiscordClient = Depends(get_discord),
):
    await directory_service.submit_server(
        store,
        discord,
        guild_id=body.id,
        invite=body.invite,
        description=body.description,
        tags=body.tags,
        nsfw=body.nsfw,
        owner_id=caller.user_id,
    )
    return {"success": True, "message": "Server submitted for approval."}


@router.put("/server/{server_id}")
async def update_server(
    server_id: str,
    body: ServerUpdate,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
    discord: DiscordClient = Depends(get_discord),
):
    await directory_service.update_server(
        store, discord, server_id, caller.user_id, body.model_dump(exclude_none=True)
    )
    return {"success": True}


@router.delete("/myserver/delete/{server_id}")
async def delete_my_server(
    server_id: str,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    source = directory_service.delete_owned(store, server_id, caller.user_id)
    if source == "pending":
        return {"success": True, "message": "Server deleted successfully from pending list."}
    return {"success": True, "message": "Server deleted successfully."}


@router.post("/bump/{server_id}")
async def bump_server(
    server_id: str,
    _caller: Identity | None = Depends(get_optional_user),
    store: RecordStore = Depends(get_store),
    cfg: LunarwaveConfig = Depends(get_config),
):
    bumped_at = directory_service.bump_server(store, server_id, cooldown_ms=cfg.bump_cooldown_ms)
    return {"success": True, "message": "Server bump time updated.", "last_bump": bumped_at}


# ---------------------------------------------------------------------------
# Reviews & reports
# ---------------------------------------------------------------------------
@router.get("/server/{server_id}/reviews")
async def list_reviews(
    server_id: str,
    _caller: Identity | None = Depends(get_optional_user),
    store: RecordStore = Depends(get_store),
):
    return review_service.list_reviews(store, server_id)


@router.post("/server/{server_id}/review")
async def review_server(
    server_id: str,
    body: ReviewSubmit,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    stats = review_service.rate_server(store, server_id, caller.user_id, body.rating)
    return {"success": True, **stats}


@router.get("/server/{server_id}/myreview")
async def my_review(
    server_id: str,
    caller: Identity | None = Depends(get_optional_user),
    store: RecordStore = Depends(get_store),
):
    if caller is None:
        return {"rating": 0}
    return {"rating": review_service.my_rating(store, server_id, caller.user_id)}


@router.post("/server/{server_id}/report")
async def report_server(
    server_id: str,
    body: ReportSubmit,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    report = moderation_service.report_server(store, server_id, caller.user_id, body.reason)
    return {"success": True, "id": report["id"]}


# ---------------------------------------------------------------------------
# Server pages
# ---------------------------------------------------------------------------
@router.get("/server-page/{server_id}")
async def get_server_page(
    server_id: str,
    _caller: Identity | None = Depends(get_optional_user),
    store: RecordStore = Depends(get_store),
):
    return directory_service.get_server_page(store, server_id)


@router.post("/server-page/{server_id}/save")
async def save_server_page(
    server_id: str,
    body: PageSave,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    directory_service.save_server_page(store, server_id, caller.user_id, body.elements)
    return {"success": True}


@router.post("/server-page/{server_id}/reset")
async def reset_server_page(
    server_id: str,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    directory_service.reset_server_page(store, server_id, caller.user_id)
    return {"success": True}


# ---------------------------------------------------------------------------
# Bot presence
# ---------------------------------------------------------------------------
@router.get("/bot/{guild_id}")
async def bot_in_guild(
    guild_id: str,
    _caller: Identity | None = Depends(get_optional_user),
    discord: DiscordClient = Depends(get_discord),
):
    """Whether the site's bot is in *guild_id*; Discord's error status passes through."""
    guild = await discord.fetch_guild(guild_id)
    return {"added": True, **guild}
