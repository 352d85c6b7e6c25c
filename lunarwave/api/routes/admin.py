"""
lunarwave.api.routes.admin — Moderation & admin panel endpoints
=================================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from lunarwave.api.deps import (
    get_config,
    get_current_admin,
    get_discord,
    get_store,
    get_super_admin,
)
from lunarwave.config import LunarwaveConfig
from lunarwave.database.store import RecordStore
from lunarwave.identity import Identity
from lunarwave.services import directory_service, inbox_service, moderation_service
from lunarwave.services.discord_api import DiscordClient
from lunarwave.services.errors import UpstreamError
from lunarwave.services.log_buffer import get_logs

logger = logging.getLogger(__name__)
router = APIRouter(tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class AdminChange(BaseModel):
    user_id: str | None = None


class BanRequest(BaseModel):
    reason: str | None = None


class DirectMessage(BaseModel):
    recipient_id: str | None = None
    message: str | None = None


class Announcement(BaseModel):
    title: str | None = None
    message: str | None = None


# ---------------------------------------------------------------------------
# Admin list
# ---------------------------------------------------------------------------
@router.get("/admins")
async def list_admins(
    _admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
    discord: DiscordClient = Depends(get_discord),
):
    """Admin ids enriched with their Discord names; unknown users get a placeholder."""
    result = []
    for admin_id in moderation_service.list_admin_ids(store):
        try:
            user = await discord.fetch_user(admin_id)
        except UpstreamError as exc:
            logger.warning("Admin lookup failed for %s: %s", admin_id, exc.message)
            placeholder = f"Unknown User ({admin_id})"
            result.append({
                "id": admin_id,
                "username": placeholder,
                "display_name": placeholder,
                "avatar": None,
            })
            continue
        result.append({
            "id": str(user.get("id", admin_id)),
            "username": user.get("username"),
            "display_name": user.get("global_name") or user.get("username"),
            "avatar": user.get("avatar"),
        })
    return result


@router.post("/admin/add")
async def add_admin(
    body: AdminChange,
    _owner: Identity = Depends(get_super_admin),
    store: RecordStore = Depends(get_store),
):
    moderation_service.add_admin(store, body.user_id)
    return {"success": True, "message": "Admin added successfully."}


@router.post("/admin/remove")
async def remove_admin(
    body: AdminChange,
    _owner: Identity = Depends(get_super_admin),
    store: RecordStore = Depends(get_store),
):
    moderation_service.remove_admin(store, body.user_id)
    return {"success": True, "message": "Admin removed successfully."}


# ---------------------------------------------------------------------------
# Pending queue & deletion
# ---------------------------------------------------------------------------
@router.get("/pending")
async def list_pending(
    _admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
):
    return directory_service.list_pending(store)


@router.post("/approve/{server_id}")
async def approve_server(
    server_id: str,
    admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
):
    directory_service.approve_server(store, server_id)
    logger.info("Approval of %s by %s", server_id, admin.user_id)
    return {"success": True}


@router.delete("/admin/pending/delete/{server_id}")
async def reject_pending(
    server_id: str,
    _admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
):
    directory_service.reject_pending(store, server_id)
    return {"success": True, "message": "Pending server removed."}


@router.delete("/admin/server/delete/{server_id}")
async def force_delete_server(
    server_id: str,
    _owner: Identity = Depends(get_super_admin),
    store: RecordStore = Depends(get_store),
):
    directory_service.force_delete(store, server_id)
    return {"success": True, "message": "Server and all related data deleted."}


# ---------------------------------------------------------------------------
# Sponsorship & verification
# ---------------------------------------------------------------------------
@router.post("/admin/sponsor/{server_id}")
async def sponsor_server(
    server_id: str,
    _admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
    cfg: LunarwaveConfig = Depends(get_config),
):
    expiry = moderation_service.sponsor_server(
        store, server_id, duration_ms=cfg.sponsor_duration_ms
    )
    return {"success": True, "expiry": expiry}


@router.delete("/admin/sponsor/{server_id}")
async def unsponsor_server(
    server_id: str,
    _admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
):
    moderation_service.unsponsor_server(store, server_id)
    return {"success": True}


@router.post("/admin/verify/{server_id}")
async def verify_server(
    server_id: str,
    _admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
):
    moderation_service.verify_server(store, server_id)
    return {"success": True}


@router.delete("/admin/verify/{server_id}")
async def unverify_server(
    server_id: str,
    _admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
):
    moderation_service.unverify_server(store, server_id)
    return {"success": True}


# ---------------------------------------------------------------------------
# Bans
# ---------------------------------------------------------------------------
@router.post("/admin/ban/server/{server_id}")
async def ban_server(
    server_id: str,
    body: BanRequest,
    admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
):
    moderation_service.ban_server(store, server_id, body.reason, admin.user_id)
    return {"success": True}


@router.delete("/admin/unban/server/{server_id}")
async def unban_server(
    server_id: str,
    _admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
):
    moderation_service.unban_server(store, server_id)
    return {"success": True}


@router.post("/admin/ban/user/{user_id}")
async def ban_user(
    user_id: str,
    body: BanRequest,
    owner: Identity = Depends(get_super_admin),
    store: RecordStore = Depends(get_store),
):
    moderation_service.ban_user(store, user_id, body.reason, owner.user_id)
    return {"success": True}


@router.delete("/admin/unban/user/{user_id}")
async def unban_user(
    user_id: str,
    _owner: Identity = Depends(get_super_admin),
    store: RecordStore = Depends(get_store),
):
    moderation_service.unban_user(store, user_id)
    return {"success": True}


@router.get("/admin/banned/servers")
async def banned_servers(
    _admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
):
    return moderation_service.list_banned_servers(store)


@router.get("/admin/banned/users")
async def banned_users(
    _admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
):
    return moderation_service.list_banned_users(store)


@router.get("/reports")
async def list_reports(
    _admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
):
    return moderation_service.list_reports(store)


# ---------------------------------------------------------------------------
# Messaging
# ---------------------------------------------------------------------------
@router.post("/admin/message")
async def send_message(
    body: DirectMessage,
    admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
):
    entry = inbox_service.send_message(
        store, admin.sender_fields(), body.recipient_id, body.message
    )
    return {"success": True, "id": entry["id"]}


@router.post("/admin/announce")
async def announce(
    body: Announcement,
    admin: Identity = Depends(get_current_admin),
    store: RecordStore = Depends(get_store),
):
    announcement_id = inbox_service.announce(store, admin.sender_fields(), body.title, body.message)
    return {"success": True, "id": announcement_id}


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------
@router.get("/admin/logs")
async def admin_logs(
    tail: int = Query(200, ge=1, le=2000),
    level: str | None = None,
    _owner: Identity = Depends(get_super_admin),
):
    """Recent API log lines from the in-memory ring buffer."""
    return {"logs": get_logs(tail, level)}
