"""
lunarwave.api.routes.inbox — Direct messages & announcements
==============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from lunarwave.api.deps import get_current_user, get_optional_user, get_store
from lunarwave.database.store import RecordStore
from lunarwave.identity import Identity
from lunarwave.services import inbox_service

router = APIRouter(prefix="/inbox", tags=["inbox"])


@router.get("/messages")
async def messages(
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    return inbox_service.list_messages(store, caller.user_id)


@router.get("/announcements")
async def announcements(
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    return inbox_service.list_announcements(store, caller.user_id)


@router.post("/read-message/{message_id}")
async def read_message(
    message_id: str,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    inbox_service.mark_message_read(store, caller.user_id, message_id)
    return {"success": True}


@router.post("/read-announcement/{announcement_id}")
async def read_announcement(
    announcement_id: str,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    inbox_service.mark_announcement_read(store, caller.user_id, announcement_id)
    return {"success": True}


@router.get("/unread-count")
async def unread_count(
    caller: Identity | None = Depends(get_optional_user),
    store: RecordStore = Depends(get_store),
):
    # Anonymous visitors poll this too; they just have nothing unread.
    if caller is None:
        return {"total_unread": 0, "unread_messages": 0, "unread_announcements": 0}
    return inbox_service.unread_count(store, caller.user_id)
