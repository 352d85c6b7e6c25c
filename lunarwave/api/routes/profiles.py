"""
lunarwave.api.routes.profiles — User profile cards
====================================================
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lunarwave.api.deps import get_current_user, get_optional_user, get_store
from lunarwave.database.store import RecordStore
from lunarwave.identity import Identity
from lunarwave.services import profile_service

router = APIRouter(tags=["profiles"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class ProfileSubmit(BaseModel):
    description: str | None = None
    tags: list[str] | None = None
    button_text1: str | None = None
    button_link1: str | None = None
    button_text2: str | None = None
    button_link2: str | None = None
    background: str | None = None
    banner: str | None = None
    friend_request: bool = False
    vignette: dict[str, Any] | None = None


class Reaction(BaseModel):
    type: str | None = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.get("/profiles")
async def list_profiles(
    _caller: Identity | None = Depends(get_optional_user),
    store: RecordStore = Depends(get_store),
):
    return profile_service.list_profiles(store)


@router.get("/profile/{user_id}")
async def get_profile(
    user_id: str,
    _caller: Identity | None = Depends(get_optional_user),
    store: RecordStore = Depends(get_store),
):
    return profile_service.get_profile(store, user_id)


@router.post("/profiles/add")
async def upsert_profile(
    body: ProfileSubmit,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    profile = profile_service.upsert_profile(store, caller, body.model_dump())
    return {"success": True, "profile": profile}


@router.delete("/profiles/delete")
async def delete_profile(
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    profile_service.delete_profile(store, caller.user_id)
    return {"success": True, "message": "Profile deleted."}


@router.post("/profiles/react/{user_id}")
async def react_to_profile(
    user_id: str,
    body: Reaction,
    _caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    """Add an ``up`` or ``down`` reaction to a profile."""
    reactions = profile_service.react_to_profile(store, user_id, body.type or "")
    return {"success": True, "reactions": reactions}
