"""
lunarwave.api.routes.giveaways — Giveaway hosting & entry
===========================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lunarwave.api.deps import get_current_user, get_optional_user, get_store
from lunarwave.database.store import RecordStore
from lunarwave.identity import Identity
from lunarwave.services import giveaway_service

router = APIRouter(tags=["giveaways"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class GiveawayCreate(BaseModel):
    name: str | None = None
    description: str | None = None
    duration_ms: int | None = None
    password: str | None = None


class GiveawayEntry(BaseModel):
    password: str | None = None


class GiveawayEdit(BaseModel):
    name: str | None = None
    description: str | None = None
    password: str | None = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.get("/giveaways")
async def list_giveaways(
    _caller: Identity | None = Depends(get_optional_user),
    store: RecordStore = Depends(get_store),
):
    return giveaway_service.list_giveaways(store)


@router.get("/giveaway/{giveaway_id}")
async def get_giveaway(
    giveaway_id: str,
    _caller: Identity | None = Depends(get_optional_user),
    store: RecordStore = Depends(get_store),
):
    return giveaway_service.get_giveaway(store, giveaway_id)


@router.post("/giveaways/create")
async def create_giveaway(
    body: GiveawayCreate,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    giveaway = giveaway_service.create_giveaway(
        store,
        caller,
        name=body.name,
        description=body.description,
        duration_ms=body.duration_ms,
        password=body.password,
    )
    return {"success": True, "giveaway": giveaway}


@router.post("/giveaway/{giveaway_id}/enter")
async def enter_giveaway(
    giveaway_id: str,
    body: GiveawayEntry,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    giveaway_service.enter_giveaway(store, caller, giveaway_id, body.password)
    return {"success": True, "message": "You have entered the giveaway!"}


@router.post("/giveaway/{giveaway_id}/end")
async def end_giveaway(
    giveaway_id: str,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    giveaway = giveaway_service.end_giveaway(store, caller, giveaway_id)
    return {"success": True, "giveaway": giveaway}


@router.put("/giveaway/{giveaway_id}/edit")
async def edit_giveaway(
    giveaway_id: str,
    body: GiveawayEdit,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    # Only fields the client actually sent; an explicit null password clears it.
    fields = body.model_dump(exclude_unset=True)
    giveaway = giveaway_service.edit_giveaway(store, caller, giveaway_id, fields)
    return {"success": True, "giveaway": giveaway}


@router.delete("/giveaway/{giveaway_id}/delete")
async def delete_giveaway(
    giveaway_id: str,
    caller: Identity = Depends(get_current_user),
    store: RecordStore = Depends(get_store),
):
    giveaway_service.delete_giveaway(store, caller, giveaway_id)
    return {"success": True}
