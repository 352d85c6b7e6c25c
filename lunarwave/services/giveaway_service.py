"""
lunarwave.services.giveaway_service — Giveaways
=================================================

Lifecycle::

    Open  ──(end_time reached, sweep)──▶  Ended (winner drawn, or none)
      │
      └──(host / super-admin ends early)──▶  Ended

A giveaway is open while ``now < end_time`` and ``ended_at`` is unset.
The periodic sweep (:func:`end_due_giveaways`) stamps ``ended_at`` and
draws the winner exactly once; later sweeps skip it.
"""

from __future__ import annotations

import logging
import random
import uuid
from typing import Any

from lunarwave.constants import MIN_GIVEAWAY_DURATION_MS, MINUTE_MS, TEAM_HOST_NAME, cdn_image_url, now_ms
from lunarwave.database.store import RecordStore
from lunarwave.identity import Identity
from lunarwave.services import inbox_service
from lunarwave.services.errors import Conflict, Forbidden, NotFound, ValidationFailed

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def is_ended(giveaway: dict, now: int) -> bool:
    return giveaway.get("ended_at") is not None or giveaway["end_time"] <= now


def _public(giveaway: dict, now: int) -> dict:
    """Presentation view; never exposes the password."""
    view = {k: v for k, v in giveaway.items() if k != "password"}
    winner_id = giveaway.get("winner_id")
    view.update({
        "has_password": bool(giveaway.get("password")),
        "is_ended": is_ended(giveaway, now),
        "entry_count": len(giveaway.get("entries") or {}),
        "hosted_by": (
            TEAM_HOST_NAME if giveaway.get("is_team")
            else giveaway.get("host_display_name") or giveaway.get("host_username")
        ),
        "host_avatar_url": cdn_image_url(giveaway.get("host_id"), giveaway.get("host_avatar")),
        "winner_details": {
            "username": giveaway.get("winner_username"),
            "display_name": giveaway.get("winner_display_name"),
            "avatar": cdn_image_url(winner_id, giveaway.get("winner_avatar")),
        } if winner_id else None,
    })
    return view


def _find(giveaways: list[dict], giveaway_id: str) -> dict:
    giveaway = next((g for g in giveaways if g["id"] == giveaway_id), None)
    if giveaway is None:
        raise NotFound("Giveaway not found.")
    return giveaway


def _require_manager(giveaway: dict, identity: Identity) -> None:
    if giveaway["host_id"] != identity.user_id and not identity.is_super_admin:
        raise Forbidden("Only the host can manage this giveaway.")


def _draw(store: RecordStore, giveaway: dict, now: int, rng: random.Random | Any) -> None:
    giveaway["ended_at"] = now
    entries = giveaway.get("entries") or {}
    if not entries:
        logger.info("Giveaway %s ended with no entries", giveaway["id"])
        return

    winner_id = rng.choice(list(entries))
    entry = entries[winner_id]
    giveaway.update({
        "winner_id": winner_id,
        "winner_username": entry.get("username"),
        "winner_display_name": entry.get("display_name"),
        "winner_avatar": entry.get("avatar"),
    })
    logger.info("Giveaway %s ended; winner %s of %d entries", giveaway["id"], winner_id, len(entries))
    inbox_service.send_message(
        store,
        {
            "sender_id": giveaway["host_id"],
            "sender_username": giveaway.get("host_username"),
            "sender_display_name": giveaway.get("host_display_name"),
            "sender_avatar": giveaway.get("host_avatar"),
        },
        winner_id,
        f"Congratulations! You won the giveaway \"{giveaway['name']}\".",
        now=now,
    )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def list_giveaways(store: RecordStore, now: int | None = None) -> list[dict]:
    """Open giveaways first (soonest ending), then ended ones (most recent first)."""
    now = now if now is not None else now_ms()
    views = [_public(g, now) for g in store.load("giveaways")]

    def sort_key(g: dict) -> tuple:
        if g["is_ended"]:
            return (1, -(g.get("ended_at") or g["end_time"]))
        return (0, g["end_time"])

    return sorted(views, key=sort_key)


def get_giveaway(store: RecordStore, giveaway_id: str, now: int | None = None) -> dict:
    now = now if now is not None else now_ms()
    return _public(_find(store.load("giveaways"), giveaway_id), now)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
def create_giveaway(
    store: RecordStore,
    identity: Identity,
    *,
    name: str | None,
    description: str | None,
    duration_ms: int | None,
    password: str | None = None,
    now: int | None = None,
) -> dict:
    if not identity.is_admin:
        raise Forbidden("You do not have permission to create giveaways.")
    if not name or not description or not duration_ms:
        raise ValidationFailed("Missing required fields.")
    if duration_ms < MIN_GIVEAWAY_DURATION_MS:
        raise ValidationFailed(
            f"Duration must be at least {MIN_GIVEAWAY_DURATION_MS // MINUTE_MS} minutes."
        )

    now = now if now is not None else now_ms()
    giveaway = {
        "id": uuid.uuid4().hex,
        "name": name,
        "description": description,
        "password": password or None,
        "host_id": identity.user_id,
        "host_username": identity.username,
        "host_display_name": identity.display_name,
        "host_avatar": identity.avatar,
        "is_team": identity.is_admin,
        "duration_ms": duration_ms,
        "start_time": now,
        "end_time": now + duration_ms,
        "entries": {},
        "winner_id": None,
        "ended_at": None,
    }
    giveaways = store.load("giveaways")
    giveaways.append(giveaway)
    store.save("giveaways", giveaways)
    logger.info("Giveaway %s created by %s (%d ms)", giveaway["id"], identity.user_id, duration_ms)
    return _public(giveaway, now)


def enter_giveaway(
    store: RecordStore,
    identity: Identity,
    giveaway_id: str,
    password: str | None = None,
    now: int | None = None,
) -> None:
    now = now if now is not None else now_ms()
    giveaways = store.load("giveaways")
    giveaway = _find(giveaways, giveaway_id)
    if is_ended(giveaway, now):
        raise ValidationFailed("This giveaway has ended.")
    if identity.user_id in giveaway["entries"]:
        raise Conflict("You have already entered.")
    if giveaway.get("password") and giveaway["password"] != password:
        raise Forbidden("Incorrect password.")

    giveaway["entries"][identity.user_id] = {
        "timestamp": now,
        "username": identity.username,
        "display_name": identity.display_name,
        "avatar": identity.avatar,
    }
    store.save("giveaways", giveaways)


def end_giveaway(
    store: RecordStore,
    identity: Identity,
    giveaway_id: str,
    now: int | None = None,
    rng: random.Random | Any = random,
) -> dict:
    """End an open giveaway immediately and draw its winner."""
    now = now if now is not None else now_ms()
    giveaways = store.load("giveaways")
    giveaway = _find(giveaways, giveaway_id)
    _require_manager(giveaway, identity)
    if giveaway.get("ended_at") is not None:
        raise Conflict("This giveaway has already ended.")

    giveaway["end_time"] = min(giveaway["end_time"], now)
    _draw(store, giveaway, now, rng)
    store.save("giveaways", giveaways)
    return _public(giveaway, now)


def edit_giveaway(
    store: RecordStore,
    identity: Identity,
    giveaway_id: str,
    fields: dict[str, Any],
    now: int | None = None,
) -> dict:
    """Change the name, description or password of an open giveaway."""
    now = now if now is not None else now_ms()
    giveaways = store.load("giveaways")
    giveaway = _find(giveaways, giveaway_id)
    _require_manager(giveaway, identity)
    if is_ended(giveaway, now):
        raise ValidationFailed("This giveaway has ended.")

    for key in ("name", "description"):
        if fields.get(key) is not None:
            if not fields[key].strip():
                raise ValidationFailed(f"{key.capitalize()} cannot be empty.")
            giveaway[key] = fields[key]
    if "password" in fields:
        giveaway["password"] = fields["password"] or None

    store.save("giveaways", giveaways)
    return _public(giveaway, now)


def delete_giveaway(store: RecordStore, identity: Identity, giveaway_id: str) -> None:
    giveaways = store.load("giveaways")
    giveaway = _find(giveaways, giveaway_id)
    _require_manager(giveaway, identity)
    store.save("giveaways", [g for g in giveaways if g["id"] != giveaway_id])
    logger.info("Giveaway %s deleted by %s", giveaway_id, identity.user_id)


# ---------------------------------------------------------------------------
# Periodic sweep
# ---------------------------------------------------------------------------
def end_due_giveaways(
    store: RecordStore,
    now: int | None = None,
    rng: random.Random | Any = random,
) -> list[str]:
    """End every giveaway past its end time that hasn't been ended yet.

    Returns the ids ended by this pass.
    """
    now = now if now is not None else now_ms()
    giveaways = store.load("giveaways")
    ended = []
    for giveaway in giveaways:
        if giveaway["end_time"] <= now and giveaway.get("ended_at") is None:
            _draw(store, giveaway, now, rng)
            ended.append(giveaway["id"])
    if ended:
        store.save("giveaways", giveaways)
    return ended
