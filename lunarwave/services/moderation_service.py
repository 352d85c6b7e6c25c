"""
lunarwave.services.moderation_service — Bans, Sponsorship, Verification
=========================================================================

Moderation state is presence-based: a server or user is banned while a
record exists under its id, sponsored while its expiry is in the future,
verified while its flag exists.  Bans are independent of listings — a
banned server keeps its record, and a guild can be banned before it is
ever submitted.

Also owns the admin list and user reports.
"""

from __future__ import annotations

import logging
import uuid

from lunarwave.constants import SPONSOR_DURATION_MS, now_ms
from lunarwave.database.store import RecordStore
from lunarwave.services.errors import Conflict, NotFound, ValidationFailed

logger = logging.getLogger(__name__)


def _require_approved(store: RecordStore, server_id: str, message: str) -> None:
    if not any(s["id"] == server_id for s in store.load("servers")):
        raise NotFound(message)


# ---------------------------------------------------------------------------
# Bans
# ---------------------------------------------------------------------------
def _ban(store: RecordStore, name: str, target_id: str, reason: str | None, actor_id: str, now: int | None) -> dict:
    if not reason or not reason.strip():
        raise ValidationFailed("Ban reason is required.")
    bans = store.load(name)
    if target_id in bans:
        kind = "Server" if name == "banned_servers" else "User"
        raise Conflict(f"{kind} is already banned.")
    record = {
        "reason": reason.strip(),
        "banned_by": actor_id,
        "timestamp": now if now is not None else now_ms(),
    }
    bans[target_id] = record
    store.save(name, bans)
    return record


def _unban(store: RecordStore, name: str, target_id: str) -> None:
    bans = store.load(name)
    if bans.pop(target_id, None) is None:
        kind = "Server" if name == "banned_servers" else "User"
        raise NotFound(f"{kind} is not banned.")
    store.save(name, bans)


def ban_server(store: RecordStore, server_id: str, reason: str | None, actor_id: str, now: int | None = None) -> dict:
    record = _ban(store, "banned_servers", server_id, reason, actor_id, now)
    logger.info("Server %s banned by %s: %s", server_id, actor_id, record["reason"])
    return record


def unban_server(store: RecordStore, server_id: str) -> None:
    _unban(store, "banned_servers", server_id)
    logger.info("Server %s unbanned", server_id)


def ban_user(store: RecordStore, user_id: str, reason: str | None, actor_id: str, now: int | None = None) -> dict:
    record = _ban(store, "banned_users", user_id, reason, actor_id, now)
    logger.info("User %s banned by %s: %s", user_id, actor_id, record["reason"])
    return record


def unban_user(store: RecordStore, user_id: str) -> None:
    _unban(store, "banned_users", user_id)
    logger.info("User %s unbanned", user_id)


def list_banned_servers(store: RecordStore) -> dict:
    return store.load("banned_servers")


def list_banned_users(store: RecordStore) -> dict:
    return store.load("banned_users")


# ---------------------------------------------------------------------------
# Sponsorship
# ---------------------------------------------------------------------------
def sponsor_server(
    store: RecordStore,
    server_id: str,
    now: int | None = None,
    duration_ms: int = SPONSOR_DURATION_MS,
) -> int:
    """Sponsor an approved server; returns the expiry timestamp."""
    _require_approved(store, server_id, "Server not found in approved list.")
    now = now if now is not None else now_ms()
    sponsored = store.load("sponsored_servers")
    sponsored[server_id] = {"expiry": now + duration_ms}
    store.save("sponsored_servers", sponsored)
    logger.info("Server %s sponsored until %d", server_id, now + duration_ms)
    return now + duration_ms


def unsponsor_server(store: RecordStore, server_id: str) -> None:
    sponsored = store.load("sponsored_servers")
    if sponsored.pop(server_id, None) is None:
        raise NotFound("Server is not sponsored.")
    store.save("sponsored_servers", sponsored)


def expire_sponsorships(store: RecordStore, now: int | None = None) -> list[str]:
    """Delete sponsorships whose expiry has passed; returns the expired ids."""
    now = now if now is not None else now_ms()
    sponsored = store.load("sponsored_servers")
    expired = [sid for sid, entry in sponsored.items() if entry.get("expiry", 0) < now]
    if expired:
        for sid in expired:
            del sponsored[sid]
        store.save("sponsored_servers", sponsored)
    return expired


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------
def verify_server(store: RecordStore, server_id: str) -> None:
    _require_approved(store, server_id, "Server not found.")
    verified = store.load("verified_servers")
    verified[server_id] = True
    store.save("verified_servers", verified)
    logger.info("Server %s verified", server_id)


def unverify_server(store: RecordStore, server_id: str) -> None:
    verified = store.load("verified_servers")
    if verified.pop(server_id, None) is None:
        raise NotFound("Server is not verified.")
    store.save("verified_servers", verified)


# ---------------------------------------------------------------------------
# Admin list
# ---------------------------------------------------------------------------
def list_admin_ids(store: RecordStore) -> list[str]:
    return store.load("admins")


def add_admin(store: RecordStore, user_id: str | None) -> None:
    if not user_id:
        raise ValidationFailed("User ID is required.")
    admins = store.load("admins")
    if user_id in admins:
        raise Conflict("User is already an admin.")
    admins.append(user_id)
    store.save("admins", admins)
    logger.info("Admin added: %s", user_id)


def remove_admin(store: RecordStore, user_id: str | None) -> None:
    if not user_id:
        raise ValidationFailed("User ID is required.")
    admins = store.load("admins")
    if user_id not in admins:
        raise NotFound("User is not an admin.")
    store.save("admins", [a for a in admins if a != user_id])
    logger.info("Admin removed: %s", user_id)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------
def report_server(
    store: RecordStore,
    server_id: str,
    reporter_id: str,
    reason: str | None,
    now: int | None = None,
) -> dict:
    if not reason or not reason.strip():
        raise ValidationFailed("Report reason is required.")
    _require_approved(store, server_id, "Server not found.")
    report = {
        "id": uuid.uuid4().hex,
        "server_id": server_id,
        "reporter_id": reporter_id,
        "reason": reason.strip(),
        "timestamp": now if now is not None else now_ms(),
    }
    reports = store.load("reports")
    reports.append(report)
    store.save("reports", reports)
    logger.info("Server %s reported by %s", server_id, reporter_id)
    return report


def list_reports(store: RecordStore) -> list[dict]:
    return store.load("reports")
