"""
lunarwave.services.directory_service — Server Listings
========================================================

Listings live in two documents: ``pending`` (submitted, awaiting an admin)
and ``servers`` (approved, publicly listed).  A guild id is in at most one
of them.  Side documents keyed by server id hold the last bump time,
reviews, the owner-edited page, sponsorship and verification; deleting an
approved listing removes all of them.

Submission and invite edits resolve the invite through Discord *before*
touching the store, so the read-modify-write that follows never spans an
``await``.
"""

from __future__ import annotations

import logging
from typing import Any

from lunarwave.constants import (
    BUMP_COOLDOWN_MS,
    INVITE_REGEX,
    SERVER_DESCRIPTION_MAX,
    SERVER_TAG_MAX_LEN,
    SERVER_TAGS_MAX,
    STATUS_APPROVED,
    STATUS_PENDING,
    now_ms,
)
from lunarwave.database.store import RecordStore
from lunarwave.services.discord_api import DiscordClient, InviteInfo, invite_code
from lunarwave.services.errors import (
    Conflict,
    CooldownActive,
    Forbidden,
    NotFound,
    UpstreamError,
    ValidationFailed,
)
from lunarwave.services.review_service import aggregate, review_stats

logger = logging.getLogger(__name__)

# Documents keyed by server id that follow an approved listing's lifetime.
CASCADE_STORES = (
    "last_bumps",
    "reviews",
    "server_pages",
    "sponsored_servers",
    "verified_servers",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def normalize_tags(tags: list[Any]) -> list[str]:
    """Trim and lower-case tags, drop empty or over-long ones, keep the first five."""
    cleaned = [str(t).strip().lower() for t in tags]
    return [t for t in cleaned if 0 < len(t) <= SERVER_TAG_MAX_LEN][:SERVER_TAGS_MAX]


def _check_invite_format(invite: str) -> None:
    if not INVITE_REGEX.match(invite):
        raise ValidationFailed("Invalid Discord invite link format.")


def _snapshot(store: RecordStore) -> dict[str, dict]:
    return {
        name: store.load(name)
        for name in ("last_bumps", "reviews", "sponsored_servers", "verified_servers", "banned_servers")
    }


def _enrich(server: dict, snap: dict[str, dict], now: int) -> dict:
    server_id = server["id"]
    sponsorship = snap["sponsored_servers"].get(server_id)
    ratings = [r["rating"] for r in (snap["reviews"].get(server_id) or {}).values()]
    return {
        **server,
        "last_bump": snap["last_bumps"].get(server_id, 0),
        "online_count": server.get("approximate_presence_count") or 0,
        **aggregate(ratings),
        "is_sponsored": bool(sponsorship and sponsorship["expiry"] > now),
        "is_verified": bool(snap["verified_servers"].get(server_id)),
    }


def _cascade_delete(store: RecordStore, server_id: str) -> None:
    for name in CASCADE_STORES:
        document = store.load(name)
        if document.pop(server_id, None) is not None:
            store.save(name, document)


def _find_owned(store: RecordStore, server_id: str, user_id: str) -> tuple[str, list, dict]:
    for name in ("servers", "pending"):
        listings = store.load(name)
        for server in listings:
            if server["id"] == server_id and user_id in server.get("owners", []):
                return name, listings, server
    raise NotFound("Server not found or you are not an owner.")


def _approved(store: RecordStore, server_id: str) -> dict | None:
    return next((s for s in store.load("servers") if s["id"] == server_id), None)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------
def list_servers(store: RecordStore, now: int | None = None) -> list[dict]:
    """Approved, non-banned servers; sponsored first, then bump, online count, name."""
    now = now if now is not None else now_ms()
    snap = _snapshot(store)
    listed = [
        _enrich(s, snap, now)
        for s in store.load("servers")
        if s["id"] not in snap["banned_servers"]
    ]
    listed.sort(
        key=lambda s: (
            not s["is_sponsored"],
            -s["last_bump"],
            -s["online_count"],
            (s.get("name") or "").casefold(),
        )
    )
    return listed


def list_owned(store: RecordStore, user_id: str, now: int | None = None) -> list[dict]:
    """Approved and pending listings owned by *user_id*, banned ones excluded."""
    now = now if now is not None else now_ms()
    snap = _snapshot(store)
    owned = [
        s for s in store.load("servers") + store.load("pending")
        if user_id in s.get("owners", []) and s["id"] not in snap["banned_servers"]
    ]
    return [_enrich(s, snap, now) for s in owned]


def list_pending(store: RecordStore) -> list[dict]:
    return store.load("pending")


def get_server(store: RecordStore, server_id: str) -> dict:
    server = _approved(store, server_id)
    if server is None:
        raise NotFound("Server not found.")
    return server


# ---------------------------------------------------------------------------
# Submission & approval
# ---------------------------------------------------------------------------
def _check_submittable(store: RecordStore, guild_id: str) -> None:
    if any(s["id"] == guild_id for s in store.load("servers") + store.load("pending")):
        raise Conflict("This server is already added or pending approval.")


async def submit_server(
    store: RecordStore,
    discord: DiscordClient,
    *,
    guild_id: str | None,
    invite: str | None,
    description: str | None,
    tags: Any,
    nsfw: bool,
    owner_id: str,
) -> dict:
    """Validate a submission, resolve its invite and store it as ``Pending``."""
    if guild_id and guild_id in store.load("banned_servers"):
        raise Forbidden("This server is banned and cannot be added.")
    if not guild_id or not invite or not description or not isinstance(tags, list):
        raise ValidationFailed(
            "Missing required fields: server ID, invite link, description, or tags."
        )
    if len(description) > SERVER_DESCRIPTION_MAX:
        raise ValidationFailed(f"Description exceeds {SERVER_DESCRIPTION_MAX} characters.")
    _check_invite_format(invite)
    _check_submittable(store, guild_id)

    info: InviteInfo = await discord.fetch_invite(invite_code(invite))
    if info.id != guild_id:
        raise ValidationFailed("The provided invite link does not match the selected server.")

    # Re-check: another submission may have landed while the lookup was in flight.
    _check_submittable(store, guild_id)

    listing = {
        **info.to_listing_fields(),
        "invite": invite,
        "description": description,
        "tags": normalize_tags(tags),
        "nsfw": bool(nsfw),
        "owners": [owner_id],
        "status": STATUS_PENDING,
        "last_bump": 0,
        "page_image_link": None,
    }
    pending = store.load("pending")
    pending.append(listing)
    store.save("pending", pending)
    logger.info("Server %s submitted for approval by %s", guild_id, owner_id)
    return listing


def approve_server(store: RecordStore, server_id: str, now: int | None = None) -> dict:
    """Move a pending listing into the approved store and initialise its side records."""
    now = now if now is not None else now_ms()
    pending = store.load("pending")
    found = next((s for s in pending if s["id"] == server_id), None)
    if found is None:
        raise NotFound("Not found")
    servers = store.load("servers")
    if any(s["id"] == server_id for s in servers):
        raise Conflict("Server is already approved.")

    found["status"] = STATUS_APPROVED
    found["last_bump"] = now
    store.save("pending", [s for s in pending if s["id"] != server_id])
    servers.append(found)
    store.save("servers", servers)

    last_bumps = store.load("last_bumps")
    last_bumps[server_id] = now
    store.save("last_bumps", last_bumps)

    reviews = store.load("reviews")
    reviews.setdefault(server_id, {})
    store.save("reviews", reviews)

    pages = store.load("server_pages")
    pages.setdefault(server_id, {"elements": []})
    store.save("server_pages", pages)

    logger.info("Server %s approved", server_id)
    return found


def reject_pending(store: RecordStore, server_id: str) -> None:
    pending = store.load("pending")
    remaining = [s for s in pending if s["id"] != server_id]
    if len(remaining) == len(pending):
        raise NotFound("Pending server not found.")
    store.save("pending", remaining)
    logger.info("Pending server %s rejected", server_id)


# ---------------------------------------------------------------------------
# Owner edits
# ---------------------------------------------------------------------------
async def update_server(
    store: RecordStore,
    discord: DiscordClient,
    server_id: str,
    owner_id: str,
    fields: dict[str, Any],
) -> dict:
    """Apply a partial update from one of the listing's owners.

    Supported keys: ``tags``, ``description``, ``page_image_link``,
    ``invite``, ``nsfw``.  Keys that are absent or ``None`` are left alone.
    """
    _find_owned(store, server_id, owner_id)

    info: InviteInfo | None = None
    new_invite = fields.get("invite")
    if new_invite is not None:
        new_invite = new_invite.strip()
        _check_invite_format(new_invite)
        try:
            info = await discord.fetch_invite(invite_code(new_invite))
        except UpstreamError as exc:
            raise UpstreamError(
                f"Failed to validate new invite: {exc.message}", status_code=exc.status_code
            )
        if info.id != server_id:
            raise ValidationFailed("The new invite link does not belong to this server ID.")

    name, listings, server = _find_owned(store, server_id, owner_id)

    if fields.get("tags") is not None:
        tags = normalize_tags(fields["tags"])
        if not tags:
            raise ValidationFailed("At least one tag is required.")
        server["tags"] = tags
    if fields.get("description") is not None:
        description = fields["description"].strip()
        if not description:
            raise ValidationFailed("Description is mandatory.")
        if len(description) > SERVER_DESCRIPTION_MAX:
            raise ValidationFailed(f"Description exceeds {SERVER_DESCRIPTION_MAX} characters.")
        server["description"] = description
    if fields.get("page_image_link") is not None:
        server["page_image_link"] = fields["page_image_link"].strip() or None
    if info is not None:
        server["invite"] = new_invite
        server.update({k: v for k, v in info.to_listing_fields().items() if k != "id"})
    if fields.get("nsfw") is not None:
        server["nsfw"] = bool(fields["nsfw"])

    store.save(name, listings)
    logger.info("Server %s updated by owner %s", server_id, owner_id)
    return server


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------
def delete_owned(store: RecordStore, server_id: str, owner_id: str) -> str:
    """Owner deletion; banned listings stay.  Returns the store it was removed from."""
    if server_id in store.load("banned_servers"):
        raise Forbidden("This server is banned and cannot be deleted by an owner.")

    name, listings, _ = _find_owned(store, server_id, owner_id)
    store.save(name, [s for s in listings if s["id"] != server_id])
    if name == "servers":
        _cascade_delete(store, server_id)
    logger.info("Server %s deleted from %s by owner %s", server_id, name, owner_id)
    return name


def force_delete(store: RecordStore, server_id: str) -> None:
    """Super-admin deletion from both stores regardless of bans."""
    deleted = False
    servers = store.load("servers")
    remaining = [s for s in servers if s["id"] != server_id]
    if len(remaining) < len(servers):
        store.save("servers", remaining)
        _cascade_delete(store, server_id)
        deleted = True

    pending = store.load("pending")
    remaining = [s for s in pending if s["id"] != server_id]
    if len(remaining) < len(pending):
        store.save("pending", remaining)
        deleted = True

    if not deleted:
        raise NotFound("Server not found.")
    logger.info("Server %s force-deleted and all data cleaned", server_id)


# ---------------------------------------------------------------------------
# Bumping
# ---------------------------------------------------------------------------
def bump_server(
    store: RecordStore,
    server_id: str,
    now: int | None = None,
    cooldown_ms: int = BUMP_COOLDOWN_MS,
) -> int:
    """Stamp the bump time of an approved server, enforcing the cooldown."""
    now = now if now is not None else now_ms()
    if _approved(store, server_id) is None:
        raise NotFound("Server not found or not approved.")

    last_bumps = store.load("last_bumps")
    last = last_bumps.get(server_id)
    if last and now - last < cooldown_ms:
        remaining = cooldown_ms - (now - last)
        hours, rest = divmod(remaining, 3_600_000)
        minutes = rest // 60_000
        raise CooldownActive(
            f"Please wait {hours}h {minutes}m before bumping again.",
            remaining_ms=remaining,
        )

    last_bumps[server_id] = now
    store.save("last_bumps", last_bumps)
    return now


# ---------------------------------------------------------------------------
# Server pages
# ---------------------------------------------------------------------------
def get_server_page(store: RecordStore, server_id: str) -> dict:
    server = get_server(store, server_id)
    if server_id in store.load("banned_servers"):
        raise Forbidden("This server is banned.")
    page = store.load("server_pages").get(server_id) or {"elements": []}
    return {
        "page_data": page,
        "server_info": server,
        "review_stats": review_stats(store, server_id),
    }


def _require_page_owner(store: RecordStore, server_id: str, user_id: str) -> None:
    server = _approved(store, server_id)
    if server is None or user_id not in server.get("owners", []):
        raise Forbidden("You are not authorized.")


def save_server_page(store: RecordStore, server_id: str, user_id: str, elements: Any) -> None:
    _require_page_owner(store, server_id, user_id)
    if not isinstance(elements, list):
        raise ValidationFailed("Invalid data format.")
    pages = store.load("server_pages")
    pages[server_id] = {"elements": elements}
    store.save("server_pages", pages)


def reset_server_page(store: RecordStore, server_id: str, user_id: str) -> None:
    _require_page_owner(store, server_id, user_id)
    pages = store.load("server_pages")
    if pages.pop(server_id, None) is not None:
        store.save("server_pages", pages)


# ---------------------------------------------------------------------------
# Periodic stats refresh
# ---------------------------------------------------------------------------
async def refresh_server_stats(store: RecordStore, discord: DiscordClient) -> int:
    """Re-resolve every approved listing's invite and update its counts.

    Returns the number of listings whose counts changed.
    """
    resolved: dict[str, InviteInfo] = {}
    for server in store.load("servers"):
        if not server.get("invite"):
            continue
        try:
            resolved[server["id"]] = await discord.fetch_invite(invite_code(server["invite"]))
        except UpstreamError as exc:
            logger.warning("Stats refresh skipped %s: %s", server["id"], exc.message)

    servers = store.load("servers")
    changed = 0
    for server in servers:
        info = resolved.get(server["id"])
        if info is None:
            continue
        if (
            server.get("approximate_member_count") != info.approximate_member_count
            or server.get("approximate_presence_count") != info.approximate_presence_count
        ):
            server["approximate_member_count"] = info.approximate_member_count
            server["approximate_presence_count"] = info.approximate_presence_count
            changed += 1
    if changed:
        store.save("servers", servers)
    return changed
