"""
lunarwave.constants — Shared Constants & Helpers
==================================================

Single source of truth for cooldowns, field limits, store names and the
Discord CDN helper.  Import from here instead of duplicating in services
and routes.
"""

from __future__ import annotations

import re
import time

# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------
MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


def now_ms() -> int:
    """Current time as integer milliseconds since the Unix epoch."""
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------------
BUMP_COOLDOWN_MS = 2 * HOUR_MS
SPONSOR_DURATION_MS = 30 * DAY_MS

SERVER_DESCRIPTION_MAX = 200
SERVER_TAG_MAX_LEN = 20
SERVER_TAGS_MAX = 5

INVITE_REGEX = re.compile(r"^https://discord\.gg/[a-zA-Z0-9]+$", re.IGNORECASE)

STATUS_PENDING = "Pending"
STATUS_APPROVED = "Approved"

# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------
PROFILE_DESCRIPTION_MAX = 500
PROFILE_TAGS_MAX = 3
PROFILE_TAG_MAX_LEN = 15
PROFILE_BUTTON_TEXT_MAX = 8

URL_REGEX = re.compile(r"^(https?|ftp)://[^\s/$.?#].[^\s]*$", re.IGNORECASE)

REACTION_TYPES = ("up", "down")
DEFAULT_VIGNETTE = {"color": "#000000", "strength": 0.5}

# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------
RATING_MIN = 1
RATING_MAX = 5

# ---------------------------------------------------------------------------
# Giveaways
# ---------------------------------------------------------------------------
MIN_GIVEAWAY_DURATION_MS = 1 * MINUTE_MS
TEAM_HOST_NAME = "Lunarwave Team"

# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------
BANNED_NOTICE = "You have been banned from Lunarwave."

# ---------------------------------------------------------------------------
# Sweep intervals (seconds)
# ---------------------------------------------------------------------------
SPONSOR_SWEEP_SECONDS = 60 * 60
STATS_SWEEP_SECONDS = 15 * 60
GIVEAWAY_SWEEP_SECONDS = 60

# ---------------------------------------------------------------------------
# Store names → empty default shape
# ---------------------------------------------------------------------------
STORE_DEFAULTS: dict[str, type] = {
    "profiles": dict,
    "admins": list,
    "servers": list,
    "pending": list,
    "reports": list,
    "last_bumps": dict,
    "reviews": dict,
    "server_pages": dict,
    "sponsored_servers": dict,
    "verified_servers": dict,
    "banned_servers": dict,
    "banned_users": dict,
    "inbox_messages": dict,
    "announcements": dict,
    "giveaways": list,
    "oauth_states": dict,
}


# ---------------------------------------------------------------------------
# Discord CDN
# ---------------------------------------------------------------------------
def cdn_image_url(entity_id: str | None, image_hash: str | None, kind: str = "avatars") -> str | None:
    """Construct a Discord CDN URL for an avatar, icon or banner hash.

    Users without a custom avatar get the default avatar derived from their
    snowflake.  Other kinds return ``None`` when no hash is set.
    """
    if not entity_id:
        return "https://cdn.discordapp.com/embed/avatars/0.png"
    if image_hash:
        ext = "gif" if image_hash.startswith("a_") else "png"
        return f"https://cdn.discordapp.com/{kind}/{entity_id}/{image_hash}.{ext}"
    if kind == "avatars":
        return f"https://cdn.discordapp.com/embed/avatars/{(int(entity_id) >> 22) % 6}.png"
    return None
