"""
lunarwave.services.profile_service — User Profiles
====================================================

One profile per Discord user, keyed by user id.  Submitting again
overwrites the editable fields but keeps the reaction counters and the
original creation time.
"""

from __future__ import annotations

import logging
from typing import Any

from lunarwave.constants import (
    DEFAULT_VIGNETTE,
    PROFILE_BUTTON_TEXT_MAX,
    PROFILE_DESCRIPTION_MAX,
    PROFILE_TAG_MAX_LEN,
    PROFILE_TAGS_MAX,
    REACTION_TYPES,
    URL_REGEX,
    now_ms,
)
from lunarwave.database.store import RecordStore
from lunarwave.identity import Identity
from lunarwave.services.errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)


def _validate(payload: dict[str, Any]) -> None:
    description = payload.get("description")
    if (
        not isinstance(description, str)
        or not description.strip()
        or len(description) > PROFILE_DESCRIPTION_MAX
    ):
        raise ValidationFailed(f"Description is required (1-{PROFILE_DESCRIPTION_MAX} chars)")

    tags = payload.get("tags")
    if (
        not isinstance(tags, list)
        or len(tags) > PROFILE_TAGS_MAX
        or any(not isinstance(t, str) or len(t) > PROFILE_TAG_MAX_LEN for t in tags)
    ):
        raise ValidationFailed(
            f"Max {PROFILE_TAGS_MAX} tags, {PROFILE_TAG_MAX_LEN} chars each"
        )

    for n in (1, 2):
        text = payload.get(f"button_text{n}")
        if text and len(text) > PROFILE_BUTTON_TEXT_MAX:
            raise ValidationFailed(
                f"Button {n} text max {PROFILE_BUTTON_TEXT_MAX} characters"
            )
        if text and not payload.get(f"button_link{n}"):
            raise ValidationFailed(f"Button {n} link is required")

    for key in ("button_link1", "button_link2", "background", "banner"):
        value = payload.get(key)
        if value and not URL_REGEX.match(value):
            raise ValidationFailed("Invalid URL format provided for a link.")


def list_profiles(store: RecordStore) -> list[dict]:
    return list(store.load("profiles").values())


def get_profile(store: RecordStore, user_id: str) -> dict:
    profile = store.load("profiles").get(user_id)
    if profile is None:
        raise NotFound("Profile not found")
    return profile


def upsert_profile(
    store: RecordStore,
    identity: Identity,
    payload: dict[str, Any],
    now: int | None = None,
) -> dict:
    """Create or overwrite the caller's profile."""
    _validate(payload)
    now = now if now is not None else now_ms()

    profiles = store.load("profiles")
    existing = profiles.get(identity.user_id) or {}
    profile = {
        "user_id": identity.user_id,
        "display_name": identity.display_name,
        "username": identity.username,
        "avatar": identity.avatar,
        "background": payload.get("background") or None,
        "banner": payload.get("banner") or None,
        "description": payload["description"],
        "tags": [t.strip() for t in payload["tags"] if t.strip()],
        "role": identity.profile_role,
        "buttons": {
            "text1": payload.get("button_text1") or None,
            "link1": payload.get("button_link1") or None,
            "text2": payload.get("button_text2") or None,
            "link2": payload.get("button_link2") or None,
        },
        "friend_request": bool(payload.get("friend_request")),
        "vignette": payload.get("vignette") or dict(DEFAULT_VIGNETTE),
        "reactions": existing.get("reactions") or {"up": 0, "down": 0},
        "created_at": existing.get("created_at") or now,
        "updated_at": now,
    }
    profiles[identity.user_id] = profile
    store.save("profiles", profiles)
    logger.info("Profile %s %s", identity.user_id, "updated" if existing else "created")
    return profile


def react_to_profile(store: RecordStore, user_id: str, reaction: str) -> dict[str, int]:
    if reaction not in REACTION_TYPES:
        raise ValidationFailed("Invalid reaction type")
    profiles = store.load("profiles")
    profile = profiles.get(user_id)
    if profile is None:
        raise NotFound("Profile not found")
    counters = profile.setdefault("reactions", {"up": 0, "down": 0})
    counters[reaction] = counters.get(reaction, 0) + 1
    store.save("profiles", profiles)
    return counters


def delete_profile(store: RecordStore, user_id: str) -> None:
    profiles = store.load("profiles")
    if profiles.pop(user_id, None) is None:
        raise NotFound("Profile not found")
    store.save("profiles", profiles)
    logger.info("Profile %s deleted", user_id)
