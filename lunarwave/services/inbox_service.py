"""
lunarwave.services.inbox_service — Direct Messages & Announcements
====================================================================

Messages and announcements never change after creation except for their
read state: a ``read`` flag on each direct message, and membership of the
reader's id in an announcement's ``read_by`` list.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from lunarwave.constants import now_ms
from lunarwave.database.store import RecordStore
from lunarwave.services.errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)


def send_message(
    store: RecordStore,
    sender: dict[str, Any],
    recipient_id: str | None,
    message: str | None,
    now: int | None = None,
) -> dict:
    """Append a message to *recipient_id*'s inbox.

    *sender* holds the ``sender_*`` snapshot fields (see
    :meth:`Identity.sender_fields`).
    """
    if not recipient_id or not message:
        raise ValidationFailed("Recipient ID and message are required.")
    entry = {
        "id": uuid.uuid4().hex,
        **sender,
        "message": message,
        "timestamp": now if now is not None else now_ms(),
        "read": False,
    }
    inbox = store.load("inbox_messages")
    inbox.setdefault(recipient_id, []).append(entry)
    store.save("inbox_messages", inbox)
    logger.info("Message %s sent to %s by %s", entry["id"], recipient_id, sender.get("sender_id"))
    return entry


def announce(
    store: RecordStore,
    sender: dict[str, Any],
    title: str | None,
    message: str | None,
    now: int | None = None,
) -> str:
    """Publish a site-wide announcement; returns its id."""
    if not title or not message:
        raise ValidationFailed("Title and message are required.")
    announcement_id = uuid.uuid4().hex
    announcements = store.load("announcements")
    announcements[announcement_id] = {
        **sender,
        "title": title,
        "message": message,
        "timestamp": now if now is not None else now_ms(),
        "read_by": [],
    }
    store.save("announcements", announcements)
    logger.info("Announcement %s published by %s", announcement_id, sender.get("sender_id"))
    return announcement_id


def list_messages(store: RecordStore, user_id: str) -> list[dict]:
    messages = store.load("inbox_messages").get(user_id) or []
    return sorted(messages, key=lambda m: m["timestamp"], reverse=True)


def list_announcements(store: RecordStore, user_id: str) -> list[dict]:
    announcements = [
        {**body, "id": announcement_id, "read": user_id in (body.get("read_by") or [])}
        for announcement_id, body in store.load("announcements").items()
    ]
    return sorted(announcements, key=lambda a: a["timestamp"], reverse=True)


def mark_message_read(store: RecordStore, user_id: str, message_id: str) -> None:
    inbox = store.load("inbox_messages")
    message = next((m for m in inbox.get(user_id) or [] if m["id"] == message_id), None)
    if message is None:
        raise NotFound("Message not found.")
    if not message["read"]:
        message["read"] = True
        store.save("inbox_messages", inbox)


def mark_announcement_read(store: RecordStore, user_id: str, announcement_id: str) -> None:
    announcements = store.load("announcements")
    announcement = announcements.get(announcement_id)
    if announcement is None:
        raise NotFound("Announcement not found.")
    read_by = announcement.setdefault("read_by", [])
    if user_id not in read_by:
        read_by.append(user_id)
        store.save("announcements", announcements)


def unread_count(store: RecordStore, user_id: str) -> dict[str, int]:
    messages = sum(
        1 for m in store.load("inbox_messages").get(user_id) or [] if not m.get("read")
    )
    announcements = sum(
        1 for a in store.load("announcements").values()
        if user_id not in (a.get("read_by") or [])
    )
    return {
        "total_unread": messages + announcements,
        "unread_messages": messages,
        "unread_announcements": announcements,
    }
