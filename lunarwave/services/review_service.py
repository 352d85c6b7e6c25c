"""
lunarwave.services.review_service — Server Ratings
====================================================

One rating (1–5) per user per server, overwritten on resubmission.  The
aggregate is recomputed on every read.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from lunarwave.constants import RATING_MAX, RATING_MIN, now_ms
from lunarwave.database.store import RecordStore
from lunarwave.services.errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)


def aggregate(ratings: list[float]) -> dict[str, float | int]:
    """Mean rounded half-up to one decimal place, plus the count."""
    if not ratings:
        return {"average_rating": 0, "total_reviews": 0}
    total = sum((Decimal(str(r)) for r in ratings), Decimal(0))
    mean = (total / len(ratings)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return {"average_rating": float(mean), "total_reviews": len(ratings)}


def review_stats(store: RecordStore, server_id: str) -> dict[str, float | int]:
    server_reviews = store.load("reviews").get(server_id) or {}
    return aggregate([r["rating"] for r in server_reviews.values()])


def list_reviews(store: RecordStore, server_id: str) -> dict:
    return store.load("reviews").get(server_id) or {}


def my_rating(store: RecordStore, server_id: str, user_id: str) -> float | int:
    entry = (store.load("reviews").get(server_id) or {}).get(user_id)
    return entry["rating"] if entry else 0


def rate_server(
    store: RecordStore,
    server_id: str,
    user_id: str,
    rating,
    now: int | None = None,
) -> dict[str, float | int]:
    """Record *user_id*'s rating for an approved server and return the new aggregate."""
    if (
        isinstance(rating, bool)
        or not isinstance(rating, (int, float))
        or not RATING_MIN <= rating <= RATING_MAX
    ):
        raise ValidationFailed(
            f"Rating must be a number between {RATING_MIN} and {RATING_MAX}."
        )
    if not any(s["id"] == server_id for s in store.load("servers")):
        raise NotFound("Server not found or not approved.")

    reviews = store.load("reviews")
    reviews.setdefault(server_id, {})[user_id] = {
        "rating": rating,
        "timestamp": now if now is not None else now_ms(),
    }
    store.save("reviews", reviews)
    logger.info("User %s rated server %s: %s", user_id, server_id, rating)
    return aggregate([r["rating"] for r in reviews[server_id].values()])
