"""
lunarwave.scheduler — Periodic Background Sweeps
==================================================

Scheduled jobs that run on ``discord.ext.tasks`` loops inside the API's
event loop (started and cancelled by the FastAPI lifespan):

- **Sponsorship expiry** — hourly, removes sponsorships past their expiry.
- **Server stats refresh** — every 15 minutes, re-resolves approved
  listings' invites and updates member / online counts.
- **Giveaway ending** — every minute, ends due giveaways and draws winners.

Each pass runs the same whole-document read-modify-write as a request.
Failures are logged; the loops keep running.
"""

from __future__ import annotations

import logging

from discord.ext import tasks

from lunarwave.constants import GIVEAWAY_SWEEP_SECONDS, SPONSOR_SWEEP_SECONDS, STATS_SWEEP_SECONDS
from lunarwave.database.store import RecordStore
from lunarwave.services import directory_service, giveaway_service, moderation_service
from lunarwave.services.discord_api import DiscordClient

logger = logging.getLogger(__name__)


class PeriodicTasks:
    """Owns the sweep loops for one store."""

    def __init__(self, store: RecordStore, discord: DiscordClient) -> None:
        self.store = store
        self.discord = discord

    def start(self) -> None:
        """Start all loops; each runs once immediately."""
        self.sponsor_loop.start()
        self.stats_loop.start()
        self.giveaway_loop.start()

    def stop(self) -> None:
        self.sponsor_loop.cancel()
        self.stats_loop.cancel()
        self.giveaway_loop.cancel()

    # -------------------------------------------------------------------
    # Sponsorship expiry — hourly
    # -------------------------------------------------------------------
    @tasks.loop(seconds=SPONSOR_SWEEP_SECONDS)
    async def sponsor_loop(self):
        try:
            expired = moderation_service.expire_sponsorships(self.store)
            if expired:
                logger.info("Sponsorship sweep: %d expired (%s)", len(expired), ", ".join(expired))
        except Exception:
            logger.exception("Sponsorship sweep failed", extra={"task": "sponsor_expiry"})

    # -------------------------------------------------------------------
    # Server stats refresh — every 15 minutes
    # -------------------------------------------------------------------
    @tasks.loop(seconds=STATS_SWEEP_SECONDS)
    async def stats_loop(self):
        try:
            changed = await directory_service.refresh_server_stats(self.store, self.discord)
            logger.info("Stats refresh complete: %d listings updated", changed)
        except Exception:
            logger.exception("Stats refresh failed", extra={"task": "stats_refresh"})

    # -------------------------------------------------------------------
    # Giveaway ending — every minute
    # -------------------------------------------------------------------
    @tasks.loop(seconds=GIVEAWAY_SWEEP_SECONDS)
    async def giveaway_loop(self):
        try:
            ended = giveaway_service.end_due_giveaways(self.store)
            if ended:
                logger.info("Giveaway sweep: ended %d giveaways", len(ended))
        except Exception:
            logger.exception("Giveaway sweep failed", extra={"task": "giveaway_end"})
