"""
Lunarwave — Discord Server Directory
======================================
Server listings, user profiles, reviews, moderation, an inbox with
site-wide announcements, and giveaways, served over a JSON REST API and
persisted as named JSON documents.

Package layout::

    lunarwave/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Cooldowns, limits, store names
    ├── identity.py        # Identity value + role resolution
    ├── scheduler.py       # Periodic sweeps (discord.ext.tasks loops)
    ├── database/
    │   ├── store.py       # RecordStore: JSON files, memory, SQL documents
    │   └── models.py      # ORM model for the SQL document backend
    ├── services/
    │   ├── directory_service.py   # Listings, bumps, server pages
    │   ├── profile_service.py     # Profiles + reactions
    │   ├── review_service.py      # Ratings + aggregates
    │   ├── moderation_service.py  # Bans, sponsorship, verification, admins
    │   ├── inbox_service.py       # Direct messages + announcements
    │   ├── giveaway_service.py    # Giveaway lifecycle + winner draw
    │   ├── discord_api.py         # Discord REST lookups (invites, users)
    │   └── errors.py              # Service error taxonomy
    └── api/
        ├── main.py        # FastAPI app
        ├── auth.py        # Discord OAuth2 → JWT
        └── routes/        # REST endpoints
"""

__version__ = "0.1.0"
