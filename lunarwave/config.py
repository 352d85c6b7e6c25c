"""
lunarwave.config — YAML Configuration Loader
==============================================

Reads ``config.yaml`` for **site** settings (super-admin identity, where
documents are stored, sponsorship and bump tuning).  Secrets (JWT secret,
Discord OAuth credentials, bot token) stay in the environment / ``.env``.

Usage::

    from lunarwave.config import load_config

    cfg = load_config()          # reads $LUNARWAVE_CONFIG or ./config.yaml
    print(cfg.site_name)         # "Lunarwave"
    print(cfg.super_admin_id)    # "123456789012345678"
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from lunarwave.constants import BUMP_COOLDOWN_MS, MINUTE_MS, SPONSOR_DURATION_MS, DAY_MS

STORAGE_BACKENDS = ("json", "sql")


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LunarwaveConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    site_name: str
    super_admin_id: str  # Discord user id with full moderation rights

    # Storage
    data_dir: str = "db"
    storage_backend: str = "json"  # "json" files or "sql" documents table

    # Directory tuning
    sponsor_days: int = SPONSOR_DURATION_MS // DAY_MS
    bump_cooldown_minutes: int = BUMP_COOLDOWN_MS // MINUTE_MS

    @property
    def sponsor_duration_ms(self) -> int:
        return self.sponsor_days * DAY_MS

    @property
    def bump_cooldown_ms(self) -> int:
        return self.bump_cooldown_minutes * MINUTE_MS


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path | None = None) -> LunarwaveConfig:
    """Read *path* and return a :class:`LunarwaveConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.  Defaults to
        ``$LUNARWAVE_CONFIG`` or ``config.yaml`` in the working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If ``storage_backend`` is not a known backend.
    """
    config_path = Path(path or os.getenv("LUNARWAVE_CONFIG", "config.yaml"))
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    backend = str(raw.get("storage_backend", "json")).lower()
    if backend not in STORAGE_BACKENDS:
        raise ValueError(
            f"Unknown storage_backend {backend!r}; expected one of {STORAGE_BACKENDS}"
        )

    return LunarwaveConfig(
        site_name=raw["site_name"],
        super_admin_id=str(raw["super_admin_id"]),
        data_dir=str(raw.get("data_dir", "db")),
        storage_backend=backend,
        sponsor_days=int(raw.get("sponsor_days", SPONSOR_DURATION_MS // DAY_MS)),
        bump_cooldown_minutes=int(
            raw.get("bump_cooldown_minutes", BUMP_COOLDOWN_MS // MINUTE_MS)
        ),
    )
