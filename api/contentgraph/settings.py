"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Soft-deleted posts older than this are permanently purged by the reaper.
# Configured via .env: POST_RETENTION_DAYS=30
POST_RETENTION_DAYS: int = _int_env("POST_RETENTION_DAYS", 30)

# Minimum number of seconds between two reaper runs (24h by default).
REAPER_INTERVAL_SECONDS: int = _int_env("REAPER_INTERVAL_SECONDS", 24 * 60 * 60)

# When enabled, every authenticated request checks whether the reaper is due.
# Disable when the Celery beat schedule is running the reaper instead.
OPPORTUNISTIC_REAPER: bool = _bool_env("OPPORTUNISTIC_REAPER", True)

# Maximum length of a post or comment body (characters).
MAX_BODY_LENGTH: int = _int_env("MAX_BODY_LENGTH", 5000)
