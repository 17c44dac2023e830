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


# Global maximum size for a single uploaded image (avatar or post image), in bytes.
# Configured via .env: QUILL_IMAGE_SIZE_LIMIT=5242880  (5 MiB)
QUILL_IMAGE_SIZE_LIMIT_BYTES: int = _int_env("QUILL_IMAGE_SIZE_LIMIT", 5 * 1024 * 1024)

# Number of notifications returned by the notification listing.
NOTIFICATIONS_PAGE_SIZE: int = _int_env("NOTIFICATIONS_PAGE_SIZE", 10)

# Maximum results for post and user search.
SEARCH_RESULT_LIMIT: int = _int_env("SEARCH_RESULT_LIMIT", 10)

# Run Alembic migrations on startup.
RUN_MIGRATIONS: bool = _bool_env("RUN_MIGRATIONS", True)

# Where the browser is sent after a federated login.
FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
