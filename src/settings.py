"""Static configuration for mockingbird.

All user-editable settings (target user, sources, sync, model, emission,
logging) live in a single JSON file for quick edits without touching Python.
Secrets stay in the environment (.env).
"""

import json
import os

from core.source_keys import normalize_source_key
from core.tokenizer import DEFAULT_BLOCKLIST

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Where to store the SQLite database.
DB_PATH = os.path.join(os.path.dirname(__file__), "mockingbird.db")

CONFIG_PATH = os.environ.get("MOCKINGBIRD_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _normalize_sources(raw_sources: list[dict]) -> list[str]:
    """Return enabled source keys in config order, without duplicates."""

    sources: list[str] = []
    for entry in raw_sources:
        source_key = entry.get("source_key")
        if not source_key or not entry.get("enabled", True):
            continue
        source_key = normalize_source_key(source_key)
        if source_key not in sources:
            sources.append(source_key)
    return sources


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# The user whose messages are learned, as "@username" or "chat_id:<user id>".
TARGET_USER = _CONFIG.get("target_user", "")

# Chats whose history is searched for the target user's messages.
SOURCES = _normalize_sources(_CONFIG.get("sources", []))

# Corpus synchronization paging.
_sync = _CONFIG.get("sync", {})
SYNC_PAGE_SIZE = int(_sync.get("page_size", 100))
SYNC_PAGE_INTERVAL_MS = int(_sync.get("page_interval_ms", 300))
SYNC_BACKWARD_EXTENSION = bool(_sync.get("backward_extension", True))
SYNC_MAX_BACKWARD_PASSES = int(_sync.get("max_backward_passes", 5))

# Model shape and the stored snapshot used to skip a full rebuild on restart.
_markov = _CONFIG.get("markov", {})
MARKOV_ORDER = int(_markov.get("order", 3))
MARKOV_MAX_TOKENS = int(_markov.get("max_tokens", 80))
MARKOV_SNAPSHOTS = bool(_markov.get("snapshots", True))
MARKOV_SNAPSHOT_MAX_AGE_HOURS = int(_markov.get("snapshot_max_age_hours", 20))
# Raw-text regexes; matching messages are never trained on.
BLOCKLIST = list(_markov.get("blocklist", DEFAULT_BLOCKLIST))

# Reply frequency used for chats without a stored value.
DEFAULT_FREQUENCY = int(_CONFIG.get("frequency", {}).get("default", 20))

# Periodic emission into one chat.
_emission = _CONFIG.get("emission", {})
EMISSION_ENABLED = bool(_emission.get("enabled", False))
EMISSION_CHAT = _emission.get("source_key", "")
# Five-field cron expression, evaluated in local time.
EMISSION_SCHEDULE = _emission.get("schedule", "*/20 0,7-23 * * *")
_jitter = _emission.get("jitter_minutes", [1, 19])
EMISSION_JITTER_MINUTES = (int(_jitter[0]), int(_jitter[1]))

# Daily corpus refresh.
_refresh = _CONFIG.get("refresh", {})
REFRESH_ENABLED = bool(_refresh.get("enabled", True))
REFRESH_SCHEDULE = _refresh.get("schedule", "0 0 * * *")

# Outbound posting admission control.
_rate_limit = _CONFIG.get("rate_limit", {})
RATE_LIMIT_MAX_POSTS = int(_rate_limit.get("max_posts", 10))
RATE_LIMIT_WINDOW_SECONDS = float(_rate_limit.get("window_seconds", 60))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
