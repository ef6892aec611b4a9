"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class SyncConfig:
    """Pagination settings for the corpus synchronizer."""

    page_size: int = 100
    page_interval_ms: int = 300
    backward_extension: bool = True
    max_backward_passes: int = 5


@dataclass(frozen=True)
class MarkovConfig:
    """Model shape and snapshot settings."""

    order: int = 3
    max_tokens: int = 80
    snapshots: bool = True
    snapshot_max_age_hours: int = 20


@dataclass(frozen=True)
class EmissionConfig:
    """Periodic emission settings.

    ``schedule`` is a five-field cron expression; the default fires every 20
    minutes during hours 0 and 7-23.
    """

    enabled: bool = True
    schedule: str = "*/20 0,7-23 * * *"
    jitter_minutes: Tuple[int, int] = (1, 19)


@dataclass(frozen=True)
class RefreshConfig:
    """Daily corpus refresh settings."""

    enabled: bool = True
    schedule: str = "0 0 * * *"


@dataclass(frozen=True)
class RateLimitConfig:
    """Outbound posting admission control."""

    max_posts: int = 10
    window_seconds: float = 60.0
