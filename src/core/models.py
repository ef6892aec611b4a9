"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union


@dataclass(frozen=True)
class MessageRecord:
    """One historical message of the target user, as stored locally."""

    id: str
    channel_id: str
    content: str
    created_at: datetime


@dataclass(frozen=True)
class FrequencyEntry:
    """Persisted reply frequency (0-100) for one chat."""

    channel_id: str
    frequency: int


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class Stamp:
    text: str


@dataclass(frozen=True)
class EntityLink:
    text: str


Segment = Union[PlainText, Stamp, EntityLink]


@dataclass
class FetchCursor:
    """Pagination state for a single paged pass over the message source."""

    offset: int = 0
    total_hits: int = 0
    after: Optional[datetime] = None
    before: Optional[datetime] = None


@dataclass(frozen=True)
class FetchPage:
    """One page from the message source, newest record first.

    ``skipped`` counts hits the source dropped (e.g. service messages); they
    still occupy offsets on the remote side.
    """

    total_hits: int
    records: List[MessageRecord]
    skipped: int = 0

    @property
    def span(self) -> int:
        return len(self.records) + self.skipped


@dataclass
class SyncResult:
    """Outcome of one synchronization run."""

    records: List[MessageRecord] = field(default_factory=list)
    inserted: List[MessageRecord] = field(default_factory=list)
    requests: int = 0


@dataclass(frozen=True)
class ChannelJoined:
    channel_id: str


@dataclass(frozen=True)
class ChannelLeft:
    channel_id: str


@dataclass(frozen=True)
class MessageCreated:
    channel_id: str
    author_id: str
    author_is_bot: bool
    text: str
    is_mention: bool


@dataclass(frozen=True)
class DirectMessageCreated:
    channel_id: str
    author_id: str
    author_is_bot: bool
    text: str


InboundEvent = Union[ChannelJoined, ChannelLeft, MessageCreated, DirectMessageCreated]
