"""Ports (interfaces) used by the core.

Ports define the minimal contracts for storage, the remote message source and
the posting adapter so that the core can be reused with different backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Protocol

from core.models import FetchPage, FrequencyEntry, MessageRecord


class StorageError(RuntimeError):
    """Raised by storage adapters when the backing store fails."""


class MalformedPayloadError(ValueError):
    """Raised by source adapters when a remote page lacks an expected field."""


class StoragePort(Protocol):
    """Storage operations required by the core."""

    def insert_messages(self, records: Iterable[MessageRecord]) -> List[MessageRecord]:
        ...

    def get_messages(self) -> List[MessageRecord]:
        ...

    def get_latest_message(self, channel_id: Optional[str] = None) -> Optional[MessageRecord]:
        ...

    def get_frequency(self, channel_id: str) -> Optional[FrequencyEntry]:
        ...

    def set_frequency(self, channel_id: str, frequency: int) -> None:
        ...

    def get_markov_cache(self) -> Optional[tuple[str, datetime]]:
        ...

    def save_markov_cache(self, payload: str) -> None:
        ...

    def get_sync_watermark(self, source_key: str) -> Optional[datetime]:
        ...

    def set_sync_watermark(self, source_key: str, synced_until: datetime) -> None:
        ...


class MessageSourcePort(Protocol):
    """Paged access to the target user's remote message history."""

    async def fetch_page(
        self,
        offset: int,
        after: Optional[datetime] = None,
        before: Optional[datetime] = None,
    ) -> FetchPage:
        ...


class PosterPort(Protocol):
    """Outbound chat operations required by the core."""

    async def post(self, channel_id: str, text: str) -> None:
        ...

    async def join(self, channel_id: str) -> None:
        ...

    async def leave(self, channel_id: str) -> None:
        ...
