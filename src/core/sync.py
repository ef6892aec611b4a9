"""Corpus synchronization against a paged remote message source.

A run works like this:
1) Forward pass: page through the source at increasing offsets until the
   total reported by the first page is reached
2) Persist every page as soon as it arrives, then accumulate it by id
3) Backward extension: re-query below the oldest record seen, picking up
   records pushed past the last page while the source changed underneath us
4) Stop once a backward pass brings nothing new (or the pass budget runs out)

Storage inserts are idempotent, so a failed run can simply be retried; pages
written before the failure stay written.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

from core.config import SyncConfig
from core.models import FetchCursor, FetchPage, MessageRecord, SyncResult
from core.ports import MessageSourcePort, StoragePort

LOGGER = logging.getLogger(__name__)


class CorpusSynchronizer:
    """Converge local storage to the remote history of one source."""

    def __init__(
        self,
        source: MessageSourcePort,
        storage: StoragePort,
        config: SyncConfig = SyncConfig(),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        name: str = "source",
        channel_id: Optional[str] = None,
    ) -> None:
        self._source = source
        self._storage = storage
        self._config = config
        self._sleep = sleep
        self.name = name
        self.channel_id = channel_id

    async def sync(self, after: Optional[datetime] = None) -> SyncResult:
        """Fetch and store every remote message at or after ``after``."""

        result = SyncResult()
        seen: Dict[str, MessageRecord] = {}

        for record in await self._paged_pass(FetchCursor(after=after), result):
            seen.setdefault(record.id, record)

        if self._config.backward_extension and seen:
            await self._extend_backward(after, seen, result)

        result.records = list(seen.values())
        LOGGER.info(
            "Sync of %s complete: records=%s, inserted=%s, requests=%s",
            self.name,
            len(result.records),
            len(result.inserted),
            result.requests,
        )
        return result

    async def _extend_backward(
        self,
        after: Optional[datetime],
        seen: Dict[str, MessageRecord],
        result: SyncResult,
    ) -> None:
        for _ in range(self._config.max_backward_passes):
            oldest = min(seen.values(), key=lambda record: record.created_at)
            cursor = FetchCursor(after=after, before=oldest.created_at)
            await self._pause()
            older = await self._paged_pass(cursor, result)

            fresh = [
                record
                for record in older
                if record.id != oldest.id
                and record.id not in seen
                and record.created_at <= oldest.created_at
            ]
            if not fresh:
                return
            LOGGER.info("Backward pass on %s found %s more records", self.name, len(fresh))
            for record in fresh:
                seen.setdefault(record.id, record)

        LOGGER.warning(
            "Backward extension of %s stopped after %s passes",
            self.name,
            self._config.max_backward_passes,
        )

    async def _paged_pass(self, cursor: FetchCursor, result: SyncResult) -> List[MessageRecord]:
        """Page through the source once; the first page fixes the total."""

        records: List[MessageRecord] = []

        page = await self._fetch(cursor, result)
        cursor.total_hits = page.total_hits
        self._persist(page, records, result)
        cursor.offset = page.span

        while cursor.offset < cursor.total_hits:
            await self._pause()
            page = await self._fetch(cursor, result)
            if not page.span:
                LOGGER.warning(
                    "%s returned an empty page at offset %s of %s",
                    self.name,
                    cursor.offset,
                    cursor.total_hits,
                )
                break
            self._persist(page, records, result)
            cursor.offset += page.span

        return records

    async def _pause(self) -> None:
        # Every request after the first in a run waits, keeping us under the
        # remote rate limits.
        await self._sleep(self._config.page_interval_ms / 1000)

    async def _fetch(self, cursor: FetchCursor, result: SyncResult) -> FetchPage:
        result.requests += 1
        LOGGER.debug(
            "Fetching %s offset=%s after=%s before=%s",
            self.name,
            cursor.offset,
            cursor.after,
            cursor.before,
        )
        return await self._source.fetch_page(cursor.offset, after=cursor.after, before=cursor.before)

    def _persist(self, page: FetchPage, records: List[MessageRecord], result: SyncResult) -> None:
        # Write first so a failure later in the run keeps this page.
        inserted = self._storage.insert_messages(page.records)
        result.inserted.extend(inserted)
        records.extend(page.records)
