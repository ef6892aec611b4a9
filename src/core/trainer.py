"""Keep the Markov model in step with the stored corpus.

Tokenizing and feeding thousands of messages is CPU work, so it runs in a
worker thread; the model's own lock keeps it safe against concurrent
generation from event handlers and the emission job.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional

from core.config import MarkovConfig
from core.markov import MarkovModel
from core.models import MessageRecord, SyncResult
from core.ports import StoragePort
from core.sync import CorpusSynchronizer
from core.tokenizer import TokenizerAdapter

LOGGER = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CorpusTrainer:
    """Synchronize every configured source and feed the results to the model."""

    def __init__(
        self,
        model: MarkovModel,
        tokenizer: TokenizerAdapter,
        storage: StoragePort,
        synchronizers: Iterable[CorpusSynchronizer],
        config: MarkovConfig = MarkovConfig(),
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._model = model
        self._tokenizer = tokenizer
        self._storage = storage
        self._synchronizers = list(synchronizers)
        self._config = config
        self._clock = clock

    def feed_records(self, records: Iterable[MessageRecord]) -> int:
        """Feed eligible records to the model and return how many were used."""

        fed = 0
        for record in records:
            training = self._tokenizer.training_string(record.content)
            if training is None:
                continue
            self._model.feed(training)
            fed += 1
        return fed

    async def refresh(self) -> int:
        """Incremental sync of every source, feeding what each run fetched."""

        fed = 0
        for synchronizer in self._synchronizers:
            fed += await self._refresh_source(synchronizer)
        LOGGER.info("Refresh complete: fed=%s", fed)
        return fed

    async def bootstrap(self) -> None:
        """Bring the model up at startup, reusing a stored snapshot when possible."""

        last_update = self._restore_snapshot()
        if last_update is not None:
            age = self._clock() - last_update
            if age < timedelta(hours=self._config.snapshot_max_age_hours):
                LOGGER.info("Markov snapshot restored (age %s)", age)
                return
            LOGGER.info("Markov snapshot is stale (age %s), syncing the delta", age)
            fed = 0
            for synchronizer in self._synchronizers:
                fed += await self._refresh_source(synchronizer, floor=last_update)
            LOGGER.info("Markov model loaded: fed=%s", fed)
            return

        LOGGER.info("No markov snapshot, building from the stored corpus")
        for synchronizer in self._synchronizers:
            watermark = self._storage.get_sync_watermark(synchronizer.name)
            result = await synchronizer.sync(after=watermark)
            self._advance_watermark(synchronizer, watermark, result)
        fed = await asyncio.to_thread(self.feed_records, self._storage.get_messages())
        LOGGER.info("Markov model loaded: fed=%s", fed)
        await self._save_snapshot()

    async def _refresh_source(
        self,
        synchronizer: CorpusSynchronizer,
        floor: Optional[datetime] = None,
    ) -> int:
        """Sync one source from its watermark and feed everything newer.

        The watermark moves only after the records are fed and the snapshot
        is saved, so a run that fails midway is fetched and fed again in full
        by the next one.
        """

        watermark = self._storage.get_sync_watermark(synchronizer.name)
        since = watermark
        if floor is not None and (since is None or floor > since):
            since = floor
        result = await synchronizer.sync(after=since)
        fresh = [record for record in result.records if since is None or record.created_at > since]
        fed = await asyncio.to_thread(self.feed_records, fresh)
        await self._save_snapshot()
        self._advance_watermark(synchronizer, watermark, result)
        LOGGER.info(
            "Source %s refreshed: fetched=%s, fed=%s", synchronizer.name, len(result.records), fed
        )
        return fed

    def _advance_watermark(
        self,
        synchronizer: CorpusSynchronizer,
        watermark: Optional[datetime],
        result: SyncResult,
    ) -> None:
        newest = max((record.created_at for record in result.records), default=None)
        if newest is None or (watermark is not None and newest <= watermark):
            return
        self._storage.set_sync_watermark(synchronizer.name, newest)

    def _restore_snapshot(self) -> Optional[datetime]:
        if not self._config.snapshots:
            return None
        cached = self._storage.get_markov_cache()
        if cached is None:
            return None
        payload, last_update = cached
        try:
            self._model.restore(payload)
        except (ValueError, KeyError, TypeError):
            LOGGER.warning("Discarding unreadable markov snapshot", exc_info=True)
            return None
        return last_update

    async def _save_snapshot(self) -> None:
        if not self._config.snapshots:
            return
        payload = await asyncio.to_thread(self._model.snapshot)
        self._storage.save_markov_cache(payload)
        LOGGER.debug("Markov snapshot saved (%s bytes)", len(payload))
