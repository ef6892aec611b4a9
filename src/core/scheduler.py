"""Periodic jobs: daily corpus refresh and jittered message emission.

Both loops take their slots from a cron expression, sleep until the next
slot, and run the job. Job failures are logged and never stop a loop.
Emission waits a random jitter in its own task so the slot loop stays on
schedule.
"""

from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Set

from croniter import croniter

from core.config import EmissionConfig, RefreshConfig

LOGGER = logging.getLogger(__name__)

Job = Callable[[], Awaitable[object]]


def make_jitter(
    low_minutes: int = 1,
    high_minutes: int = 19,
    rng: Optional[random.Random] = None,
) -> Callable[[], float]:
    """Return a function drawing a whole number of minutes, in seconds."""

    source = rng or random.Random()

    def jitter() -> float:
        return float(source.randint(low_minutes, high_minutes) * 60)

    return jitter


def next_run(schedule: str, now: datetime) -> datetime:
    """Return the first slot of ``schedule`` strictly after ``now``."""

    return croniter(schedule, now).get_next(datetime)


class Scheduler:
    """Run the refresh and emission loops on the current event loop."""

    def __init__(
        self,
        refresh_job: Job,
        emission_job: Job,
        refresh: RefreshConfig = RefreshConfig(),
        emission: EmissionConfig = EmissionConfig(),
        jitter: Optional[Callable[[], float]] = None,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        # Reject a broken expression at startup rather than in a running loop.
        for schedule in (refresh.schedule, emission.schedule):
            if not croniter.is_valid(schedule):
                raise ValueError(f"Invalid cron schedule: {schedule!r}")
        self._refresh_job = refresh_job
        self._emission_job = emission_job
        self._refresh = refresh
        self._emission = emission
        self._jitter = jitter or make_jitter(*emission.jitter_minutes)
        self._clock = clock
        self._sleep = sleep
        self._pending: Set[asyncio.Task] = set()

    def start(self) -> List[asyncio.Task]:
        tasks: List[asyncio.Task] = []
        if self._refresh.enabled:
            tasks.append(asyncio.create_task(self.run_refresh_loop(), name="refresh-loop"))
        if self._emission.enabled:
            tasks.append(asyncio.create_task(self.run_emission_loop(), name="emission-loop"))
        return tasks

    async def run_refresh_loop(self) -> None:
        await self._run_on_schedule(self._refresh.schedule, self.run_refresh_once)

    async def run_emission_loop(self) -> None:
        async def fire() -> None:
            self.schedule_emission()

        await self._run_on_schedule(self._emission.schedule, fire)

    async def run_refresh_once(self) -> None:
        await self._run_job("refresh", self._refresh_job)

    def schedule_emission(self) -> asyncio.Task:
        """Start a one-shot task that waits the jitter, then emits."""

        task = asyncio.create_task(self.run_emission_once(), name="emission")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def run_emission_once(self) -> None:
        delay = self._jitter()
        LOGGER.debug("Emission scheduled in %.0f seconds", delay)
        await self._sleep(delay)
        await self._run_job("emission", self._emission_job)

    async def _run_on_schedule(self, schedule: str, action: Job) -> None:
        last_slot: Optional[datetime] = None
        while True:
            now = self._clock()
            # A timer that fires slightly early must not hand back the slot
            # that just ran.
            if last_slot is not None and now < last_slot:
                now = last_slot
            slot = next_run(schedule, now)
            await self._sleep_until(slot)
            last_slot = slot
            await action()

    async def _sleep_until(self, when: datetime) -> None:
        delay = (when - self._clock()).total_seconds()
        if delay > 0:
            await self._sleep(delay)

    async def _run_job(self, name: str, job: Job) -> None:
        try:
            await job()
        except Exception:
            LOGGER.exception("Scheduled %s job failed", name)
