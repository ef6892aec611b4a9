from __future__ import annotations

import asyncio
import random
from datetime import datetime, timedelta

import pytest

from core.config import EmissionConfig, RefreshConfig
from core.scheduler import Scheduler, make_jitter, next_run

EMISSION_SCHEDULE = "*/20 0,7-23 * * *"


class StopLoop(Exception):
    pass


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


async def _noop() -> None:
    return None


def test_daily_refresh_slot_is_strictly_after_now() -> None:
    assert next_run("0 0 * * *", datetime(2024, 5, 1, 12, 30)) == datetime(2024, 5, 2)
    assert next_run("0 0 * * *", datetime(2024, 5, 1, 0, 0)) == datetime(2024, 5, 2)
    assert next_run("15 4 * * *", datetime(2024, 5, 1, 3, 0)) == datetime(2024, 5, 1, 4, 15)


@pytest.mark.parametrize(
    "now,expected",
    [
        (datetime(2024, 5, 1, 7, 5), datetime(2024, 5, 1, 7, 20)),
        (datetime(2024, 5, 1, 7, 0), datetime(2024, 5, 1, 7, 20)),
        (datetime(2024, 5, 1, 6, 59, 30), datetime(2024, 5, 1, 7, 0)),
        (datetime(2024, 5, 1, 23, 50), datetime(2024, 5, 2, 0, 0)),
        (datetime(2024, 5, 1, 0, 45), datetime(2024, 5, 1, 7, 0)),
        (datetime(2024, 5, 1, 3, 10), datetime(2024, 5, 1, 7, 0)),
    ],
)
def test_emission_slots_follow_active_hours(now: datetime, expected: datetime) -> None:
    assert next_run(EMISSION_SCHEDULE, now) == expected


def test_invalid_schedule_is_rejected_at_construction() -> None:
    with pytest.raises(ValueError):
        Scheduler(_noop, _noop, emission=EmissionConfig(schedule="every 20 minutes"))


def test_jitter_is_whole_minutes_in_range() -> None:
    jitter = make_jitter(1, 19, random.Random(4))
    for _ in range(100):
        delay = jitter()
        assert delay % 60 == 0
        assert 60 <= delay <= 19 * 60


def test_emission_waits_jitter_then_runs_job() -> None:
    events: list[object] = []

    async def emit() -> None:
        events.append("emit")

    async def fake_sleep(seconds: float) -> None:
        events.append(seconds)

    scheduler = Scheduler(_noop, emit, jitter=lambda: 420.0, sleep=fake_sleep)
    asyncio.run(scheduler.run_emission_once())

    assert events == [420.0, "emit"]


def test_failing_job_is_logged_not_raised(caplog) -> None:
    async def boom() -> None:
        raise RuntimeError("sync exploded")

    async def fake_sleep(seconds: float) -> None:
        return None

    scheduler = Scheduler(boom, boom, jitter=lambda: 0.0, sleep=fake_sleep)
    asyncio.run(scheduler.run_refresh_once())
    asyncio.run(scheduler.run_emission_once())

    assert caplog.text.count("sync exploded") == 2


def test_refresh_loop_sleeps_until_midnight() -> None:
    slept: list[float] = []
    runs: list[str] = []

    async def refresh() -> None:
        runs.append("refresh")

    async def fake_sleep(seconds: float) -> None:
        if slept:
            raise StopLoop()
        slept.append(seconds)

    scheduler = Scheduler(
        refresh,
        _noop,
        refresh=RefreshConfig(schedule="0 0 * * *"),
        clock=lambda: datetime(2024, 5, 1, 12, 0),
        sleep=fake_sleep,
    )

    with pytest.raises(StopLoop):
        asyncio.run(scheduler.run_refresh_loop())

    assert slept == [12 * 3600]
    assert runs == ["refresh"]


def test_early_wakeup_does_not_repeat_a_slot() -> None:
    clock = FakeClock(datetime(2024, 5, 1, 7, 5))
    targets: list[datetime] = []
    emitted: list[datetime] = []

    async def emit() -> None:
        emitted.append(clock.now)

    async def main() -> None:
        async def fake_sleep(seconds: float) -> None:
            if seconds == 0.0:
                return
            target = clock.now + timedelta(seconds=seconds)
            targets.append(target)
            # The timer fires a millisecond before the slot.
            clock.now = target - timedelta(milliseconds=1)
            if len(targets) == 4:
                raise StopLoop()

        scheduler = Scheduler(
            _noop,
            emit,
            emission=EmissionConfig(schedule=EMISSION_SCHEDULE),
            jitter=lambda: 0.0,
            clock=clock,
            sleep=fake_sleep,
        )
        with pytest.raises(StopLoop):
            await scheduler.run_emission_loop()
        await asyncio.sleep(0)

    asyncio.run(main())

    assert targets == [
        datetime(2024, 5, 1, 7, 20),
        datetime(2024, 5, 1, 7, 40),
        datetime(2024, 5, 1, 8, 0),
        datetime(2024, 5, 1, 8, 20),
    ]
    assert len(emitted) == 3


def test_emission_loop_schedules_one_emission_per_slot() -> None:
    emitted: list[str] = []
    slot_sleeps: list[float] = []

    async def emit() -> None:
        emitted.append("emit")

    async def main() -> None:
        async def fake_sleep(seconds: float) -> None:
            if seconds == 0.0:
                return
            if slot_sleeps:
                # Let the pending emission task finish before stopping.
                await asyncio.sleep(0)
                await asyncio.sleep(0)
                raise StopLoop()
            slot_sleeps.append(seconds)

        scheduler = Scheduler(
            _noop,
            emit,
            emission=EmissionConfig(schedule=EMISSION_SCHEDULE),
            jitter=lambda: 0.0,
            clock=lambda: datetime(2024, 5, 1, 7, 5),
            sleep=fake_sleep,
        )
        with pytest.raises(StopLoop):
            await scheduler.run_emission_loop()

    asyncio.run(main())

    assert slot_sleeps == [15 * 60]
    assert emitted == ["emit"]


def test_start_skips_disabled_loops() -> None:
    async def main() -> int:
        scheduler = Scheduler(
            _noop,
            _noop,
            refresh=RefreshConfig(enabled=False),
            emission=EmissionConfig(enabled=False),
        )
        return len(scheduler.start())

    assert asyncio.run(main()) == 0
