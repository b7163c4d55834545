"""
Tests for LeaderboardScheduler.

A fake clock and sleep stand in for real time: every sleep advances the
clock by the requested delay (or by a scripted shorter amount to simulate
an early wake-up).
"""

from datetime import timedelta

import pytest

from core.dispatch import EventQueue
from core.errors import ScheduleError
from core.scheduler import LeaderboardScheduler
from shared.chat.events import EventKind
from tests.fakes import T0


class FakeTime:
    def __init__(self, start):
        self.now = start
        self.sleeps = []
        self.early_by = 0.0

    def clock(self):
        return self.now

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=max(seconds - self.early_by, 0))


def _scheduler(expression, fake, channel_id=99):
    return LeaderboardScheduler(
        expression,
        channel_id,
        clock=fake.clock,
        sleep=fake.sleep,
    )


async def _take(scheduler, count):
    ticks = []
    gen = scheduler.ticks()
    try:
        for _ in range(count):
            ticks.append(await gen.__anext__())
    finally:
        await gen.aclose()
    return ticks


class TestConstruction:
    def test_malformed_expression(self):
        fake = FakeTime(T0)
        with pytest.raises(ScheduleError):
            _scheduler("every day please", fake)

    def test_expression_that_never_fires(self):
        fake = FakeTime(T0)
        with pytest.raises(ScheduleError):
            _scheduler("0 0 30 2 *", fake)


class TestTicks:
    """Tests for the tick stream."""

    @pytest.mark.asyncio
    async def test_quarter_hour_ticks(self):
        fake = FakeTime(T0 + timedelta(minutes=7, seconds=30))
        scheduler = _scheduler("*/15 * * * *", fake)

        ticks = await _take(scheduler, 3)

        assert [t.at for t in ticks] == [
            T0 + timedelta(minutes=15),
            T0 + timedelta(minutes=30),
            T0 + timedelta(minutes=45),
        ]
        assert fake.sleeps == [450.0, 900.0, 900.0]

    @pytest.mark.asyncio
    async def test_ticks_carry_synthetic_leaderboard_events(self):
        fake = FakeTime(T0)
        scheduler = _scheduler("@hourly", fake, channel_id=1234)

        (tick,) = await _take(scheduler, 1)

        assert tick.event.kind is EventKind.LEADERBOARD
        assert tick.event.message.channel_id == 1234
        assert tick.event.message.is_synthetic
        assert tick.event.message.received_at is None

    @pytest.mark.asyncio
    async def test_early_wake_does_not_repeat_occurrence(self):
        fake = FakeTime(T0)
        fake.early_by = 1.0
        scheduler = _scheduler("*/15 * * * *", fake)

        ticks = await _take(scheduler, 3)

        assert [t.at for t in ticks] == [
            T0 + timedelta(minutes=15),
            T0 + timedelta(minutes=30),
            T0 + timedelta(minutes=45),
        ]

    @pytest.mark.asyncio
    async def test_each_stream_starts_from_now(self):
        fake = FakeTime(T0)
        scheduler = _scheduler("0 * * * *", fake)

        first = await _take(scheduler, 2)
        second = await _take(scheduler, 1)

        assert [t.at for t in first] == [T0 + timedelta(hours=1), T0 + timedelta(hours=2)]
        assert second[0].at == T0 + timedelta(hours=3)


class TestRun:
    @pytest.mark.asyncio
    async def test_stops_when_queue_closed(self):
        fake = FakeTime(T0)
        scheduler = _scheduler("* * * * *", fake)
        queue = EventQueue()
        queue.close()

        await scheduler.run(queue)

        assert queue.qsize() == 0
        assert len(fake.sleeps) == 1

    @pytest.mark.asyncio
    async def test_enqueues_leaderboard_event(self):
        fake = FakeTime(T0)
        queue = EventQueue(maxsize=2)

        async def sleep(seconds):
            await fake.sleep(seconds)
            # close once the first event is waiting
            if queue.qsize() == 1:
                queue.close()

        scheduler = LeaderboardScheduler("* * * * *", 5, clock=fake.clock, sleep=sleep)

        await scheduler.run(queue)

        event = await queue.get()
        assert event.kind is EventKind.LEADERBOARD
        assert event.message.channel_id == 5
