"""
Leaderboard scheduler.

Turns a cron expression into a stream of synthetic leaderboard events for
one channel.

Responsibilities:
- Validate the schedule at construction (fail fast on bad expressions)
- Sleep until each occurrence and emit a LEADERBOARD event
- Stop permanently once the dispatcher's queue is closed

IMPORTANT:
- The scheduler never reads the leaderboard cache itself
- Synthetic messages carry no author and no receipt timestamp
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable, Optional

from core.cron import CronSchedule
from core.dispatch import EventQueue, QueueClosed
from core.errors import ScheduleError
from shared.chat.events import Event, Message
from shared.logging.logger import get_logger

log = get_logger("core.scheduler")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ScheduledTick:
    at: datetime
    event: Event


class LeaderboardScheduler:
    def __init__(
        self,
        expression: str,
        channel_id: int,
        *,
        clock: Callable[[], datetime] = _utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._schedule = CronSchedule.parse(expression)
        self._channel_id = channel_id
        self._clock = clock
        self._sleep = sleep

        first = self._schedule.next_after(self._clock())
        if first is None:
            raise ScheduleError(
                f"cron expression {expression!r} has no future occurrence"
            )

        log.info(
            f"Leaderboard schedule '{self._schedule.expression}' for channel "
            f"{channel_id}; first run at {first.isoformat()}"
        )

    @property
    def schedule(self) -> CronSchedule:
        return self._schedule

    @property
    def channel_id(self) -> int:
        return self._channel_id

    # ------------------------------------------------------------

    async def ticks(self) -> AsyncIterator[ScheduledTick]:
        """
        Lazily yield one tick per schedule occurrence, forever.

        Each call starts an independent sequence from the current time.
        """
        previous: Optional[datetime] = None

        while True:
            now = self._clock()
            # never fire the same occurrence twice if the sleep woke early
            base = now if previous is None or now > previous else previous
            at = self._schedule.next_after(base)
            if at is None:
                raise ScheduleError(
                    f"cron expression '{self._schedule.expression}' stopped "
                    "producing occurrences"
                )

            delay = (at - now).total_seconds()
            log.debug(f"Next scheduled leaderboard at {at.isoformat()} (in {delay:.0f}s)")
            await self._sleep(max(delay, 0.0))

            previous = at
            yield ScheduledTick(
                at=at,
                event=Event.leaderboard(Message(channel_id=self._channel_id)),
            )

    async def run(self, queue: EventQueue) -> None:
        """
        Feed ticks into the dispatcher queue until it is closed.
        """
        try:
            async for tick in self.ticks():
                try:
                    await queue.put(tick.event)
                except QueueClosed:
                    log.info("Event queue closed; scheduler stopping")
                    return
                log.info(f"Scheduled leaderboard queued for {tick.at.isoformat()}")
        except asyncio.CancelledError:
            log.debug("Scheduler cancelled")
            raise
