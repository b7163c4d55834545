import asyncio
from typing import Awaitable, Callable, Dict, Mapping, Optional, Set

from shared.chat.events import Event, EventKind, Message
from shared.logging.logger import get_logger

log = get_logger("core.dispatch")

Handler = Callable[[Message], Awaitable[None]]


class QueueClosed(Exception):
    """Raised to producers once the dispatcher stopped accepting events."""


class EventQueue:
    """
    Bounded single-consumer queue between producers (gateway, scheduler)
    and the Dispatcher.

    A full queue blocks producers until the dispatcher drains it.
    """

    def __init__(self, maxsize: int = 1):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def put(self, event: Event) -> None:
        if self._closed:
            raise QueueClosed("event queue is closed")
        await self._queue.put(event)

    async def get(self) -> Event:
        return await self._queue.get()

    def close(self) -> None:
        """
        Refuse further events. Events already queued stay readable;
        producers already blocked on a full queue stay blocked until
        their task is cancelled.
        """
        self._closed = True

    def qsize(self) -> int:
        return self._queue.qsize()


class Dispatcher:
    """
    Single consumer of the EventQueue.

    Every non-shutdown event is handed to its handler as an independent
    asyncio task; the loop never waits for a handler before reading the
    next event. A shutdown event ends the loop without cancelling or
    awaiting in-flight handlers.
    """

    def __init__(
        self,
        queue: EventQueue,
        handlers: Mapping[EventKind, Handler],
    ):
        self._queue = queue
        self._handlers: Dict[EventKind, Handler] = dict(handlers)
        self._in_flight: Set[asyncio.Task] = set()

        # --------------------------------------------------
        # METRICS (READ-ONLY, ADDITIVE)
        # --------------------------------------------------
        self._metrics = {
            "dispatched": 0,
            "completed": 0,
            "failed": 0,
            "dropped": 0,
        }

    # ------------------------------------------------------------

    async def run(self) -> None:
        log.info("Dispatcher started")

        while True:
            event = await self._queue.get()

            if event.is_shutdown:
                log.info(
                    f"Shutdown event received; leaving {len(self._in_flight)} "
                    "handler(s) to finish"
                )
                break

            self.dispatch(event)

        self._queue.close()
        log.info("Dispatcher stopped")

    def dispatch(self, event: Event) -> Optional[asyncio.Task]:
        handler = self._handlers.get(event.kind)
        if handler is None:
            self._metrics["dropped"] += 1
            log.warning(f"No handler registered for {event.kind.value}; dropping")
            return None

        task = asyncio.create_task(self._invoke(handler, event))

        # Keep a strong reference until the task is done.
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

        self._metrics["dispatched"] += 1
        log.debug(f"Dispatched {event.kind.value} (in flight: {len(self._in_flight)})")
        return task

    async def _invoke(self, handler: Handler, event: Event) -> None:
        try:
            await handler(event.message)
            self._metrics["completed"] += 1
        except asyncio.CancelledError:
            log.debug(f"Handler for {event.kind.value} cancelled")
            raise
        except Exception:
            self._metrics["failed"] += 1
            log.exception(
                f"Handler for {event.kind.value} failed "
                f"(channel={event.message.channel_id})"
            )

    # ------------------------------------------------------------
    # READ-ONLY VISIBILITY HOOKS
    # ------------------------------------------------------------

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def get_metrics(self) -> Dict[str, int]:
        return dict(self._metrics)

    async def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the handlers currently in flight.

        Returns False if some were still running when the timeout expired.
        Never called by run(); shutdown does not depend on it.
        """
        pending = set(self._in_flight)
        if not pending:
            return True

        _, still_running = await asyncio.wait(pending, timeout=timeout)
        return not still_running
