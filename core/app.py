import asyncio
import signal
import sys
from typing import List, Optional

from dotenv import load_dotenv

from core.cache import LeaderboardCache
from core.dispatch import Dispatcher, EventQueue
from core.errors import ConfigError, ScheduleError
from core.handlers import RelayHandlers
from core.scheduler import LeaderboardScheduler
from runtime.version import as_string
from services.aoc.api import AdventOfCodeClient
from services.discord.gateway import DiscordGateway
from shared.config.settings import Settings, load_settings
from shared.logging.logger import configure_logging, get_logger

log = get_logger("core.app")

# Seconds in-flight handlers get to finish once the dispatcher stopped.
HANDLER_GRACE_PERIOD = 10.0


def _configure(settings: Settings) -> None:
    configure_logging(
        terminal_level=settings.logging.terminal_level,
        file_level=settings.logging.file_level,
        log_dir=settings.logging.log_dir,
    )


async def main(stop_event: asyncio.Event):
    # --------------------------------------------------
    # ENV + SETTINGS
    # --------------------------------------------------
    load_dotenv()
    log.info("Environment variables loaded")

    settings = load_settings()
    _configure(settings)
    settings.validate()

    log.info(f"{as_string()} booting")
    log.info(
        f"Tracking leaderboard {settings.aoc.board_id} ({settings.aoc.event_year}), "
        f"cache ttl={settings.aoc.cache_ttl}s single_flight={settings.aoc.single_flight}"
    )

    scheduler: Optional[LeaderboardScheduler] = None
    if settings.discord.schedule:
        # Fails fast on malformed expressions, before anything connects.
        scheduler = LeaderboardScheduler(
            settings.discord.schedule.interval,
            settings.discord.schedule.channel_id,
        )
    else:
        log.info("No leaderboard schedule configured")

    # --------------------------------------------------
    # CORE SYSTEMS
    # --------------------------------------------------
    aoc_client = AdventOfCodeClient(base_url=settings.aoc.base_url)
    cache = LeaderboardCache(
        aoc_client,
        freshness_seconds=settings.aoc.cache_ttl,
        single_flight=settings.aoc.single_flight,
    )
    queue = EventQueue(maxsize=1)
    gateway = DiscordGateway(token=settings.discord.bot_token, queue=queue)

    handlers = RelayHandlers(cache=cache, aoc=settings.aoc, sink=gateway.sink)
    dispatcher = Dispatcher(queue, handlers.as_registry())

    # --------------------------------------------------
    # START TASKS
    # --------------------------------------------------
    dispatcher_task = asyncio.create_task(dispatcher.run())
    producer_tasks: List[asyncio.Task] = [asyncio.create_task(gateway.run())]
    if scheduler:
        producer_tasks.append(asyncio.create_task(scheduler.run(queue)))

    # --------------------------------------------------
    # BLOCK UNTIL SHUTDOWN SIGNAL OR GATEWAY EXIT
    # --------------------------------------------------
    stop_task = asyncio.create_task(stop_event.wait())
    await asyncio.wait(
        {stop_task, dispatcher_task},
        return_when=asyncio.FIRST_COMPLETED,
    )

    log.info("Shutdown initiated")

    # --------------------------------------------------
    # ORDERLY SHUTDOWN (PRODUCERS FIRST)
    # --------------------------------------------------
    queue.close()

    try:
        await gateway.shutdown()
    except Exception as e:
        log.warning(f"Gateway shutdown error ignored: {e}")

    for task in producer_tasks + [stop_task, dispatcher_task]:
        if not task.done():
            task.cancel()
    await asyncio.gather(*producer_tasks, dispatcher_task, stop_task, return_exceptions=True)

    # --------------------------------------------------
    # IN-FLIGHT HANDLERS
    # --------------------------------------------------
    if dispatcher.in_flight:
        log.info(f"Waiting up to {HANDLER_GRACE_PERIOD:.0f}s for {dispatcher.in_flight} handler(s)")
        if not await dispatcher.join(timeout=HANDLER_GRACE_PERIOD):
            log.warning("Some handlers were still running at shutdown")

    await aoc_client.close()

    log.info(f"Dispatcher metrics: {dispatcher.get_metrics()}")
    log.info(f"Cache metrics: {cache.get_metrics()}")
    log.info("Relay stopped")


# ----------------------------------------------------------------------
# SIGNAL HANDLING (WINDOWS-SAFE)
# ----------------------------------------------------------------------

def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop,
    stop_event: asyncio.Event,
):
    """
    Windows-safe Ctrl+C handler.
    Uses signal.signal + asyncio.Event to unwind cleanly.
    """

    def _handler(signum, frame):
        loop.call_soon_threadsafe(stop_event.set)

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


# ----------------------------------------------------------------------
# ENTRYPOINT
# ----------------------------------------------------------------------

def run() -> int:
    stop_event = asyncio.Event()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    _install_signal_handlers(loop, stop_event)

    exit_code = 0
    try:
        loop.run_until_complete(main(stop_event))

    except (ConfigError, ScheduleError) as e:
        log.error(f"Startup aborted: {e}")
        exit_code = 1

    except KeyboardInterrupt:
        log.info("KeyboardInterrupt received; shutdown initiated")
        stop_event.set()

    finally:
        # --------------------------------------------------
        # CANCEL REMAINING TASKS (CLEANLY)
        # --------------------------------------------------
        pending = [t for t in asyncio.all_tasks(loop) if not t.done()]
        for task in pending:
            task.cancel()

        if pending:
            loop.run_until_complete(
                asyncio.gather(*pending, return_exceptions=True)
            )

        # --------------------------------------------------
        # FINAL LOOP CLEANUP
        # --------------------------------------------------
        loop.run_until_complete(loop.shutdown_asyncgens())

        asyncio.set_event_loop(None)
        loop.close()

    return exit_code


if __name__ == "__main__":
    sys.exit(run())
