"""
Event handlers (one per event kind).

Handlers receive the event's Message, read leaderboards through the shared
LeaderboardCache and reply through the outbound MessageSink. Failures are
raised as HandlerError and recorded by the Dispatcher's error boundary.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Dict

from core.cache import LeaderboardCache
from core.dispatch import Handler
from core.errors import FetchError, HandlerError, SendError
from core.render import (
    FETCH_FAILED_TEXT,
    PODIUM_SIZE,
    PONG_TEXT,
    TRIVIA_TEXT,
    render_latency,
    render_leaderboard,
    render_not_enough_members,
    render_podium,
)
from core.sink import MessageSink, SentMessage
from services.aoc.models import LeaderboardSnapshot
from shared.chat.events import EventKind, Message
from shared.config.settings import AdventOfCodeSettings
from shared.logging.logger import get_logger

log = get_logger("core.handlers")


def _requester(message: Message) -> str:
    if message.author is None:
        return "scheduler"
    return f"({message.author.id}) {message.author.display_name}"


class RelayHandlers:
    def __init__(
        self,
        *,
        cache: LeaderboardCache,
        aoc: AdventOfCodeSettings,
        sink: MessageSink,
    ):
        self._cache = cache
        self._aoc = aoc
        self._sink = sink

    def as_registry(self) -> Dict[EventKind, Handler]:
        return {
            EventKind.LIVENESS: self.liveness,
            EventKind.LEADERBOARD: self.leaderboard,
            EventKind.TRIVIA: self.trivia,
            EventKind.PODIUM: self.podium,
        }

    # ------------------------------------------------------------
    # Sink helpers
    # ------------------------------------------------------------

    async def _send(self, channel_id: int, text: str) -> SentMessage:
        try:
            return await self._sink.send(channel_id, text)
        except SendError as e:
            raise HandlerError(f"Failed to send reply to {channel_id}: {e}") from e

    async def _edit(self, channel_id: int, message_id: int, text: str) -> None:
        try:
            await self._sink.edit(channel_id, message_id, text)
        except SendError as e:
            raise HandlerError(f"Failed to edit reply {message_id}: {e}") from e

    async def _snapshot(self, message: Message) -> LeaderboardSnapshot:
        """
        Leaderboard through the cache. On fetch failure the requester gets
        a generic failure reply before the error is raised.
        """
        try:
            snapshot, was_cached = await self._cache.fetch(
                self._aoc.session_cookie,
                self._aoc.board_id,
                self._aoc.event_year,
            )
        except FetchError as e:
            log.warning(f"Leaderboard fetch failed for {_requester(message)}: {e}")
            await self._send(message.channel_id, FETCH_FAILED_TEXT)
            raise HandlerError(f"Leaderboard unavailable: {e}") from e

        log.debug(f"Retrieved leaderboard (cached: {was_cached})")
        return snapshot

    # ------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------

    async def liveness(self, message: Message) -> None:
        log.info(f"Ping from {_requester(message)}")
        sent = await self._send(message.channel_id, PONG_TEXT)

        if message.received_at is None:
            return

        latency = (sent.sent_at - message.received_at) // timedelta(milliseconds=1)
        await self._edit(
            message.channel_id,
            sent.message_id,
            render_latency(max(latency, 0)),
        )

    async def leaderboard(self, message: Message) -> None:
        log.info(f"Leaderboard request from {_requester(message)}")
        snapshot = await self._snapshot(message)

        await self._send(
            message.channel_id,
            render_leaderboard(snapshot, self._aoc.board_id),
        )

    async def trivia(self, message: Message) -> None:
        log.info(f"42 request from {_requester(message)}")
        await self._send(message.channel_id, TRIVIA_TEXT)

    async def podium(self, message: Message) -> None:
        log.info(f"Podium request from {_requester(message)}")
        snapshot = await self._snapshot(message)

        if len(snapshot.members) < PODIUM_SIZE:
            await self._send(
                message.channel_id,
                render_not_enough_members(len(snapshot.members)),
            )
            return

        await self._send(message.channel_id, render_podium(snapshot))
