"""
Discord Gateway Adapter

This module owns the Discord connection itself.
It is intentionally minimal and lifecycle-focused.

Responsibilities:
- connect to Discord (auto-sharded)
- log shard connect / ready / resume / disconnect signals
- translate chat commands into relay events and enqueue them
- enqueue a shutdown event once the connection is gone for good
- provide the outbound message sink used by handlers

IMPORTANT:
- This adapter MUST NOT create its own event loop
- This adapter MUST NOT read the event queue (the Dispatcher does)
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Dict, List, Optional

import discord

from core.dispatch import EventQueue, QueueClosed
from core.errors import SendError
from core.sink import SentMessage
from shared.chat.events import Author, Event, EventKind, Message
from shared.logging.logger import get_logger

# NOTE: routed to Discord runtime log file
log = get_logger("discord.gateway", runtime="discord")

COMMANDS: Dict[str, EventKind] = {
    "!ping": EventKind.LIVENESS,
    "!aoc": EventKind.LEADERBOARD,
    "!42": EventKind.TRIVIA,
    "!podium": EventKind.PODIUM,
}

MESSAGE_LIMIT = 2000


def translate_message(
    *,
    content: str,
    channel_id: int,
    author_id: int,
    author_name: str,
    created_at: Optional[datetime] = None,
) -> Optional[Event]:
    """
    Map a chat message onto a relay event, or None if it is not a command.
    """
    kind = COMMANDS.get(content.strip().lower())
    if kind is None:
        return None

    message = Message(
        channel_id=channel_id,
        author=Author(id=author_id, display_name=author_name),
        received_at=created_at,
    )
    return Event(kind, message)


def split_message(text: str, limit: int = MESSAGE_LIMIT) -> List[str]:
    """
    Split text into chunks of at most `limit` characters, preferring line
    boundaries. Lines longer than the limit are hard-wrapped.
    """
    if len(text) <= limit:
        return [text]

    chunks: List[str] = []
    current = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]

        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate

    if current:
        chunks.append(current)
    return chunks


class DiscordSink:
    """
    Outbound messages through the Discord REST API.
    """

    def __init__(self, client: discord.Client):
        self._client = client

    async def _channel(self, channel_id: int) -> discord.abc.Messageable:
        channel = self._client.get_channel(channel_id)
        if channel is None:
            channel = await self._client.fetch_channel(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            raise SendError(f"Channel {channel_id} cannot receive messages")
        return channel

    async def send(self, channel_id: int, text: str) -> SentMessage:
        try:
            channel = await self._channel(channel_id)
            sent = None
            for chunk in split_message(text):
                sent = await channel.send(chunk)
        except discord.DiscordException as e:
            raise SendError(f"Discord send to {channel_id} failed: {e}") from e

        log.debug(f"Sent message {sent.id} to channel {channel_id}")
        return SentMessage(
            channel_id=channel_id,
            message_id=sent.id,
            sent_at=sent.created_at,
        )

    async def edit(self, channel_id: int, message_id: int, text: str) -> None:
        try:
            channel = await self._channel(channel_id)
            partial = getattr(channel, "get_partial_message", None)
            if partial is not None:
                target = partial(message_id)
            else:
                target = await channel.fetch_message(message_id)
            await target.edit(content=text)
        except discord.DiscordException as e:
            raise SendError(f"Discord edit of {message_id} failed: {e}") from e


class DiscordGateway:
    """
    Thin wrapper around discord.py's AutoShardedClient.

    Translated events are pushed into the EventQueue; a full queue blocks
    event delivery until the Dispatcher catches up.
    """

    def __init__(self, *, token: str, queue: EventQueue):
        if not token:
            raise RuntimeError("Discord bot token is required")

        self._token = token
        self._queue = queue
        self._client = self._build_client()
        self.sink = DiscordSink(self._client)

    # --------------------------------------------------

    def _build_client(self) -> discord.AutoShardedClient:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = False
        intents.messages = True
        intents.message_content = True  # commands are plain chat messages

        client = discord.AutoShardedClient(intents=intents)

        # --------------------------------------------------
        # Lifecycle Events
        # --------------------------------------------------

        @client.event
        async def on_ready():
            log.info(
                f"Discord connected as {client.user} "
                f"(id={client.user.id}) "
                f"guilds={len(client.guilds)} shards={client.shard_count}"
            )

        @client.event
        async def on_shard_connect(shard_id: int):
            log.info(f"Connected on shard {shard_id}")

        @client.event
        async def on_shard_ready(shard_id: int):
            log.info(f"Shard {shard_id} ready")

        @client.event
        async def on_shard_resumed(shard_id: int):
            log.info(f"Shard {shard_id} resumed")

        @client.event
        async def on_shard_disconnect(shard_id: int):
            log.warning(f"Shard {shard_id} disconnected")

        # --------------------------------------------------
        # Chat commands
        # --------------------------------------------------

        @client.event
        async def on_message(msg: discord.Message):
            if msg.author.bot:
                return

            event = translate_message(
                content=msg.content,
                channel_id=msg.channel.id,
                author_id=msg.author.id,
                author_name=msg.author.display_name,
                created_at=msg.created_at,
            )
            if event is None:
                return

            log.debug(f"Received {event.kind.value} from {msg.author} in {msg.channel.id}")
            try:
                await self._queue.put(event)
            except QueueClosed:
                log.info("Event queue closed; dropping chat command")

        return client

    # --------------------------------------------------

    async def run(self) -> None:
        """
        Connect and block until the client stops, then signal shutdown.
        """
        log.info("Starting Discord gateway")

        try:
            await self._client.start(self._token)
        except asyncio.CancelledError:
            log.info("Discord gateway task cancelled")
            raise
        except Exception as e:
            log.error(f"Discord gateway crashed: {e}")
            raise
        finally:
            log.info("Discord gateway stopped")
            await self._signal_shutdown()

    async def _signal_shutdown(self) -> None:
        if self._queue.closed:
            return
        try:
            # Must not block on a full queue while unwinding.
            await asyncio.wait_for(self._queue.put(Event.shutdown()), timeout=5)
        except (QueueClosed, asyncio.TimeoutError):
            log.debug("Shutdown event not delivered (queue closed or full)")

    async def shutdown(self) -> None:
        """
        Gracefully close the Discord connection.
        """
        if self._client.is_closed():
            return

        log.info("Closing Discord connection")

        try:
            await self._client.close()
        except discord.DiscordException as e:
            log.warning(f"Discord close error ignored: {e}")

    @property
    def client(self) -> discord.AutoShardedClient:
        return self._client
