"""
Tests for the Discord adapter: command translation, message splitting,
the outbound sink and the shutdown signal. No Discord connection is made.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from core.dispatch import EventQueue
from core.errors import SendError
from services.discord.gateway import (
    MESSAGE_LIMIT,
    DiscordGateway,
    DiscordSink,
    split_message,
    translate_message,
)
from shared.chat.events import EventKind
from tests.fakes import T0


def _translate(content):
    return translate_message(
        content=content,
        channel_id=42,
        author_id=7,
        author_name="tester",
        created_at=T0,
    )


class TestTranslate:
    @pytest.mark.parametrize(
        "content, kind",
        [
            ("!ping", EventKind.LIVENESS),
            ("!aoc", EventKind.LEADERBOARD),
            ("!42", EventKind.TRIVIA),
            ("!podium", EventKind.PODIUM),
            ("  !AOC  ", EventKind.LEADERBOARD),
        ],
    )
    def test_commands(self, content, kind):
        event = _translate(content)

        assert event.kind is kind
        assert event.message.channel_id == 42
        assert event.message.author.id == 7
        assert event.message.received_at == T0

    @pytest.mark.parametrize("content", ["", "hello", "!aoc please", "ping", "!shutdown"])
    def test_other_messages_ignored(self, content):
        assert _translate(content) is None


class TestSplit:
    def test_short_text_unchanged(self):
        assert split_message("hello") == ["hello"]

    def test_splits_on_lines(self):
        text = "\n".join(["x" * 8] * 5)

        chunks = split_message(text, limit=20)

        assert all(len(chunk) <= 20 for chunk in chunks)
        assert "\n".join(chunks) == text

    def test_hard_wraps_long_lines(self):
        chunks = split_message("y" * 45, limit=20)

        assert chunks == ["y" * 20, "y" * 20, "y" * 5]

    def test_default_limit(self):
        assert len(split_message("z" * (MESSAGE_LIMIT + 1))) == 2


def _channel():
    channel = MagicMock(spec=discord.TextChannel)
    channel.send = AsyncMock(return_value=SimpleNamespace(id=555, created_at=T0))
    return channel


class TestSink:
    """Tests for DiscordSink."""

    @pytest.mark.asyncio
    async def test_send_uses_cached_channel(self):
        channel = _channel()
        client = MagicMock()
        client.get_channel.return_value = channel

        sent = await DiscordSink(client).send(42, "hello")

        channel.send.assert_awaited_once_with("hello")
        assert sent.message_id == 555
        assert sent.sent_at == T0
        assert sent.channel_id == 42

    @pytest.mark.asyncio
    async def test_send_fetches_unknown_channel(self):
        channel = _channel()
        client = MagicMock()
        client.get_channel.return_value = None
        client.fetch_channel = AsyncMock(return_value=channel)

        await DiscordSink(client).send(42, "hello")

        client.fetch_channel.assert_awaited_once_with(42)

    @pytest.mark.asyncio
    async def test_long_text_sent_in_chunks(self):
        channel = _channel()
        client = MagicMock()
        client.get_channel.return_value = channel

        await DiscordSink(client).send(42, "a" * (MESSAGE_LIMIT + 10))

        assert channel.send.await_count == 2

    @pytest.mark.asyncio
    async def test_discord_errors_become_send_errors(self):
        channel = _channel()
        channel.send.side_effect = discord.DiscordException("forbidden")
        client = MagicMock()
        client.get_channel.return_value = channel

        with pytest.raises(SendError):
            await DiscordSink(client).send(42, "hello")

    @pytest.mark.asyncio
    async def test_non_messageable_channel(self):
        client = MagicMock()
        client.get_channel.return_value = MagicMock(spec=discord.CategoryChannel)

        with pytest.raises(SendError):
            await DiscordSink(client).send(42, "hello")

    @pytest.mark.asyncio
    async def test_edit_uses_partial_message(self):
        target = MagicMock()
        target.edit = AsyncMock()
        channel = _channel()
        channel.get_partial_message = MagicMock(return_value=target)
        client = MagicMock()
        client.get_channel.return_value = channel

        await DiscordSink(client).edit(42, 555, "updated")

        channel.get_partial_message.assert_called_once_with(555)
        target.edit.assert_awaited_once_with(content="updated")


class TestGatewayLifecycle:
    """Tests for the gateway's queue interaction."""

    def test_token_required(self):
        with pytest.raises(RuntimeError):
            DiscordGateway(token="", queue=EventQueue())

    @pytest.mark.asyncio
    async def test_shutdown_event_after_client_stops(self, monkeypatch):
        queue = EventQueue()
        gateway = DiscordGateway(token="bot-token", queue=queue)
        monkeypatch.setattr(gateway.client, "start", AsyncMock())

        await gateway.run()

        event = await queue.get()
        assert event.is_shutdown

    @pytest.mark.asyncio
    async def test_no_shutdown_event_on_closed_queue(self, monkeypatch):
        queue = EventQueue()
        queue.close()
        gateway = DiscordGateway(token="bot-token", queue=queue)
        monkeypatch.setattr(gateway.client, "start", AsyncMock())

        await gateway.run()

        assert queue.qsize() == 0

    @pytest.mark.asyncio
    async def test_chat_command_enqueued(self):
        queue = EventQueue()
        gateway = DiscordGateway(token="bot-token", queue=queue)
        msg = SimpleNamespace(
            content="!podium",
            author=SimpleNamespace(bot=False, id=7, display_name="tester"),
            channel=SimpleNamespace(id=42),
            created_at=T0,
        )

        await gateway.client.on_message(msg)

        event = await queue.get()
        assert event.kind is EventKind.PODIUM
        assert event.message.author.display_name == "tester"

    @pytest.mark.asyncio
    async def test_bot_messages_ignored(self):
        queue = EventQueue()
        gateway = DiscordGateway(token="bot-token", queue=queue)
        msg = SimpleNamespace(
            content="!aoc",
            author=SimpleNamespace(bot=True, id=8, display_name="other-bot"),
            channel=SimpleNamespace(id=42),
            created_at=T0,
        )

        await gateway.client.on_message(msg)

        assert queue.qsize() == 0
