from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class SentMessage:
    channel_id: int
    message_id: int
    sent_at: datetime


class MessageSink(Protocol):
    """
    Outbound chat surface used by handlers.

    Implementations raise SendError when the platform rejects a request.
    """

    async def send(self, channel_id: int, text: str) -> SentMessage: ...

    async def edit(self, channel_id: int, message_id: int, text: str) -> None: ...
