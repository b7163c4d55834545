"""Normalized relay event model shared by producers and the dispatcher."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class EventKind(str, Enum):
    LIVENESS = "liveness"
    LEADERBOARD = "leaderboard"
    TRIVIA = "trivia"
    PODIUM = "podium"
    SHUTDOWN = "shutdown"


@dataclass(frozen=True)
class Author:
    id: int
    display_name: str


@dataclass(frozen=True)
class Message:
    """
    Where a reply goes and who asked for it.

    author and received_at are None for synthetic (scheduler) messages.
    """

    channel_id: int
    author: Optional[Author] = None
    received_at: Optional[datetime] = None

    @property
    def is_synthetic(self) -> bool:
        return self.author is None


@dataclass(frozen=True)
class Event:
    kind: EventKind
    message: Optional[Message] = None

    def __post_init__(self):
        if self.kind is EventKind.SHUTDOWN:
            if self.message is not None:
                raise ValueError("shutdown events carry no message")
        elif self.message is None:
            raise ValueError(f"{self.kind.value} events require a message")

    # ------------------------------------------------------------

    @classmethod
    def liveness(cls, message: Message) -> "Event":
        return cls(EventKind.LIVENESS, message)

    @classmethod
    def leaderboard(cls, message: Message) -> "Event":
        return cls(EventKind.LEADERBOARD, message)

    @classmethod
    def trivia(cls, message: Message) -> "Event":
        return cls(EventKind.TRIVIA, message)

    @classmethod
    def podium(cls, message: Message) -> "Event":
        return cls(EventKind.PODIUM, message)

    @classmethod
    def shutdown(cls) -> "Event":
        return cls(EventKind.SHUTDOWN)

    @property
    def is_shutdown(self) -> bool:
        return self.kind is EventKind.SHUTDOWN


__all__ = [
    "Author",
    "Event",
    "EventKind",
    "Message",
]
