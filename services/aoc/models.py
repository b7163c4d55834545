from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional


def _parse_star_ts(value: Any) -> datetime:
    """
    get_star_ts is a UNIX timestamp, sent as an integer by the current API
    and as a numeric string by older seasons.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid star timestamp: {value!r}")
    if isinstance(value, str):
        value = value.strip()
        digits = value.lstrip("-")
        if not (digits.isascii() and digits.isdigit()):
            raise ValueError(f"invalid star timestamp: {value!r}")
        value = int(value)
    if not isinstance(value, (int, float)):
        raise ValueError(f"invalid star timestamp: {value!r}")
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"star timestamp out of range: {value!r}") from e


def _parse_part(raw: Any) -> Optional[datetime]:
    if raw is None:
        return None
    if not isinstance(raw, dict) or "get_star_ts" not in raw:
        raise ValueError("challenge entry missing get_star_ts")
    return _parse_star_ts(raw["get_star_ts"])


@dataclass(frozen=True)
class DayCompletion:
    part1: Optional[datetime] = None
    part2: Optional[datetime] = None

    @property
    def last_solved_at(self) -> Optional[datetime]:
        solved = [ts for ts in (self.part1, self.part2) if ts is not None]
        return max(solved) if solved else None

    @classmethod
    def from_dict(cls, raw: Any) -> "DayCompletion":
        if not isinstance(raw, dict):
            raise ValueError("day completion must be an object")
        return cls(part1=_parse_part(raw.get("1")), part2=_parse_part(raw.get("2")))


@dataclass(frozen=True)
class Member:
    id: str
    name: Optional[str]
    stars: int
    local_score: int
    global_score: int = 0
    completion: Mapping[int, DayCompletion] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or f"anonymous user #{self.id}"

    @property
    def last_solved_at(self) -> Optional[datetime]:
        """
        Latest star across all days, None when nothing was solved yet.
        """
        solved = [
            day.last_solved_at
            for day in self.completion.values()
            if day.last_solved_at is not None
        ]
        return max(solved) if solved else None

    @classmethod
    def from_dict(cls, raw: Any) -> "Member":
        if not isinstance(raw, dict):
            raise ValueError("member must be an object")

        days_raw = raw.get("completion_day_level") or {}
        if not isinstance(days_raw, dict):
            raise ValueError("completion_day_level must be an object")

        completion: Dict[int, DayCompletion] = {}
        for day, entry in days_raw.items():
            completion[int(day)] = DayCompletion.from_dict(entry)

        return cls(
            id=str(raw["id"]),
            name=raw.get("name"),
            stars=int(raw.get("stars", 0)),
            local_score=int(raw.get("local_score", 0)),
            global_score=int(raw.get("global_score", 0)),
            completion=completion,
        )


@dataclass(frozen=True)
class LeaderboardSnapshot:
    """
    One fetched copy of a private leaderboard.

    members keeps the payload's key order; ranking ties fall back to it.
    """

    event: str
    owner_id: str
    members: Mapping[str, Member]

    @classmethod
    def from_dict(cls, raw: Any) -> "LeaderboardSnapshot":
        if not isinstance(raw, dict):
            raise ValueError("leaderboard payload must be an object")

        members_raw = raw.get("members")
        if not isinstance(members_raw, dict):
            raise ValueError("leaderboard payload missing 'members' object")

        members = {
            str(key): Member.from_dict(value)
            for key, value in members_raw.items()
        }

        return cls(
            event=str(raw.get("event", "")),
            owner_id=str(raw.get("owner_id", "")),
            members=members,
        )
