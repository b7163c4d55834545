"""
Cron expression parsing and next-occurrence computation.

Supported syntax (five fields: minute hour day-of-month month day-of-week):
- `*`, single values, `a-b` ranges, `*/n` and `a-b/n` steps, comma lists
- month names (jan..dec) and day names (sun..sat); 7 is also Sunday
- aliases: @yearly @annually @monthly @weekly @daily @midnight @hourly

When both day-of-month and day-of-week are restricted, a day matches if
EITHER field matches (classic Vixie cron behavior).

All computations run in UTC with minute resolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, FrozenSet, List, Optional, Tuple

from core.errors import ScheduleError

ALIASES: Dict[str, str] = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

MONTH_NAMES = {
    name: index
    for index, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun",
         "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}

DAY_NAMES = {
    name: index
    for index, name in enumerate(["sun", "mon", "tue", "wed", "thu", "fri", "sat"])
}

# Leap-day schedules combined with a weekday can take years to recur.
SEARCH_HORIZON = timedelta(days=366 * 8)


@dataclass(frozen=True)
class _Field:
    name: str
    low: int
    high: int
    names: Optional[Dict[str, int]] = None


_FIELDS: Tuple[_Field, ...] = (
    _Field("minute", 0, 59),
    _Field("hour", 0, 23),
    _Field("day-of-month", 1, 31),
    _Field("month", 1, 12, MONTH_NAMES),
    # 7 is folded onto 0 after parsing
    _Field("day-of-week", 0, 7, DAY_NAMES),
)


def _parse_value(token: str, spec: _Field) -> int:
    lowered = token.lower()
    if spec.names and lowered in spec.names:
        return spec.names[lowered]
    if not (token.isascii() and token.isdigit()):
        raise ScheduleError(f"invalid {spec.name} value {token!r}")
    value = int(token)
    if not spec.low <= value <= spec.high:
        raise ScheduleError(
            f"{spec.name} value {value} out of range {spec.low}-{spec.high}"
        )
    return value


def _parse_field(raw: str, spec: _Field) -> FrozenSet[int]:
    values: set = set()

    for part in raw.split(","):
        if not part:
            raise ScheduleError(f"empty entry in {spec.name} field {raw!r}")

        step = 1
        if "/" in part:
            part, step_raw = part.split("/", 1)
            if not (step_raw.isascii() and step_raw.isdigit()) or int(step_raw) == 0:
                raise ScheduleError(f"invalid step in {spec.name} field {raw!r}")
            step = int(step_raw)

        if part == "*":
            start, end = spec.low, spec.high
        elif "-" in part:
            start_raw, end_raw = part.split("-", 1)
            start = _parse_value(start_raw, spec)
            end = _parse_value(end_raw, spec)
            if start > end:
                raise ScheduleError(f"descending range in {spec.name} field {raw!r}")
        else:
            start = _parse_value(part, spec)
            # `5/15` means "from 5 to the end, every 15"
            end = spec.high if step != 1 else start

        values.update(range(start, end + 1, step))

    return frozenset(values)


@dataclass(frozen=True)
class CronSchedule:
    expression: str
    minutes: FrozenSet[int]
    hours: FrozenSet[int]
    days: FrozenSet[int]
    months: FrozenSet[int]
    weekdays: FrozenSet[int]
    days_restricted: bool
    weekdays_restricted: bool

    @classmethod
    def parse(cls, expression: str) -> "CronSchedule":
        if not isinstance(expression, str) or not expression.strip():
            raise ScheduleError("cron expression is empty")

        normalized = expression.strip()
        normalized = ALIASES.get(normalized.lower(), normalized)

        parts = normalized.split()
        if len(parts) != len(_FIELDS):
            raise ScheduleError(
                f"cron expression {expression!r} must have {len(_FIELDS)} fields, "
                f"got {len(parts)}"
            )

        minutes, hours, days, months, weekdays = (
            _parse_field(raw, spec) for raw, spec in zip(parts, _FIELDS)
        )
        weekdays = frozenset(0 if d == 7 else d for d in weekdays)

        return cls(
            expression=expression.strip(),
            minutes=minutes,
            hours=hours,
            days=days,
            months=months,
            weekdays=weekdays,
            days_restricted=not parts[2].startswith("*"),
            weekdays_restricted=not parts[4].startswith("*"),
        )

    # ------------------------------------------------------------

    def _day_matches(self, dt: datetime) -> bool:
        # Python: Monday=0 .. Sunday=6; cron: Sunday=0 .. Saturday=6
        weekday = (dt.weekday() + 1) % 7
        in_days = dt.day in self.days
        in_weekdays = weekday in self.weekdays

        if self.days_restricted and self.weekdays_restricted:
            return in_days or in_weekdays
        return in_days and in_weekdays

    def matches(self, dt: datetime) -> bool:
        return (
            dt.minute in self.minutes
            and dt.hour in self.hours
            and dt.month in self.months
            and self._day_matches(dt)
        )

    def next_after(self, after: datetime) -> Optional[datetime]:
        """
        Return the first matching minute strictly after `after`, in UTC.

        Returns None when the schedule never fires within the search
        horizon (e.g. `0 0 30 2 *`).
        """
        if after.tzinfo is None:
            after = after.replace(tzinfo=timezone.utc)
        after = after.astimezone(timezone.utc)

        candidate = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = after + SEARCH_HORIZON

        while candidate <= limit:
            if candidate.month not in self.months:
                year = candidate.year + (1 if candidate.month == 12 else 0)
                month = 1 if candidate.month == 12 else candidate.month + 1
                candidate = candidate.replace(
                    year=year, month=month, day=1, hour=0, minute=0
                )
                continue

            if not self._day_matches(candidate):
                candidate = candidate.replace(hour=0, minute=0) + timedelta(days=1)
                continue

            if candidate.hour not in self.hours:
                candidate = candidate.replace(minute=0) + timedelta(hours=1)
                continue

            if candidate.minute not in self.minutes:
                candidate += timedelta(minutes=1)
                continue

            return candidate

        return None

    def upcoming(self, after: datetime, count: int) -> List[datetime]:
        """
        Return up to `count` consecutive occurrences after `after`.
        """
        occurrences: List[datetime] = []
        current = after
        for _ in range(count):
            nxt = self.next_after(current)
            if nxt is None:
                break
            occurrences.append(nxt)
            current = nxt
        return occurrences
