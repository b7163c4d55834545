"""
Tests for cron expression parsing and next-occurrence computation.
"""

from datetime import datetime, timezone

import pytest

from core.cron import CronSchedule
from core.errors import ScheduleError


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class TestParsing:
    """Tests for CronSchedule.parse."""

    def test_wildcards(self):
        cron = CronSchedule.parse("* * * * *")
        assert cron.minutes == frozenset(range(60))
        assert cron.hours == frozenset(range(24))
        assert cron.weekdays == frozenset(range(7))

    def test_lists_ranges_and_steps(self):
        cron = CronSchedule.parse("0,30 9-17/4 1-10 * *")
        assert cron.minutes == {0, 30}
        assert cron.hours == {9, 13, 17}
        assert cron.days == frozenset(range(1, 11))

    def test_step_from_value_runs_to_end(self):
        cron = CronSchedule.parse("5/20 * * * *")
        assert cron.minutes == {5, 25, 45}

    def test_names(self):
        cron = CronSchedule.parse("0 0 * dec mon-fri")
        assert cron.months == {12}
        assert cron.weekdays == {1, 2, 3, 4, 5}

    def test_seven_is_sunday(self):
        cron = CronSchedule.parse("0 0 * * 5-7")
        assert cron.weekdays == {5, 6, 0}

    def test_alias(self):
        assert CronSchedule.parse("@daily").hours == {0}
        assert CronSchedule.parse("@HOURLY").minutes == {0}

    @pytest.mark.parametrize(
        "expression",
        [
            "",
            "   ",
            "* * * *",
            "* * * * * *",
            "60 * * * *",
            "* 24 * * *",
            "* * 0 * *",
            "* * * 13 *",
            "*/0 * * * *",
            "5-1 * * * *",
            "a b c d e",
            "1,,2 * * * *",
            "@fortnightly",
            "² * * * *",
            "*/³ * * * *",
        ],
    )
    def test_malformed_expressions_raise(self, expression):
        with pytest.raises(ScheduleError):
            CronSchedule.parse(expression)


class TestNextAfter:
    """Tests for next occurrence computation."""

    def test_daily_midnight(self):
        cron = CronSchedule.parse("0 0 * * *")
        assert cron.next_after(utc(2021, 12, 1, 5, 7)) == utc(2021, 12, 2, 0, 0)

    def test_strictly_after(self):
        cron = CronSchedule.parse("0 0 * * *")
        assert cron.next_after(utc(2021, 12, 2, 0, 0)) == utc(2021, 12, 3, 0, 0)

    def test_seconds_are_dropped(self):
        cron = CronSchedule.parse("* * * * *")
        assert cron.next_after(utc(2021, 12, 1, 5, 7, 59)) == utc(2021, 12, 1, 5, 8)

    def test_every_fifteen_minutes(self):
        cron = CronSchedule.parse("*/15 * * * *")
        assert cron.upcoming(utc(2021, 12, 1, 5, 7, 30), 3) == [
            utc(2021, 12, 1, 5, 15),
            utc(2021, 12, 1, 5, 30),
            utc(2021, 12, 1, 5, 45),
        ]

    def test_weekdays_skip_weekend(self):
        cron = CronSchedule.parse("30 9 * * mon-fri")
        # 2021-12-04 is a Saturday
        assert cron.next_after(utc(2021, 12, 4, 10, 0)) == utc(2021, 12, 6, 9, 30)

    def test_sunday_as_seven(self):
        cron = CronSchedule.parse("0 0 * * 7")
        assert cron.next_after(utc(2021, 12, 1)) == utc(2021, 12, 5)

    def test_day_fields_match_either_when_both_restricted(self):
        cron = CronSchedule.parse("0 0 13 * 5")
        # Friday 2021-12-03 comes before the 13th
        assert cron.next_after(utc(2021, 12, 1)) == utc(2021, 12, 3)

    def test_day_of_month_with_wildcard_weekday(self):
        cron = CronSchedule.parse("0 6 1 * *")
        assert cron.next_after(utc(2021, 12, 1, 6, 0)) == utc(2022, 1, 1, 6, 0)

    def test_month_rollover(self):
        cron = CronSchedule.parse("0 0 1 jan *")
        assert cron.next_after(utc(2021, 6, 1)) == utc(2022, 1, 1)

    def test_leap_day(self):
        cron = CronSchedule.parse("0 0 29 2 *")
        assert cron.next_after(utc(2021, 3, 1)) == utc(2024, 2, 29)

    def test_impossible_date_returns_none(self):
        cron = CronSchedule.parse("0 0 30 2 *")
        assert cron.next_after(utc(2021, 1, 1)) is None
        assert cron.upcoming(utc(2021, 1, 1), 3) == []

    def test_naive_datetime_treated_as_utc(self):
        cron = CronSchedule.parse("@hourly")
        assert cron.next_after(datetime(2021, 12, 1, 5, 7)) == utc(2021, 12, 1, 6, 0)

    def test_matches(self):
        cron = CronSchedule.parse("0 5 * 12 *")
        assert cron.matches(utc(2021, 12, 24, 5, 0))
        assert not cron.matches(utc(2021, 11, 24, 5, 0))
