"""
Shared pytest fixtures for the relay test suite.
"""

import pytest

from shared.config.settings import AdventOfCodeSettings
from tests.fakes import FakeClock, FakeSink, make_snapshot, member_payload


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def aoc_settings():
    return AdventOfCodeSettings(
        board_id="123456",
        session_cookie="secret-cookie",
        event_year=2021,
    )


@pytest.fixture
def three_member_snapshot():
    return make_snapshot(
        member_payload(1, "alice", 120, stars=24),
        member_payload(2, "bob", 98, stars=20),
        member_payload(3, "carol", 75, stars=16),
    )
