"""
Configuration validation script.

Loads the relay settings exactly like the runtime does (config files,
.env, environment) and reports problems without connecting anywhere.

Design rules:
- No side effects on import
- No runtime startup, no network I/O
- Secrets are never printed
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from core.cron import CronSchedule
from core.errors import ConfigError, ScheduleError
from shared.config.settings import Settings, load_settings

UPCOMING_RUNS = 3


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------

def _error(msg: str):
    print(f"[CONFIG ERROR] {msg}", file=sys.stderr)


# ------------------------------------------------------------
# Validators
# ------------------------------------------------------------

def validate_schedule(settings: Settings, now: Optional[datetime] = None) -> bool:
    """
    Check the optional leaderboard schedule and print its next runs.
    """
    schedule = settings.discord.schedule
    if schedule is None:
        print("No leaderboard schedule configured.")
        return True

    try:
        cron = CronSchedule.parse(schedule.interval)
    except ScheduleError as e:
        _error(f"schedule interval: {e}")
        return False

    upcoming = cron.upcoming(now or datetime.now(timezone.utc), UPCOMING_RUNS)
    if not upcoming:
        _error(f"schedule interval '{schedule.interval}' never fires")
        return False

    print(f"Schedule '{schedule.interval}' -> channel {schedule.channel_id}")
    for at in upcoming:
        print(f"  next run: {at.isoformat()}")
    return True


# ------------------------------------------------------------
# Entry point
# ------------------------------------------------------------

def main(config_dir: Optional[Path] = None) -> int:
    load_dotenv()

    try:
        settings = load_settings(config_dir)
        settings.validate()
    except ConfigError as e:
        _error(str(e))
        print("Configuration validation failed.", file=sys.stderr)
        return 1

    if not validate_schedule(settings):
        print("Configuration validation failed.", file=sys.stderr)
        return 1

    print(
        f"Leaderboard {settings.aoc.board_id} ({settings.aoc.event_year}), "
        f"cache ttl {settings.aoc.cache_ttl}s"
    )
    print("Configuration validation passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
