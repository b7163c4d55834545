"""
Runtime settings loader.

Sources, later ones win:
- config/log.json   (logging backends)
- config/auth.json  ({"aoc": {...}, "discord": {...}})
- environment variables (usually provided through a .env file)

Missing files fall back to defaults. Unreadable files are reported as
warnings and ignored, so the bot can run from environment variables alone.
Values that cannot be parsed raise ConfigError.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from core.errors import ConfigError
from shared.logging.logger import get_logger

log = get_logger("shared.config.settings")

CONFIG_DIR = Path("config")

LEVELS: Dict[str, int] = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    # no TRACE level in stdlib logging
    "trace": logging.DEBUG,
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class LoggingSettings:
    terminal_level: Optional[int] = logging.INFO
    file_level: Optional[int] = None
    log_dir: Path = Path("logs")


@dataclass(frozen=True)
class AdventOfCodeSettings:
    board_id: str = ""
    # Extracted from a logged-in browser session. Never logged.
    session_cookie: str = field(default="", repr=False)
    event_year: int = 2021
    cache_ttl: int = 7200
    single_flight: bool = False
    base_url: str = "https://adventofcode.com"


@dataclass(frozen=True)
class ScheduleSettings:
    interval: str
    channel_id: int


@dataclass(frozen=True)
class DiscordSettings:
    bot_token: str = field(default="", repr=False)
    schedule: Optional[ScheduleSettings] = None


@dataclass(frozen=True)
class Settings:
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    aoc: AdventOfCodeSettings = field(default_factory=AdventOfCodeSettings)
    discord: DiscordSettings = field(default_factory=DiscordSettings)

    def validate(self) -> None:
        """
        Reject settings the runtime cannot start with.
        """
        missing = []
        if not self.aoc.board_id:
            missing.append("aoc.board_id (AOC_BOARD_ID)")
        if not self.aoc.session_cookie:
            missing.append("aoc.session_cookie (AOC_SESSION_COOKIE)")
        if not self.discord.bot_token:
            missing.append("discord.bot_token (DISCORD_BOT_TOKEN)")
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")

        if self.aoc.cache_ttl <= 0:
            raise ConfigError("aoc.cache_ttl must be a positive number of seconds")


# ------------------------------------------------------------------
# Value parsing
# ------------------------------------------------------------------

def parse_level(value: Any, name: str) -> int:
    level = LEVELS.get(str(value).strip().lower())
    if level is None:
        raise ConfigError(f"{name}: unknown logging level '{value}'")
    return level


def _parse_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name}: expected an integer, got {value!r}")
    try:
        return int(str(value).strip())
    except ValueError as e:
        raise ConfigError(f"{name}: expected an integer, got {value!r}") from e


def _parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"{name}: expected a boolean, got {value!r}")


def _parse_channel_id(value: Any, name: str) -> int:
    channel_id = _parse_int(value, name)
    if channel_id <= 0:
        raise ConfigError(f"{name}: channel id must be positive")
    return channel_id


# ------------------------------------------------------------------
# File loading
# ------------------------------------------------------------------

def _load_json(path: Path, name: str) -> Dict[str, Any]:
    if not path.exists():
        log.debug(f"{name} config not found at {path}; using defaults")
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            log.warning(f"{name} config root is not an object; ignoring")
    except (OSError, ValueError) as e:
        log.warning(f"Failed to load {name} config ({e}); using defaults")

    return {}


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' section must be an object")
    return value


def _logging_from_file(data: Mapping[str, Any]) -> LoggingSettings:
    settings = LoggingSettings()

    if "terminal" in data:
        terminal = data["terminal"]
        if terminal is None:
            settings = replace(settings, terminal_level=None)
        elif isinstance(terminal, dict) and "filter" in terminal:
            settings = replace(
                settings,
                terminal_level=parse_level(terminal["filter"], "terminal.filter"),
            )

    file_cfg = data.get("file")
    if isinstance(file_cfg, dict) and "filter" in file_cfg:
        settings = replace(
            settings,
            file_level=parse_level(file_cfg["filter"], "file.filter"),
            log_dir=Path(file_cfg.get("dir") or settings.log_dir),
        )

    return settings


def _aoc_from_file(data: Mapping[str, Any]) -> AdventOfCodeSettings:
    defaults = AdventOfCodeSettings()
    return AdventOfCodeSettings(
        board_id=str(data.get("board_id", defaults.board_id)),
        session_cookie=str(data.get("session_cookie", defaults.session_cookie)),
        event_year=_parse_int(data.get("event_year", defaults.event_year), "aoc.event_year"),
        cache_ttl=_parse_int(data.get("cache_ttl", defaults.cache_ttl), "aoc.cache_ttl"),
        single_flight=_parse_bool(
            data.get("single_flight", defaults.single_flight), "aoc.single_flight"
        ),
        base_url=str(data.get("base_url", defaults.base_url)),
    )


def _discord_from_file(data: Mapping[str, Any]) -> DiscordSettings:
    schedule = None
    schedule_raw = data.get("schedule")
    if isinstance(schedule_raw, dict):
        if "interval" not in schedule_raw or "channel_id" not in schedule_raw:
            raise ConfigError("discord.schedule needs both 'interval' and 'channel_id'")
        schedule = ScheduleSettings(
            interval=str(schedule_raw["interval"]),
            channel_id=_parse_channel_id(schedule_raw["channel_id"], "discord.schedule.channel_id"),
        )

    return DiscordSettings(
        bot_token=str(data.get("bot_token", "")),
        schedule=schedule,
    )


# ------------------------------------------------------------------
# Environment overrides
# ------------------------------------------------------------------

def _apply_logging_env(settings: LoggingSettings, env: Mapping[str, str]) -> LoggingSettings:
    if env.get("LOG_TERMINAL_FILTER"):
        settings = replace(
            settings,
            terminal_level=parse_level(env["LOG_TERMINAL_FILTER"], "LOG_TERMINAL_FILTER"),
        )
    if env.get("LOG_FILE_FILTER"):
        settings = replace(
            settings,
            file_level=parse_level(env["LOG_FILE_FILTER"], "LOG_FILE_FILTER"),
        )
    if env.get("LOG_DIR"):
        settings = replace(settings, log_dir=Path(env["LOG_DIR"]))
    return settings


def _apply_aoc_env(settings: AdventOfCodeSettings, env: Mapping[str, str]) -> AdventOfCodeSettings:
    updates: Dict[str, Any] = {}

    if env.get("AOC_BOARD_ID"):
        updates["board_id"] = env["AOC_BOARD_ID"]
    if env.get("AOC_SESSION_COOKIE"):
        updates["session_cookie"] = env["AOC_SESSION_COOKIE"]
    if env.get("AOC_EVENT_YEAR"):
        updates["event_year"] = _parse_int(env["AOC_EVENT_YEAR"], "AOC_EVENT_YEAR")
    if env.get("AOC_CACHE_TTL"):
        updates["cache_ttl"] = _parse_int(env["AOC_CACHE_TTL"], "AOC_CACHE_TTL")
    if env.get("AOC_CACHE_SINGLE_FLIGHT"):
        updates["single_flight"] = _parse_bool(
            env["AOC_CACHE_SINGLE_FLIGHT"], "AOC_CACHE_SINGLE_FLIGHT"
        )
    if env.get("AOC_BASE_URL"):
        updates["base_url"] = env["AOC_BASE_URL"]

    return replace(settings, **updates)


def _apply_discord_env(settings: DiscordSettings, env: Mapping[str, str]) -> DiscordSettings:
    if env.get("DISCORD_BOT_TOKEN"):
        settings = replace(settings, bot_token=env["DISCORD_BOT_TOKEN"])

    interval = env.get("DISCORD_SCHEDULE_INTERVAL")
    channel_id = env.get("DISCORD_SCHEDULE_CHANNEL_ID")
    if interval and channel_id:
        settings = replace(
            settings,
            schedule=ScheduleSettings(
                interval=interval,
                channel_id=_parse_channel_id(channel_id, "DISCORD_SCHEDULE_CHANNEL_ID"),
            ),
        )
    elif interval or channel_id:
        log.warning(
            "DISCORD_SCHEDULE_INTERVAL and DISCORD_SCHEDULE_CHANNEL_ID must be "
            "set together; ignoring the schedule override"
        )

    return settings


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------

def load_settings(
    config_dir: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    """
    Build Settings from config files and environment variables.

    Does not validate completeness; call Settings.validate() for that.
    """
    config_dir = Path(config_dir) if config_dir is not None else CONFIG_DIR
    env = os.environ if env is None else env

    log_data = _load_json(config_dir / "log.json", "log")
    auth_data = _load_json(config_dir / "auth.json", "auth")

    logging_settings = _apply_logging_env(_logging_from_file(log_data), env)
    aoc = _apply_aoc_env(_aoc_from_file(_section(auth_data, "aoc")), env)
    discord = _apply_discord_env(_discord_from_file(_section(auth_data, "discord")), env)

    return Settings(logging=logging_settings, aoc=aoc, discord=discord)
