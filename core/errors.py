"""
Error taxonomy for the relay runtime.

- FetchError: upstream statistics API unreachable, non-2xx, or malformed
- SendError: outbound chat sink rejected a send / edit
- HandlerError: a handler failed (wraps FetchError or SendError)
- ScheduleError: malformed or never-firing cron expression (fatal at startup)
- ConfigError: configuration could not be parsed or is incomplete
"""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base class for all relay runtime errors."""


class FetchError(RelayError):
    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SendError(RelayError):
    pass


class HandlerError(RelayError):
    pass


class ScheduleError(RelayError):
    pass


class ConfigError(RelayError):
    pass
