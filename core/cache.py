"""
Leaderboard cache.

Time-bounded memoization of upstream leaderboard fetches, keyed by
(credential, board_id, season).

Responsibilities:
- Serve a live entry without network I/O (was_cached=True)
- Fetch, store and return a fresh snapshot on miss (was_cached=False)
- Never store failed fetches

IMPORTANT:
- Misses are NOT coalesced by default. Concurrent callers racing on an
  absent or expired key each reach the upstream API; the last write wins.
  Pass single_flight=True to serialize misses per key instead.
- Expiry is strictly time based. Unrelated keys are never evicted.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, Protocol, Tuple, TypeVar

from cachetools import TTLCache

from core.errors import FetchError
from services.aoc.models import LeaderboardSnapshot
from shared.logging.logger import get_logger

log = get_logger("core.cache")

DEFAULT_FRESHNESS_SECONDS = 7200

T = TypeVar("T")

CacheKey = Tuple[str, str, int]


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    computed_at: float


class LeaderboardUpstream(Protocol):
    async def fetch(
        self, credential: str, board_id: str, season: int
    ) -> LeaderboardSnapshot: ...


class LeaderboardCache:
    def __init__(
        self,
        upstream: LeaderboardUpstream,
        *,
        freshness_seconds: float = DEFAULT_FRESHNESS_SECONDS,
        clock: Callable[[], float] = time.time,
        single_flight: bool = False,
    ):
        if freshness_seconds <= 0:
            raise ValueError("freshness_seconds must be positive")

        self._upstream = upstream
        self._freshness = float(freshness_seconds)
        self._clock = clock
        self._single_flight = single_flight

        # Unbounded: one entry per (credential, board, season) ever seen.
        self._entries: TTLCache = TTLCache(
            maxsize=math.inf,
            ttl=self._freshness,
            timer=clock,
        )
        self._lock = asyncio.Lock()
        self._key_locks: Dict[CacheKey, asyncio.Lock] = {}

        self._metrics = {
            "hits": 0,
            "misses": 0,
            "failures": 0,
        }

    # ------------------------------------------------------------

    @staticmethod
    def _key(credential: str, board_id: str, season: int) -> CacheKey:
        return (str(credential), str(board_id), int(season))

    async def _lookup(self, key: CacheKey) -> Optional[CacheEntry[Any]]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.computed_at >= self._freshness:
                return None
            return entry

    async def _store(self, key: CacheKey, value: Any) -> None:
        async with self._lock:
            self._entries[key] = CacheEntry(value=value, computed_at=self._clock())

    def _lock_for(self, key: CacheKey) -> asyncio.Lock:
        lock = self._key_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._key_locks[key] = lock
        return lock

    # ------------------------------------------------------------

    async def fetch(
        self,
        credential: str,
        board_id: str,
        season: int,
    ) -> Tuple[LeaderboardSnapshot, bool]:
        """
        Return (snapshot, was_cached) for the given leaderboard.

        Raises FetchError when the upstream call fails; nothing is cached
        in that case.
        """
        key = self._key(credential, board_id, season)

        entry = await self._lookup(key)
        if entry is not None:
            self._metrics["hits"] += 1
            log.debug(f"Cache hit for board {board_id} ({season})")
            return entry.value, True

        if not self._single_flight:
            return await self._refresh(key), False

        async with self._lock_for(key):
            # Another caller may have refreshed while we waited.
            entry = await self._lookup(key)
            if entry is not None:
                self._metrics["hits"] += 1
                log.debug(f"Cache hit for board {board_id} ({season}) after wait")
                return entry.value, True
            return await self._refresh(key), False

    async def _refresh(self, key: CacheKey) -> LeaderboardSnapshot:
        credential, board_id, season = key
        self._metrics["misses"] += 1
        log.debug(f"Cache miss for board {board_id} ({season}); fetching upstream")

        try:
            snapshot = await self._upstream.fetch(credential, board_id, season)
        except FetchError:
            self._metrics["failures"] += 1
            raise
        except Exception as e:
            self._metrics["failures"] += 1
            raise FetchError(f"Upstream fetch failed: {e}") from e

        await self._store(key, snapshot)
        return snapshot

    # ------------------------------------------------------------

    async def invalidate(self, credential: str, board_id: str, season: int) -> bool:
        """
        Drop the entry for a key. Returns True when a live entry was removed.
        """
        key = self._key(credential, board_id, season)
        async with self._lock:
            return self._entries.pop(key, None) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def get_metrics(self) -> Dict[str, int]:
        """
        Returns cache counters (read-only copy).
        """
        return dict(self._metrics)
