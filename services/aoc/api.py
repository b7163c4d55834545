from typing import Optional

import httpx

from core.errors import FetchError
from runtime.version import PROJECT_NAME, VERSION
from services.aoc.models import LeaderboardSnapshot
from shared.logging.logger import get_logger

log = get_logger("aoc.api")


class AdventOfCodeClient:
    """
    Advent of Code private leaderboard API.

    Responsibilities:
    - Authenticate with the session cookie of a logged-in account
    - Fetch and parse private leaderboard statistics
    - Surface every failure as FetchError (no retries here)

    The site owners ask for this endpoint to be requested at most once
    every 15 minutes, so callers go through LeaderboardCache.
    """

    BASE_URL = "https://adventofcode.com"
    LEADERBOARD_PATH = "/{season}/leaderboard/private/view/{board_id}.json"

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self._http = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={"User-Agent": f"{PROJECT_NAME}/{VERSION}"},
        )

    # ------------------------------------------------------------

    def leaderboard_url(self, board_id: str, season: int) -> str:
        return self.base_url + self.LEADERBOARD_PATH.format(
            season=season,
            board_id=board_id,
        )

    async def fetch(
        self,
        credential: str,
        board_id: str,
        season: int,
    ) -> LeaderboardSnapshot:
        """
        Fetch the private leaderboard `board_id` for `season`.

        The credential is sent as the `session` cookie. It is never logged.
        """
        url = self.leaderboard_url(board_id, season)
        log.debug(f"Requesting leaderboard {board_id} ({season})")

        try:
            r = await self._http.get(
                url,
                headers={"Cookie": f"session={credential}"},
            )
        except httpx.HTTPError as e:
            raise FetchError(f"Leaderboard request failed: {e}") from e

        if r.status_code // 100 != 2:
            raise FetchError(
                f"Leaderboard request returned HTTP {r.status_code}",
                status_code=r.status_code,
            )

        try:
            data = r.json()
        except ValueError as e:
            # The site answers expired sessions with an HTML login page.
            raise FetchError(
                "Leaderboard response is not JSON (session cookie expired?)",
                status_code=r.status_code,
            ) from e

        try:
            snapshot = LeaderboardSnapshot.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise FetchError(f"Malformed leaderboard payload: {e}") from e

        log.debug(
            f"Parsed leaderboard {board_id} ({season}): "
            f"{len(snapshot.members)} member(s)"
        )
        return snapshot

    async def close(self) -> None:
        await self._http.aclose()
