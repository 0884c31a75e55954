# chess_insights/services/chesscom_client.py
"""
A `GameSource` implementation for the Chess.com public API.

Endpoints used:

* ``/player/{username}``: public profile
* ``/player/{username}/games/archives``: URLs of every monthly archive
* ``/player/{username}/games/{YYYY}/{MM}``: games finished in that month

Every transport or HTTP failure surfaces as `SourceUnavailableError`; a 404 is
reported as the more specific `PlayerNotFoundError`.
"""

import asyncio
import re
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

import aiohttp
import structlog
from pydantic import ValidationError

from chess_insights.exceptions import PlayerNotFoundError, SourceUnavailableError
from chess_insights.types import GameRecord, ProfileSummary
from chess_insights.utils import metrics

if TYPE_CHECKING:
    from chess_insights.config.settings import SourceSettings

logger = structlog.get_logger(__name__)

_ARCHIVE_URL_PATTERN = re.compile(r"/(\d{4})/(\d{1,2})/?$")


def parse_archive_url(url: str) -> Optional[Tuple[int, int]]:
    """Extracts (year, month) from an archive URL ending in ``/YYYY/MM``."""
    match = _ARCHIVE_URL_PATTERN.search(url)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


class ChessComClient:
    """
    Thin async client for the Chess.com public data API.

    Usable as an async context manager; the underlying `aiohttp.ClientSession`
    is created lazily on first use and closed by `close()`.
    """

    def __init__(self, settings: "SourceSettings", session: Optional[aiohttp.ClientSession] = None):
        self._base_url = settings.base_url.rstrip("/")
        self._user_agent = settings.user_agent
        self._timeout = aiohttp.ClientTimeout(total=settings.request_timeout_seconds)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "ChessComClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self._user_agent, "Accept": "application/json"},
                timeout=self._timeout,
            )
            self._owns_session = True
        return self._session

    async def _get_json(self, path: str, endpoint: str) -> Dict[str, Any]:
        url = f"{self._base_url}{path}"
        session = self._ensure_session()
        try:
            async with session.get(url) as response:
                if response.status == 404:
                    metrics.SOURCE_REQUESTS_TOTAL.labels(endpoint=endpoint, outcome="not_found").inc()
                    raise PlayerNotFoundError(f"Chess.com returned 404 for {path}", status=404)
                if response.status != 200:
                    metrics.SOURCE_REQUESTS_TOTAL.labels(endpoint=endpoint, outcome="error").inc()
                    raise SourceUnavailableError(
                        f"Chess.com returned HTTP {response.status} for {path}", status=response.status
                    )
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            metrics.SOURCE_REQUESTS_TOTAL.labels(endpoint=endpoint, outcome="error").inc()
            logger.warning("Chess.com request failed.", url=url, error=str(e))
            raise SourceUnavailableError(f"Request to {url} failed: {e}") from e

        metrics.SOURCE_REQUESTS_TOTAL.labels(endpoint=endpoint, outcome="ok").inc()
        if not isinstance(data, dict):
            raise SourceUnavailableError(f"Unexpected response body for {path}")
        return data

    async def fetch_archive_list(self, username: str) -> List[str]:
        """Returns the monthly archive URLs for a player, oldest first as Chess.com lists them."""
        data = await self._get_json(f"/player/{username.lower()}/games/archives", "archives")
        return [url for url in data.get("archives", []) if isinstance(url, str)]

    async def fetch_month(self, username: str, year: int, month: int) -> List[GameRecord]:
        """Returns the games a player finished in one month, in the order Chess.com lists them."""
        data = await self._get_json(f"/player/{username.lower()}/games/{year}/{month:02d}", "month")
        records: List[GameRecord] = []
        for payload in data.get("games", []):
            try:
                records.append(GameRecord.from_payload(payload, username))
            except (ValueError, TypeError) as e:
                logger.warning("Skipping game without a usable identifier.", username=username, year=year, month=month, error=str(e))
        return records

    async def fetch_profile(self, username: str) -> ProfileSummary:
        data = await self._get_json(f"/player/{username.lower()}", "profile")
        data.setdefault("username", username)
        try:
            return ProfileSummary.model_validate(data)
        except ValidationError as e:
            raise SourceUnavailableError(f"Unexpected profile payload for {username}: {e}") from e
