# chess_insights/orchestration/orchestrator.py
"""
The top-level "analyze this player" orchestrator.

One run collects the player's most recent games (monthly archives, newest
first, through the cache coordinator), resolves their analyses, and
aggregates everything into a `PlayerReport`.
"""

import asyncio
import functools
from typing import Awaitable, Callable, List, Optional, Tuple, TYPE_CHECKING

import structlog

from chess_insights.core.player_profile import build_player_report
from chess_insights.exceptions import AnalysisCancelledError, SourceUnavailableError
from chess_insights.services.chesscom_client import parse_archive_url
from chess_insights.statistics import StatKey, StatisticsTracker
from chess_insights.tracing import CorrelationID
from chess_insights.types import GameRecord, PlayerReport, ProfileSummary

if TYPE_CHECKING:
    from chess_insights.config.settings import RunConfig
    from chess_insights.orchestration.analysis_pipeline import AnalysisPipeline
    from chess_insights.services.cache_coordinator import CacheCoordinator
    from chess_insights.types import GameSource

logger = structlog.get_logger(__name__)


def _newest_first(games: List[GameRecord]) -> List[GameRecord]:
    return sorted(games, key=lambda game: game.payload.get("end_time") or 0, reverse=True)


class PlayerAnalysisOrchestrator:
    def __init__(
        self,
        config: "RunConfig",
        coordinator: "CacheCoordinator",
        source: "GameSource",
        pipeline: "AnalysisPipeline",
        tracker: StatisticsTracker,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._config = config
        self._coordinator = coordinator
        self._source = source
        self._pipeline = pipeline
        self._tracker = tracker
        self._sleep = sleep

    @staticmethod
    def _check_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelledError("Player analysis run was cancelled.")

    async def _list_archive_months(self, username: str) -> List[Tuple[int, int]]:
        archives = await self._source.fetch_archive_list(username)
        return [ym for ym in map(parse_archive_url, archives) if ym is not None]

    async def collect_recent_games(
        self, username: str, limit: int, cancel_event: Optional[asyncio.Event] = None
    ) -> List[GameRecord]:
        """
        Gathers up to `limit` of the player's most recent games, newest first.

        Monthly archives are read from the newest backwards. A month the source
        cannot deliver is served from the games stored for it on an earlier
        run, or skipped when there are none. The configured pause follows only
        months that were actually requested from the source.

        Raises:
            PlayerNotFoundError: If the source does not know the player.
            SourceUnavailableError: If no months are known, or no games at all
                could be collected.
        """
        months = await self._coordinator.get_archive_months(
            username, functools.partial(self._list_archive_months, username)
        )
        logger.debug("Archive months resolved.", username=username, months=len(months))

        games: List[GameRecord] = []
        last_error: Optional[SourceUnavailableError] = None
        for year, month in months:
            if len(games) >= limit:
                break
            self._check_cancelled(cancel_event)
            requested = False

            async def fetch_from_source(year: int = year, month: int = month) -> List[GameRecord]:
                nonlocal requested
                requested = True
                return await self._source.fetch_month(username, year, month)

            try:
                batch = await self._coordinator.fetch_monthly_games(username, year, month, fetch_from_source)
                self._tracker.add_stat(StatKey.MONTHS_FETCHED)
            except SourceUnavailableError as e:
                batch = await self._coordinator.stored_monthly_games(username, year, month)
                if batch:
                    logger.warning("Monthly archive unavailable, using stored games.", username=username, year=year, month=month, count=len(batch), error=str(e))
                    self._tracker.add_stat(StatKey.MONTHS_FROM_STORE)
                else:
                    logger.warning("Skipping monthly archive that could not be fetched.", username=username, year=year, month=month, error=str(e))
                    self._tracker.add_stat(StatKey.MONTHS_FAILED)
                    last_error = e

            games.extend(_newest_first(batch))
            if requested:
                await self._sleep(self._config.source_settings.inter_request_delay_seconds)

        if not games and last_error is not None:
            raise last_error

        collected = games[:limit]
        self._tracker.add_stat(StatKey.GAMES_FETCHED, len(collected))
        return collected

    async def _fetch_profile(self, username: str) -> Optional[ProfileSummary]:
        try:
            return await self._coordinator.get_profile(username, functools.partial(self._source.fetch_profile, username))
        except SourceUnavailableError as e:
            logger.warning("Player profile unavailable; continuing without it.", username=username, error=str(e))
            return None

    async def run(
        self,
        username: Optional[str] = None,
        limit: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PlayerReport:
        """
        Analyzes a player's recent games and returns the aggregated report.

        Raises:
            SourceUnavailableError: If no games could be obtained.
            AnalysisCancelledError: If `cancel_event` is set during the run.
        """
        name = (username or self._config.username).strip().lower()
        game_limit = limit or self._config.game_limit
        cid = CorrelationID.start(name)
        structlog.contextvars.bind_contextvars(correlation_id=cid.short_id)
        self._tracker.reset()
        logger.info("Starting player analysis.", username=name, limit=game_limit)

        try:
            profile = await self._fetch_profile(name)
            games = await self.collect_recent_games(name, game_limit, cancel_event)
            self._check_cancelled(cancel_event)
            analyses = await self._pipeline.analyze_batch(name, games, cancel_event)

            report = build_player_report(
                name,
                analyses,
                self._config.analysis_settings,
                profile=profile,
                cached_count=self._tracker.get(StatKey.ANALYSES_FROM_CACHE),
                computed_count=self._tracker.get(StatKey.ANALYSES_COMPUTED),
                skipped_count=self._tracker.get(StatKey.GAMES_SKIPPED_TOTAL),
            )
            logger.info(
                "Player analysis complete.", username=name, games=report.games_analyzed,
                average_accuracy=report.average_accuracy, win_rate=report.win_rate,
            )
            return report
        finally:
            self._tracker.log_summary(name)
            structlog.contextvars.unbind_contextvars("correlation_id")
