# chess_insights/orchestration/analysis_pipeline.py
"""
Defines the `AnalysisPipeline`, which turns a batch of games into analyses.

Stored analyses are looked up through the `CacheCoordinator`; only the games
without one run through the per-game stage chain. A game that cannot be
analyzed is skipped, and a cancellation request stops the batch between games
while keeping every analysis already written.
"""

import asyncio
import time
from typing import Dict, List, Optional, TYPE_CHECKING

import structlog

from chess_insights.exceptions import AnalysisCancelledError, EvaluationError, PlayerNotInGameError
from chess_insights.orchestration.pipeline_stages import run_analysis_pipeline, set_state
from chess_insights.statistics import StatKey
from chess_insights.types import AnalysisContext, AnalysisRecord, AnalysisState, GameRecord, ProcessingStage
from chess_insights.utils import metrics

if TYPE_CHECKING:
    from chess_insights.config.settings import AnalysisSettings
    from chess_insights.services.cache_coordinator import CacheCoordinator
    from chess_insights.statistics import StatisticsTracker

logger = structlog.get_logger(__name__)


class AnalysisPipeline:
    """Resolves the analyses of a player's games, computing only the cache misses."""

    def __init__(
        self,
        coordinator: "CacheCoordinator",
        stages: List[ProcessingStage],
        settings: "AnalysisSettings",
        tracker: Optional["StatisticsTracker"] = None,
    ):
        self._coordinator = coordinator
        self._stages = stages
        self._settings = settings
        self._tracker = tracker

    def _count(self, key: StatKey) -> None:
        if self._tracker is not None:
            self._tracker.add_stat(key)

    def _record_skip(self, context: AnalysisContext, error: EvaluationError) -> None:
        set_state(context, AnalysisState.SKIPPED)
        reason = type(error).__name__
        logger.warning("Skipped game that could not be analyzed.", game_uuid=context.game.uuid, reason=reason, error=str(error))
        metrics.GAMES_SKIPPED_TOTAL.labels(reason=reason).inc()
        self._count(StatKey.GAMES_SKIPPED_TOTAL)
        self._count(StatKey.SKIPPED_PLAYER_NOT_IN_GAME if isinstance(error, PlayerNotInGameError) else StatKey.SKIPPED_BAD_PGN)

    async def analyze_game(
        self, game: GameRecord, username: str, cancel_event: Optional[asyncio.Event] = None
    ) -> Optional[AnalysisRecord]:
        """
        Runs the full stage chain for one game.

        Returns:
            The new analysis, or None if the game had to be skipped.

        Raises:
            AnalysisCancelledError: If `cancel_event` is set before or during the run.
        """
        context = AnalysisContext(game=game, username=username.lower(), settings=self._settings, cancel_event=cancel_event)
        set_state(context, AnalysisState.CACHE_MISS)
        structlog.contextvars.bind_contextvars(game_uuid=game.uuid)
        start = time.monotonic()
        try:
            final_context = await run_analysis_pipeline(context, self._stages, cancel_event)
        except EvaluationError as e:
            self._record_skip(context, e)
            return None
        finally:
            structlog.contextvars.unbind_contextvars("game_uuid")

        metrics.GAME_ANALYSIS_DURATION_SECONDS.observe(time.monotonic() - start)
        metrics.ANALYSES_COMPUTED_TOTAL.inc()
        self._count(StatKey.ANALYSES_COMPUTED)
        set_state(final_context, AnalysisState.DONE)
        return final_context.record

    async def analyze_batch(
        self,
        username: str,
        games: List[GameRecord],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[AnalysisRecord]:
        """
        Returns the analyses of `games` from `username`'s perspective, in input order.

        Games whose analysis is stored are not re-analyzed. Games that cannot be
        analyzed are left out of the result.

        Raises:
            AnalysisCancelledError: If `cancel_event` is set. Analyses finished
                before that point have already been persisted.
        """
        by_uuid: Dict[str, GameRecord] = {}
        for game in games:
            by_uuid.setdefault(game.uuid, game)

        computed: List[str] = []

        async def compute(game_uuid: str) -> Optional[AnalysisRecord]:
            if cancel_event is not None and cancel_event.is_set():
                raise AnalysisCancelledError("Analysis batch was cancelled.")
            record = await self.analyze_game(by_uuid[game_uuid], username, cancel_event)
            if record is not None:
                computed.append(game_uuid)
            return record

        logger.info("Analyzing games.", username=username.lower(), games=len(by_uuid), state=AnalysisState.FETCHING_CACHE.value)
        records = await self._coordinator.resolve_analyses(username, list(by_uuid), compute)

        fresh = set(computed)
        for record in records:
            if record.game_uuid not in fresh:
                logger.debug("Game state changed.", game_uuid=record.game_uuid, state=AnalysisState.CACHE_HIT.value)
                self._count(StatKey.ANALYSES_FROM_CACHE)
        logger.info(
            "Game analyses resolved.", username=username.lower(), requested=len(by_uuid),
            from_cache=len(records) - len(fresh), computed=len(fresh), skipped=len(by_uuid) - len(records),
        )
        return records
