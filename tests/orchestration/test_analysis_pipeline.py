# tests/orchestration/test_analysis_pipeline.py
import asyncio

import pytest
import pytest_asyncio

from chess_insights.core.move_evaluator import HeuristicMoveEvaluator
from chess_insights.core.pgn_parser import parse_game_pgn
from chess_insights.exceptions import AnalysisCancelledError
from chess_insights.orchestration.analysis_pipeline import AnalysisPipeline
from chess_insights.orchestration.pipeline_factory import create_pipeline
from chess_insights.services.cache_coordinator import CacheCoordinator
from chess_insights.services.summary_generator import RuleBasedSummaryGenerator
from chess_insights.statistics import StatKey, StatisticsTracker
from chess_insights.storage.durable_store import SqliteDurableStore
from chess_insights.storage.ephemeral_cache import EphemeralCache
from chess_insights.types import AnalysisContext, SummarySource

ILLEGAL_PGN = """[White "Alice"]
[Black "Bob"]
[Result "*"]

1. e4 e5 2. Ke3 *
"""


class CancelAfterFirstGame:
    """A trailing stage that requests cancellation once a game has been fully analyzed."""

    def __init__(self, cancel_event: asyncio.Event):
        self._cancel_event = cancel_event

    async def execute(self, context: AnalysisContext) -> AnalysisContext:
        self._cancel_event.set()
        return context


@pytest_asyncio.fixture
async def coordinator(cache_settings):
    async with CacheCoordinator(SqliteDurableStore(cache_settings), EphemeralCache(cache_settings)) as c:
        yield c


@pytest.fixture
def tracker() -> StatisticsTracker:
    return StatisticsTracker()


@pytest.fixture
def stages(analysis_settings, tracker):
    return create_pipeline({
        "pgn_parser_func": parse_game_pgn,
        "move_evaluator": HeuristicMoveEvaluator(analysis_settings),
        "summary_generator": None,
        "fallback_summary_generator": RuleBasedSummaryGenerator(analysis_settings),
        "tracker": tracker,
    })


@pytest.fixture
def pipeline(coordinator, stages, analysis_settings, tracker) -> AnalysisPipeline:
    return AnalysisPipeline(coordinator, stages, analysis_settings, tracker)


@pytest.mark.asyncio
class TestAnalyzeBatch:
    async def test_unanalyzable_games_are_skipped(self, pipeline, tracker, make_game):
        games = [
            make_game("g1"),
            make_game("g2", pgn=ILLEGAL_PGN),
            make_game("g3", white="Carol", black="Dave"),
        ]

        records = await pipeline.analyze_batch("bob", games)

        assert [r.game_uuid for r in records] == ["g1"]
        assert records[0].summary_source == SummarySource.FALLBACK
        assert tracker.get(StatKey.ANALYSES_COMPUTED) == 1
        assert tracker.get(StatKey.GAMES_SKIPPED_TOTAL) == 2
        assert tracker.get(StatKey.SKIPPED_BAD_PGN) == 1
        assert tracker.get(StatKey.SKIPPED_PLAYER_NOT_IN_GAME) == 1
        assert tracker.get(StatKey.SUMMARY_FALLBACKS) == 1

    async def test_second_run_is_served_from_cache(self, pipeline, tracker, coordinator, make_game):
        games = [make_game("g1"), make_game("g2", white="Bob", black="Alice")]
        first = await pipeline.analyze_batch("Bob", games)
        tracker.reset()

        second = await pipeline.analyze_batch("bob", games)

        assert [(r.game_uuid, r.accuracy) for r in second] == [(r.game_uuid, r.accuracy) for r in first]
        assert tracker.get(StatKey.ANALYSES_FROM_CACHE) == 2
        assert tracker.get(StatKey.ANALYSES_COMPUTED) == 0
        assert (await coordinator.stats()).durable.analysis_count == 2

    async def test_duplicate_games_are_analyzed_once(self, pipeline, tracker, make_game):
        records = await pipeline.analyze_batch("bob", [make_game("g1"), make_game("g1")])

        assert len(records) == 1
        assert tracker.get(StatKey.ANALYSES_COMPUTED) == 1

    async def test_cancelled_before_start(self, pipeline, coordinator, make_game):
        cancel_event = asyncio.Event()
        cancel_event.set()

        with pytest.raises(AnalysisCancelledError):
            await pipeline.analyze_batch("bob", [make_game("g1")], cancel_event)

        assert (await coordinator.stats()).durable.analysis_count == 0

    async def test_cancellation_keeps_finished_analyses(self, coordinator, stages, analysis_settings, make_game):
        # Arrange
        cancel_event = asyncio.Event()
        pipeline = AnalysisPipeline(coordinator, stages + [CancelAfterFirstGame(cancel_event)], analysis_settings)

        # Act
        with pytest.raises(AnalysisCancelledError):
            await pipeline.analyze_batch("bob", [make_game("g1"), make_game("g2")], cancel_event)

        # Assert
        assert await coordinator._store.get_analysis("g1", "bob") is not None
        assert await coordinator._store.get_analysis("g2", "bob") is None


@pytest.mark.asyncio
async def test_analyze_game_returns_none_for_skipped_game(pipeline, make_game):
    assert await pipeline.analyze_game(make_game("g1", pgn=ILLEGAL_PGN), "bob") is None
