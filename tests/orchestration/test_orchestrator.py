# tests/orchestration/test_orchestrator.py
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from chess_insights.config.settings import RunConfig, SourceSettings
from chess_insights.core.move_evaluator import HeuristicMoveEvaluator
from chess_insights.core.pgn_parser import parse_game_pgn
from chess_insights.exceptions import AnalysisCancelledError, PlayerNotFoundError, SourceUnavailableError
from chess_insights.orchestration.analysis_pipeline import AnalysisPipeline
from chess_insights.orchestration.orchestrator import PlayerAnalysisOrchestrator
from chess_insights.orchestration.pipeline_factory import create_pipeline
from chess_insights.services.cache_coordinator import CacheCoordinator
from chess_insights.services.summary_generator import RuleBasedSummaryGenerator
from chess_insights.statistics import StatKey, StatisticsTracker
from chess_insights.storage.durable_store import SqliteDurableStore
from chess_insights.storage.ephemeral_cache import EphemeralCache
from chess_insights.types import GameSource, ProfileSummary

ARCHIVES = [
    "https://api.chess.com/pub/player/bob/games/2024/02",
    "https://api.chess.com/pub/player/bob/games/2024/03",
]


@pytest.fixture
def run_config(cache_settings) -> RunConfig:
    return RunConfig(
        username="Bob",
        game_limit=3,
        cache_settings=cache_settings,
        source_settings=SourceSettings(inter_request_delay_seconds=0),
    )


@pytest.fixture
def source(make_game) -> MagicMock:
    months = {
        (2024, 2): [make_game("feb-1", month=2, day=1), make_game("feb-2", month=2, day=20)],
        (2024, 3): [make_game("mar-1", month=3, day=2), make_game("mar-2", month=3, day=9)],
    }
    source = MagicMock(spec=GameSource)
    source.fetch_archive_list = AsyncMock(return_value=ARCHIVES)
    source.fetch_month = AsyncMock(side_effect=lambda username, year, month: months[(year, month)])
    source.fetch_profile = AsyncMock(return_value=ProfileSummary(username="bob", followers=12))
    return source


@pytest_asyncio.fixture
async def coordinator(cache_settings, tracker):
    async with CacheCoordinator(SqliteDurableStore(cache_settings), EphemeralCache(cache_settings), tracker) as c:
        yield c


@pytest.fixture
def tracker() -> StatisticsTracker:
    return StatisticsTracker()


def _pipeline(run_config: RunConfig, coordinator: CacheCoordinator, tracker: StatisticsTracker) -> AnalysisPipeline:
    settings = run_config.analysis_settings
    stages = create_pipeline({
        "pgn_parser_func": parse_game_pgn,
        "move_evaluator": HeuristicMoveEvaluator(settings),
        "summary_generator": None,
        "fallback_summary_generator": RuleBasedSummaryGenerator(settings),
        "tracker": tracker,
    })
    return AnalysisPipeline(coordinator, stages, settings, tracker)


@pytest.fixture
def orchestrator(run_config, coordinator, source, tracker) -> PlayerAnalysisOrchestrator:
    return PlayerAnalysisOrchestrator(run_config, coordinator, source, _pipeline(run_config, coordinator, tracker), tracker)


@pytest.mark.asyncio
class TestCollectRecentGames:
    async def test_newest_months_first_up_to_limit(self, orchestrator, source, tracker):
        games = await orchestrator.collect_recent_games("bob", 3)

        assert [g.uuid for g in games] == ["mar-2", "mar-1", "feb-2"]
        assert tracker.get(StatKey.GAMES_FETCHED) == 3
        assert tracker.get(StatKey.MONTHS_FETCHED) == 2

    async def test_stops_reading_months_once_limit_is_reached(self, orchestrator, source):
        games = await orchestrator.collect_recent_games("bob", 2)

        assert [g.uuid for g in games] == ["mar-2", "mar-1"]
        source.fetch_month.assert_awaited_once_with("bob", 2024, 3)

    async def test_failed_month_is_skipped(self, orchestrator, source, tracker, make_game):
        feb = [make_game("feb-1", month=2)]

        async def _fetch(username, year, month):
            if month == 3:
                raise SourceUnavailableError("HTTP 503", status=503)
            return feb
        source.fetch_month = AsyncMock(side_effect=_fetch)

        games = await orchestrator.collect_recent_games("bob", 5)

        assert [g.uuid for g in games] == ["feb-1"]
        assert tracker.get(StatKey.MONTHS_FAILED) == 1

    async def test_raises_when_every_month_fails(self, orchestrator, source):
        source.fetch_month = AsyncMock(side_effect=SourceUnavailableError("HTTP 503", status=503))

        with pytest.raises(SourceUnavailableError):
            await orchestrator.collect_recent_games("bob", 5)

    async def test_unknown_player_propagates(self, orchestrator, source):
        source.fetch_archive_list = AsyncMock(side_effect=PlayerNotFoundError("404", status=404))

        with pytest.raises(PlayerNotFoundError):
            await orchestrator.collect_recent_games("nobody", 5)


@pytest.mark.asyncio
class TestRun:
    async def test_run_builds_report(self, orchestrator):
        report = await orchestrator.run()

        assert report.username == "bob"
        assert report.games_analyzed == 3
        assert report.computed_count == 3
        assert report.cached_count == 0
        assert report.profile.followers == 12
        assert report.time_class_stats["blitz"].games == 3
        assert report.win_rate == 0.0  # Bob is checkmated in every fixture game.

    async def test_second_run_uses_every_cache(self, orchestrator, source):
        await orchestrator.run()

        report = await orchestrator.run(limit=3)

        assert report.cached_count == 3
        assert report.computed_count == 0
        assert source.fetch_month.await_count == 2
        source.fetch_profile.assert_awaited_once()

    async def test_missing_profile_is_not_fatal(self, orchestrator, source):
        source.fetch_profile = AsyncMock(side_effect=SourceUnavailableError("timeout"))

        report = await orchestrator.run()

        assert report.profile is None
        assert report.games_analyzed == 3

    async def test_cancelled_run(self, orchestrator):
        cancel_event = asyncio.Event()
        cancel_event.set()

        with pytest.raises(AnalysisCancelledError):
            await orchestrator.run(cancel_event=cancel_event)


@pytest.mark.asyncio
class TestSourceOutage:
    async def test_repeat_run_survives_archive_list_outage(self, orchestrator, source):
        await orchestrator.run()
        source.fetch_archive_list = AsyncMock(side_effect=SourceUnavailableError("source down"))

        report = await orchestrator.run(limit=3)

        assert report.games_analyzed == 3
        assert report.cached_count == 3

    async def test_new_process_falls_back_to_stored_games(self, orchestrator, run_config, cache_settings, source):
        # Arrange: a first run persists games; a second process starts with an empty ephemeral cache.
        await orchestrator.run()
        source.fetch_archive_list = AsyncMock(side_effect=SourceUnavailableError("source down"))
        source.fetch_month = AsyncMock(side_effect=SourceUnavailableError("source down"))
        tracker = StatisticsTracker()

        async with CacheCoordinator(SqliteDurableStore(cache_settings), EphemeralCache(cache_settings), tracker) as fresh:
            restarted = PlayerAnalysisOrchestrator(run_config, fresh, source, _pipeline(run_config, fresh, tracker), tracker)

            # Act
            report = await restarted.run(limit=3)

        # Assert
        assert report.games_analyzed == 3
        assert report.cached_count == 3
        assert tracker.get(StatKey.MONTHS_FROM_STORE) == 2

    async def test_outage_without_any_local_data_raises(self, orchestrator, source):
        source.fetch_archive_list = AsyncMock(side_effect=SourceUnavailableError("source down"))

        with pytest.raises(SourceUnavailableError):
            await orchestrator.run()


@pytest.mark.asyncio
class TestThrottling:
    @pytest.fixture
    def sleep(self) -> AsyncMock:
        return AsyncMock()

    @pytest.fixture
    def throttled(self, run_config, coordinator, source, tracker, sleep) -> PlayerAnalysisOrchestrator:
        config = run_config.model_copy(update={"source_settings": SourceSettings(inter_request_delay_seconds=0.5)})
        return PlayerAnalysisOrchestrator(config, coordinator, source, _pipeline(config, coordinator, tracker), tracker, sleep=sleep)

    async def test_pauses_after_each_requested_month(self, throttled, sleep):
        await throttled.collect_recent_games("bob", 4)

        assert [c.args for c in sleep.await_args_list] == [(0.5,), (0.5,)]

    async def test_fully_cached_run_does_not_pause(self, throttled, sleep):
        await throttled.run(limit=4)
        sleep.reset_mock()

        await throttled.run(limit=4)

        sleep.assert_not_awaited()
