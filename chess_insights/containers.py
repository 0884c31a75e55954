# chess_insights/containers.py
"""
Defines the Dependency Injection (DI) container for the application.

This module uses the `punq` library to manage the creation and wiring of all
services. The cache coordinator, its stores and the game source client are
singletons: one instance per container is shared by every component that
needs it, and no module-level globals are involved.
"""

from typing import Optional

import punq

from chess_insights.config.settings import RunConfig
from chess_insights.core import pgn_parser
from chess_insights.core.move_evaluator import HeuristicMoveEvaluator
from chess_insights.orchestration.analysis_pipeline import AnalysisPipeline
from chess_insights.orchestration.orchestrator import PlayerAnalysisOrchestrator
from chess_insights.orchestration.pipeline_factory import create_pipeline
from chess_insights.services.cache_coordinator import CacheCoordinator
from chess_insights.services.chesscom_client import ChessComClient
from chess_insights.services.summary_generator import AnthropicSummaryGenerator, RuleBasedSummaryGenerator
from chess_insights.statistics import StatisticsTracker
from chess_insights.storage.durable_store import SqliteDurableStore
from chess_insights.storage.ephemeral_cache import EphemeralCache
from chess_insights.types import SummaryGenerator


def get_container(run_config: RunConfig) -> punq.Container:
    """
    Initializes and returns a DI container configured for a specific analysis run.
    """
    container = punq.Container()
    analysis_settings = run_config.analysis_settings

    # Register instances that are created outside the container's control.
    container.register(RunConfig, instance=run_config)

    container.register(StatisticsTracker, scope=punq.Scope.singleton)
    container.register(
        SqliteDurableStore,
        factory=lambda: SqliteDurableStore(run_config.cache_settings, evaluator_version=analysis_settings.evaluator_version),
        scope=punq.Scope.singleton,
    )
    container.register(EphemeralCache, factory=lambda: EphemeralCache(run_config.cache_settings), scope=punq.Scope.singleton)
    container.register(
        CacheCoordinator,
        factory=lambda: CacheCoordinator(
            container.resolve(SqliteDurableStore),
            container.resolve(EphemeralCache),
            tracker=container.resolve(StatisticsTracker),
            analysis_concurrency=analysis_settings.analysis_concurrency,
        ),
        scope=punq.Scope.singleton,
    )
    container.register(ChessComClient, factory=lambda: ChessComClient(run_config.source_settings), scope=punq.Scope.singleton)
    container.register(HeuristicMoveEvaluator, factory=lambda: HeuristicMoveEvaluator(analysis_settings), scope=punq.Scope.singleton)
    container.register(RuleBasedSummaryGenerator, factory=lambda: RuleBasedSummaryGenerator(analysis_settings))

    def create_summary_generator() -> Optional[SummaryGenerator]:
        if not run_config.summary_settings.api_key:
            return None
        return AnthropicSummaryGenerator(run_config.summary_settings)

    def create_analysis_pipeline() -> AnalysisPipeline:
        services = {
            "pgn_parser_func": pgn_parser.parse_game_pgn,
            "move_evaluator": container.resolve(HeuristicMoveEvaluator),
            "summary_generator": create_summary_generator(),
            "fallback_summary_generator": container.resolve(RuleBasedSummaryGenerator),
            "tracker": container.resolve(StatisticsTracker),
        }
        return AnalysisPipeline(
            container.resolve(CacheCoordinator),
            create_pipeline(services),
            analysis_settings,
            tracker=container.resolve(StatisticsTracker),
        )

    container.register(AnalysisPipeline, factory=create_analysis_pipeline)
    container.register(
        PlayerAnalysisOrchestrator,
        factory=lambda: PlayerAnalysisOrchestrator(
            run_config,
            container.resolve(CacheCoordinator),
            container.resolve(ChessComClient),
            container.resolve(AnalysisPipeline),
            container.resolve(StatisticsTracker),
        ),
    )
    return container
