# chess_insights/orchestration/pipeline_stages.py
"""
Defines the individual, sequential stages of the per-game analysis pipeline.

Each stage is a class that conforms to the `ProcessingStage` protocol and
performs one well-defined step of analyzing a game that was not found in the
durable store: parsing the movetext, evaluating the player's moves,
aggregating statistics, summarizing, and assembling the `AnalysisRecord`.
The pipeline is executed by passing a mutable `AnalysisContext` object from
one stage to the next, with each stage reading from and writing to it.
"""

import asyncio
from typing import Callable, List, Optional, TYPE_CHECKING

import chess
import structlog

from chess_insights.core import game_statistics
from chess_insights.core.chess_utils import identify_endgame_type
from chess_insights.core.pgn_parser import get_opening_name
from chess_insights.exceptions import AnalysisCancelledError, PlayerNotInGameError
from chess_insights.statistics import StatKey
from chess_insights.tracing import trace_stage
from chess_insights.types import (AnalysisContext, AnalysisRecord, AnalysisState, GameStatistics,
                                  MoveClassification, MoveRecord, ParsedGame, PlayerColor, ProcessingStage,
                                  SummarySource)
from chess_insights.utils import metrics

if TYPE_CHECKING:
    from chess_insights.services.summary_generator import RuleBasedSummaryGenerator
    from chess_insights.statistics import StatisticsTracker
    from chess_insights.types import MoveEvaluator, SummaryGenerator

    PgnParserFunc = Callable[[str], ParsedGame]

logger = structlog.get_logger(__name__)


def set_state(context: AnalysisContext, state: AnalysisState) -> None:
    """Moves a game to its next lifecycle state and logs the transition."""
    logger.debug("Game state changed.", game_uuid=context.game.uuid, previous=context.state.value, state=state.value)
    context.state = state


# --- Pipeline Stage Implementations ---

class ParseStage(ProcessingStage):
    """Determines the player's side and parses the movetext."""
    def __init__(self, pgn_parser_func: "PgnParserFunc"):
        self._parser_func = pgn_parser_func

    @trace_stage
    async def execute(self, context: AnalysisContext) -> AnalysisContext:
        color = context.game.player_color(context.username)
        if color is None:
            raise PlayerNotInGameError(
                f"{context.username!r} played neither side of game {context.game.uuid!r} "
                f"({context.game.white_username!r} vs {context.game.black_username!r})."
            )
        context.player_color = color
        context.parsed_game = self._parser_func(context.game.pgn)
        return context


class EvaluationStage(ProcessingStage):
    """Evaluates every move the player made; the opponent's moves are recorded unevaluated."""
    def __init__(self, evaluator: "MoveEvaluator"):
        self._evaluator = evaluator

    @trace_stage
    async def execute(self, context: AnalysisContext) -> AnalysisContext:
        set_state(context, AnalysisState.EVALUATING)
        player_is_white = context.player_color == PlayerColor.WHITE
        moves: List[MoveRecord] = []
        for slice in context.parsed_game.slices:
            record = MoveRecord(
                ply=slice.ply, move_number=slice.move_number, san=slice.san,
                is_white_move=slice.is_white_move, fen_before=slice.fen_before, fen_after=slice.fen_after,
            )
            if slice.is_white_move == player_is_white:
                evaluation = self._evaluator.evaluate_move(slice.fen_before, slice.san, slice.fen_after)
                record.classification = evaluation.classification
                record.best_move = evaluation.best_move
                record.evaluation = evaluation.evaluation
                record.evaluation_drop = evaluation.evaluation_drop
                record.explanation = evaluation.explanation
                # Evaluation is CPU-bound; yield so other tasks are not starved on long games.
                await asyncio.sleep(0)
            moves.append(record)
        context.moves = moves
        return context


class StatisticsStage(ProcessingStage):
    """Aggregates the evaluated moves into per-game statistics."""

    @trace_stage
    async def execute(self, context: AnalysisContext) -> AnalysisContext:
        settings = context.settings
        counts = game_statistics.count_classifications(context.moves)
        context.statistics = GameStatistics(
            accuracy=game_statistics.calculate_accuracy(context.moves, settings),
            blunders=counts[MoveClassification.BLUNDER],
            mistakes=counts[MoveClassification.MISTAKE],
            inaccuracies=counts[MoveClassification.INACCURACY],
            opening_name=get_opening_name(context.parsed_game.headers),
            mistake_examples=game_statistics.collect_mistake_examples(
                context.moves, context.game.uuid, settings.max_mistake_examples
            ),
        )
        return context


class SummaryStage(ProcessingStage):
    """
    Produces the game summary.

    Uses the configured generator when there is one and falls back to the
    rule-based summary when there is none or when it fails.
    """
    def __init__(
        self,
        generator: Optional["SummaryGenerator"],
        fallback: "RuleBasedSummaryGenerator",
        tracker: Optional["StatisticsTracker"] = None,
    ):
        self._generator = generator
        self._fallback = fallback
        self._tracker = tracker

    async def _fall_back(self, context: AnalysisContext, reason: str) -> None:
        context.summary = await self._fallback.summarize(context.game, context.player_color, context.statistics)
        context.summary_source = SummarySource.FALLBACK
        metrics.SUMMARY_FALLBACKS_TOTAL.labels(reason=reason).inc()
        if self._tracker is not None:
            self._tracker.add_stat(StatKey.SUMMARY_FALLBACKS)

    @trace_stage
    async def execute(self, context: AnalysisContext) -> AnalysisContext:
        set_state(context, AnalysisState.SUMMARIZING)
        if self._generator is None:
            await self._fall_back(context, "not_configured")
            return context
        try:
            context.summary = await self._generator.summarize(context.game, context.player_color, context.statistics)
            context.summary_source = SummarySource.GENERATED
        except Exception as e:
            # Not every generator wraps its errors in SummaryGenerationError.
            logger.warning(
                "Summary generation failed, using rule-based summary.",
                game_uuid=context.game.uuid, error=str(e), error_type=type(e).__name__,
            )
            await self._fall_back(context, "generation_failed")
        return context


class RecordStage(ProcessingStage):
    """Assembles the `AnalysisRecord` that will be memoized for this game and player."""
    def __init__(self, evaluator_version: str):
        self._evaluator_version = evaluator_version

    @trace_stage
    async def execute(self, context: AnalysisContext) -> AnalysisContext:
        set_state(context, AnalysisState.PERSISTING)
        settings = context.settings
        stats = context.statistics
        context.record = AnalysisRecord(
            game_uuid=context.game.uuid,
            username=context.username,
            player_color=context.player_color,
            moves=context.moves,
            accuracy=stats.accuracy,
            classification_counts=game_statistics.count_classifications(context.moves),
            mistake_examples=stats.mistake_examples,
            mistake_patterns=game_statistics.identify_mistake_patterns(context.moves, context.game.uuid),
            recommendations=game_statistics.generate_recommendations(
                context.moves, stats.accuracy, settings.max_recommendations
            ),
            opening_name=stats.opening_name,
            endgame_type=identify_endgame_type(chess.Board(context.parsed_game.final_fen)),
            time_class=context.game.time_class,
            player_result=context.game.player_result(context.player_color),
            summary=context.summary,
            summary_source=context.summary_source,
            evaluator_version=self._evaluator_version,
        )
        return context


async def run_analysis_pipeline(
    context: AnalysisContext,
    stages: List[ProcessingStage],
    cancel_event: Optional[asyncio.Event] = None,
) -> AnalysisContext:
    """
    Executes a list of processing stages sequentially on an AnalysisContext.

    Raises:
        AnalysisCancelledError: If `cancel_event` is set before a stage starts.
        EvaluationError: If the game cannot be analyzed.
    """
    current_context = context
    for stage in stages:
        # Check for a cancellation signal before executing the next stage.
        if cancel_event is not None and cancel_event.is_set():
            logger.warning("Cancellation signaled, aborting game analysis.", game_uuid=context.game.uuid)
            raise AnalysisCancelledError(f"Analysis of game {context.game.uuid!r} was cancelled.")
        current_context = await stage.execute(current_context)
    return current_context
