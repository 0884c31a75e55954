# chess_insights/core/game_statistics.py
"""
Pure functions that aggregate one game's evaluated moves into statistics.

Given the moves of a game (only the analyzed player's moves carry a
classification), this module computes the player's accuracy, the number of
blunders/mistakes/inaccuracies, representative mistake examples, per-game
mistake patterns and a short list of recommendations.
"""

from collections import Counter
from typing import Dict, List, TYPE_CHECKING

from chess_insights.core.chess_utils import accuracy_for_drop
from chess_insights.types import (MistakeExample, MistakePattern, MoveClassification, MoveRecord,
                                  PatternExample, PatternType, Severity)

if TYPE_CHECKING:
    from chess_insights.config.settings import AnalysisSettings

ERROR_CLASSES = (MoveClassification.BLUNDER, MoveClassification.MISTAKE, MoveClassification.INACCURACY)
SERIOUS_ERROR_CLASSES = (MoveClassification.BLUNDER, MoveClassification.MISTAKE)


def player_moves(moves: List[MoveRecord]) -> List[MoveRecord]:
    """The moves that were evaluated, i.e. those played by the analyzed player."""
    return [move for move in moves if move.classification is not None]


def calculate_accuracy(moves: List[MoveRecord], settings: "AnalysisSettings") -> float:
    """Mean per-move accuracy over the evaluated moves, 0.0 if there are none."""
    evaluated = player_moves(moves)
    if not evaluated:
        return 0.0
    total = sum(accuracy_for_drop(move.evaluation_drop or 0.0, settings.accuracy) for move in evaluated)
    return round(total / len(evaluated), 1)


def count_classifications(moves: List[MoveRecord]) -> Dict[MoveClassification, int]:
    counts = Counter(move.classification for move in player_moves(moves))
    return {classification: counts.get(classification, 0) for classification in MoveClassification}


def collect_mistake_examples(moves: List[MoveRecord], game_uuid: str, limit: int) -> List[MistakeExample]:
    """The first `limit` errors the player made, in move order."""
    examples: List[MistakeExample] = []
    for move in player_moves(moves):
        if move.classification not in ERROR_CLASSES:
            continue
        examples.append(
            MistakeExample(
                move_number=move.move_number,
                move=move.san,
                type=move.classification,
                position=move.fen_before,
                best_move=move.best_move or "",
                game_uuid=game_uuid,
            )
        )
        if len(examples) >= limit:
            break
    return examples


def identify_mistake_patterns(moves: List[MoveRecord], game_uuid: str) -> List[MistakePattern]:
    """Per-game patterns: blunders read as tactical problems, mistakes as positional ones."""
    evaluated = player_moves(moves)
    patterns: List[MistakePattern] = []

    blunders = [m for m in evaluated if m.classification == MoveClassification.BLUNDER]
    if blunders:
        patterns.append(MistakePattern(
            type=PatternType.TACTICAL,
            description=f"Major tactical blunders detected ({len(blunders)} blunders)",
            frequency=len(blunders),
            severity=Severity.MAJOR if len(blunders) > 2 else Severity.MODERATE,
            examples=[
                PatternExample(
                    game_uuid=game_uuid, move_number=m.move_number, position=m.fen_before,
                    explanation=f"Blunder on move {m.move_number}: {m.san} (best was {m.best_move})",
                )
                for m in blunders[:3]
            ],
        ))

    mistakes = [m for m in evaluated if m.classification == MoveClassification.MISTAKE]
    if mistakes:
        patterns.append(MistakePattern(
            type=PatternType.POSITIONAL,
            description=f"Positional errors affecting evaluation ({len(mistakes)} mistakes)",
            frequency=len(mistakes),
            severity=Severity.MODERATE if len(mistakes) > 3 else Severity.MINOR,
            examples=[
                PatternExample(
                    game_uuid=game_uuid, move_number=m.move_number, position=m.fen_before,
                    explanation=f"Mistake on move {m.move_number}: {m.san}",
                )
                for m in mistakes[:3]
            ],
        ))
    return patterns


def generate_recommendations(moves: List[MoveRecord], accuracy: float, limit: int) -> List[str]:
    """Rule-based advice for one game, most important first."""
    evaluated = player_moves(moves)
    counts = Counter(move.classification for move in evaluated)
    recommendations: List[str] = []

    if accuracy < 70:
        recommendations.append("Critical: your accuracy is below 70%. Focus on calculation and avoiding major errors")
        recommendations.append("Study tactical patterns daily; blunders are costing you significant rating points")
    elif accuracy < 80:
        recommendations.append("Good potential! Reduce inaccuracies to reach the next level")
    elif accuracy >= 90:
        recommendations.append("Excellent accuracy! You have strong technical skills")

    if counts[MoveClassification.BLUNDER] > 2:
        recommendations.append("Urgent: multiple blunders detected. Slow down on critical moves")
        recommendations.append('Before moving, ask: "What is my opponent threatening?"')

    if counts[MoveClassification.MISTAKE] > 3:
        recommendations.append("Study positional principles to reduce evaluation losses")
        recommendations.append("Focus on piece coordination and pawn structure")

    opening_errors = sum(1 for m in evaluated[:10] if m.classification in SERIOUS_ERROR_CLASSES)
    if opening_errors > 1:
        recommendations.append("Opening issues detected: learn fundamental opening principles")
        recommendations.append("Study your opening repertoire more deeply")

    endgame_errors = sum(1 for m in evaluated[-10:] if m.classification in SERIOUS_ERROR_CLASSES)
    if endgame_errors > 1:
        recommendations.append("Endgame technique needs work: study basic endgame patterns")
        recommendations.append("Practice king and pawn endings")

    if not recommendations:
        recommendations.append("Outstanding performance! Continue this level of play")
        recommendations.append("Consider playing stronger opponents to further improve")

    return recommendations[:limit]
