# chess_insights/core/pattern_detector.py
"""
Detects mistake patterns that recur across several analyzed games.

Each detector looks at one kind of problem (tactics, the opening, the
endgame, play in time pressure) and reports it only when it shows up in at
least two games. The detected patterns are then turned into a prioritized
list of improvement areas.
"""

from typing import Callable, Dict, List, TYPE_CHECKING

import structlog

from chess_insights.core.game_statistics import SERIOUS_ERROR_CLASSES, player_moves
from chess_insights.types import (AnalysisRecord, ImprovementArea, MistakePattern, MoveClassification,
                                  MoveRecord, PatternExample, PatternType, Priority, Severity)

if TYPE_CHECKING:
    from chess_insights.config.settings import AnalysisSettings

logger = structlog.get_logger(__name__)

MIN_PATTERN_FREQUENCY = 2
MAX_PATTERN_EXAMPLES = 3

_PRIORITY_ORDER: Dict[Priority, int] = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}


def _serious_errors(moves: List[MoveRecord]) -> List[MoveRecord]:
    return [m for m in moves if m.classification in SERIOUS_ERROR_CLASSES]


def _example(record: AnalysisRecord, move: MoveRecord, explanation: str) -> PatternExample:
    return PatternExample(
        game_uuid=record.game_uuid, move_number=move.move_number,
        position=move.fen_before, explanation=explanation,
    )


def _severity_by_share(games: int, total: int) -> Severity:
    return Severity.MAJOR if games > total / 2 else Severity.MODERATE


# --- Detectors ---

def detect_tactical_patterns(analyses: List[AnalysisRecord], settings: "AnalysisSettings") -> List[MistakePattern]:
    hits = []
    for record in analyses:
        blunder = next((m for m in player_moves(record.moves) if m.classification == MoveClassification.BLUNDER), None)
        if blunder is not None:
            hits.append((record, blunder))
    if len(hits) < MIN_PATTERN_FREQUENCY:
        return []
    return [MistakePattern(
        type=PatternType.TACTICAL,
        description="Frequent tactical blunders losing material",
        frequency=len(hits),
        severity=_severity_by_share(len(hits), len(analyses)),
        examples=[
            _example(record, move, f"Tactical blunder: {move.san}. Better was {move.best_move or 'alternative move'}")
            for record, move in hits[:MAX_PATTERN_EXAMPLES]
        ],
    )]


def detect_positional_patterns(analyses: List[AnalysisRecord], settings: "AnalysisSettings") -> List[MistakePattern]:
    hits = []
    for record in analyses:
        mistake = next((m for m in player_moves(record.moves) if m.classification == MoveClassification.MISTAKE), None)
        if mistake is not None:
            hits.append((record, mistake))
    if len(hits) < MIN_PATTERN_FREQUENCY:
        return []
    return [MistakePattern(
        type=PatternType.POSITIONAL,
        description="Recurring positional errors that give away the evaluation",
        frequency=len(hits),
        severity=Severity.MODERATE if len(hits) > len(analyses) / 2 else Severity.MINOR,
        examples=[
            _example(record, move, f"Positional mistake: {move.san}. Better was {move.best_move or 'alternative move'}")
            for record, move in hits[:MAX_PATTERN_EXAMPLES]
        ],
    )]


def detect_opening_patterns(analyses: List[AnalysisRecord], settings: "AnalysisSettings") -> List[MistakePattern]:
    hits = []
    for record in analyses:
        errors = _serious_errors(player_moves(record.moves)[:settings.opening_window_moves])
        if errors:
            hits.append((record, errors[0]))
    if len(hits) < MIN_PATTERN_FREQUENCY:
        return []
    return [MistakePattern(
        type=PatternType.OPENING,
        description="Consistent opening mistakes",
        frequency=len(hits),
        severity=_severity_by_share(len(hits), len(analyses)),
        examples=[
            _example(record, move, f"Opening mistake: {move.san} in {record.opening_name or 'unknown opening'}")
            for record, move in hits[:MAX_PATTERN_EXAMPLES]
        ],
    )]


def detect_endgame_patterns(analyses: List[AnalysisRecord], settings: "AnalysisSettings") -> List[MistakePattern]:
    hits = []
    for record in analyses:
        errors = _serious_errors(player_moves(record.moves)[-settings.endgame_window_moves:])
        if errors:
            hits.append((record, errors[0]))
    if len(hits) < MIN_PATTERN_FREQUENCY:
        return []
    return [MistakePattern(
        type=PatternType.ENDGAME,
        description="Endgame technique issues",
        frequency=len(hits),
        severity=Severity.MODERATE,
        examples=[
            _example(record, move, f"Endgame mistake: {move.san} in {record.endgame_type or 'complex endgame'}")
            for record, move in hits[:MAX_PATTERN_EXAMPLES]
        ],
    )]


def detect_time_management_patterns(analyses: List[AnalysisRecord], settings: "AnalysisSettings") -> List[MistakePattern]:
    """Games where more than two serious errors fell in the player's final moves."""
    hits = []
    for record in analyses:
        errors = _serious_errors(player_moves(record.moves)[-settings.time_pressure_window_moves:])
        if len(errors) > 2:
            hits.append((record, errors[0]))
    if len(hits) < MIN_PATTERN_FREQUENCY:
        return []
    return [MistakePattern(
        type=PatternType.TIME_MANAGEMENT,
        description="Mistakes in time pressure situations",
        frequency=len(hits),
        severity=Severity.MODERATE,
        examples=[
            _example(record, move, f"Time pressure mistake: {move.san}")
            for record, move in hits[:MAX_PATTERN_EXAMPLES]
        ],
    )]


PatternDetectorFunc = Callable[[List[AnalysisRecord], "AnalysisSettings"], List[MistakePattern]]

DETECTORS: List[PatternDetectorFunc] = [
    detect_tactical_patterns,
    detect_positional_patterns,
    detect_opening_patterns,
    detect_endgame_patterns,
    detect_time_management_patterns,
]


def detect_patterns(analyses: List[AnalysisRecord], settings: "AnalysisSettings") -> List[MistakePattern]:
    """Runs every detector; only patterns seen in at least two games are returned."""
    patterns: List[MistakePattern] = []
    for detector in DETECTORS:
        patterns.extend(detector(analyses, settings))
    patterns = [p for p in patterns if p.frequency >= MIN_PATTERN_FREQUENCY]
    logger.debug("Cross-game patterns detected.", games=len(analyses), patterns=[p.type.value for p in patterns])
    return patterns


# --- Improvement areas ---

def _tactical_area(patterns: List[MistakePattern]) -> ImprovementArea:
    return ImprovementArea(
        category="Tactical Skills",
        description="Improve tactical awareness and calculation",
        priority=Priority.HIGH if any(p.severity == Severity.MAJOR for p in patterns) else Priority.MEDIUM,
        action_items=[
            "Solve 15-20 tactical puzzles daily",
            "Focus on pattern recognition",
            "Practice calculating forced variations",
            "Study common tactical motifs",
        ],
        study_resources=["Chess.com tactics trainer", "Chesstempo tactical problems", "CT-ART tactical software"],
    )


def _positional_area(patterns: List[MistakePattern]) -> ImprovementArea:
    return ImprovementArea(
        category="Positional Understanding",
        description="Develop better positional judgment",
        priority=Priority.MEDIUM,
        action_items=[
            "Study classic positional games",
            "Learn pawn structure principles",
            "Practice piece coordination",
            "Understand weak and strong squares",
        ],
        study_resources=[
            "My System by Aron Nimzowitsch",
            "Positional Play by Mark Dvoretsky",
            "Chess Strategy for Club Players by Herman Grooten",
        ],
    )


def _opening_area(patterns: List[MistakePattern]) -> ImprovementArea:
    return ImprovementArea(
        category="Opening Knowledge",
        description="Build a solid opening repertoire",
        priority=Priority.MEDIUM,
        action_items=[
            "Choose consistent opening systems",
            "Study opening principles",
            "Learn key pawn structures",
            "Understand piece development priorities",
        ],
        study_resources=["Opening Explorer on Chess.com", "Modern Chess Openings (MCO)", "YouTube opening videos"],
    )


def _endgame_area(patterns: List[MistakePattern]) -> ImprovementArea:
    return ImprovementArea(
        category="Endgame Technique",
        description="Master fundamental endgames",
        priority=Priority.HIGH,
        action_items=[
            "Study basic checkmate patterns",
            "Learn key pawn endgames",
            "Practice rook endgames",
            "Understand opposition and zugzwang",
        ],
        study_resources=[
            "Dvoretsky's Endgame Manual",
            "Chess.com endgame trainer",
            "Silman's Complete Endgame Course",
        ],
    )


_AREA_BUILDERS: Dict[PatternType, Callable[[List[MistakePattern]], ImprovementArea]] = {
    PatternType.TACTICAL: _tactical_area,
    PatternType.POSITIONAL: _positional_area,
    PatternType.OPENING: _opening_area,
    PatternType.ENDGAME: _endgame_area,
}


def generate_improvement_areas(patterns: List[MistakePattern]) -> List[ImprovementArea]:
    """One improvement area per pattern family present, highest priority first."""
    areas: List[ImprovementArea] = []
    for pattern_type, builder in _AREA_BUILDERS.items():
        matching = [p for p in patterns if p.type == pattern_type]
        if matching:
            areas.append(builder(matching))
    return sorted(areas, key=lambda area: _PRIORITY_ORDER[area.priority], reverse=True)
