# chess_insights/core/move_classifier.py
"""
Classifies a played move from its evaluation drop.

`MoveClassifier` runs a short chain of heuristics. Each heuristic may settle
the classification or leave it to the next one, so special cases (the played
move *is* the best move) take priority over the plain threshold ladder.
"""
from dataclasses import dataclass
from typing import List, Optional, Protocol, TYPE_CHECKING

from chess_insights.types import MoveClassification

if TYPE_CHECKING:
    from chess_insights.config.settings import ClassificationThresholdsModel


@dataclass(frozen=True, slots=True)
class ClassificationInput:
    played_san: str
    best_san: Optional[str]
    evaluation_drop: float
    thresholds: "ClassificationThresholdsModel"


class Heuristic(Protocol):
    """A single rule in the classification chain. Returns None to defer."""
    def apply(self, data: ClassificationInput) -> Optional[MoveClassification]: ...


class BestMoveHeuristic:
    """Playing the best move, or something indistinguishable from it, is excellent."""
    def apply(self, data: ClassificationInput) -> Optional[MoveClassification]:
        if data.best_san is not None and data.played_san == data.best_san:
            return MoveClassification.EXCELLENT
        if data.evaluation_drop <= data.thresholds.excellent:
            return MoveClassification.EXCELLENT
        return None


class ThresholdHeuristic:
    """The baseline: compare the drop against the configured thresholds."""
    def apply(self, data: ClassificationInput) -> Optional[MoveClassification]:
        thresholds = data.thresholds
        drop = data.evaluation_drop
        if drop <= thresholds.good:
            return MoveClassification.GOOD
        if drop <= thresholds.inaccuracy:
            return MoveClassification.INACCURACY
        if drop <= thresholds.mistake:
            return MoveClassification.MISTAKE
        return MoveClassification.BLUNDER


class MoveClassifier:
    """A stateless classifier that runs a chain of heuristics over a single move."""

    def __init__(self, thresholds: "ClassificationThresholdsModel"):
        self._thresholds = thresholds
        self._heuristic_chain: List[Heuristic] = [
            BestMoveHeuristic(),
            ThresholdHeuristic(),
        ]

    def classify(self, played_san: str, best_san: Optional[str], evaluation_drop: float) -> MoveClassification:
        data = ClassificationInput(played_san, best_san, evaluation_drop, self._thresholds)
        for heuristic in self._heuristic_chain:
            result = heuristic.apply(data)
            if result is not None:
                return result
        # ThresholdHeuristic always decides; this is unreachable with the default chain.
        return MoveClassification.BLUNDER
