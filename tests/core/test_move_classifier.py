# tests/core/test_move_classifier.py
import pytest

from chess_insights.config.settings import ClassificationThresholdsModel
from chess_insights.core.move_classifier import MoveClassifier
from chess_insights.types import MoveClassification


@pytest.fixture
def classifier() -> MoveClassifier:
    return MoveClassifier(ClassificationThresholdsModel())


@pytest.mark.parametrize("drop, expected", [
    (0, MoveClassification.EXCELLENT),
    (5, MoveClassification.EXCELLENT),
    (6, MoveClassification.GOOD),
    (15, MoveClassification.GOOD),
    (16, MoveClassification.INACCURACY),
    (35, MoveClassification.INACCURACY),
    (36, MoveClassification.MISTAKE),
    (80, MoveClassification.MISTAKE),
    (81, MoveClassification.BLUNDER),
    (900, MoveClassification.BLUNDER),
])
def test_classify_by_threshold(classifier, drop, expected):
    assert classifier.classify("a3", "e4", drop) == expected


def test_playing_the_best_move_is_excellent_regardless_of_drop(classifier):
    assert classifier.classify("Qxf7#", "Qxf7#", 120.0) == MoveClassification.EXCELLENT


def test_custom_thresholds():
    thresholds = ClassificationThresholdsModel(excellent=0, good=10, inaccuracy=20, mistake=30)
    classifier = MoveClassifier(thresholds)

    assert classifier.classify("a3", "e4", 25) == MoveClassification.MISTAKE
    assert classifier.classify("a3", "e4", 31) == MoveClassification.BLUNDER


def test_unsorted_thresholds_are_rejected():
    with pytest.raises(ValueError):
        ClassificationThresholdsModel(excellent=50, good=15, inaccuracy=35, mistake=80)
