# chess_insights/core/player_profile.py
"""
Aggregates many analyzed games into a `PlayerReport`.

Pure functions only: results and accuracy are summed per time class, the
player's strengths are read off the aggregates, and the cross-game patterns
from `pattern_detector` become weaknesses, improvement areas and advice.
"""

from collections import defaultdict
from typing import Dict, List, Optional, TYPE_CHECKING

from chess_insights.core import pattern_detector
from chess_insights.core.chess_utils import result_outcome
from chess_insights.core.game_statistics import player_moves
from chess_insights.types import (AnalysisRecord, MistakePattern, MoveClassification, PatternType,
                                  PlayerReport, Priority, ProfileSummary, Severity, TimeClassStats)

if TYPE_CHECKING:
    from chess_insights.config.settings import AnalysisSettings

MAX_WEAKNESSES = 3
MAX_PLAYER_RECOMMENDATIONS = 8

_GOOD_CLASSES = (MoveClassification.EXCELLENT, MoveClassification.GOOD)


def calculate_win_rate(analyses: List[AnalysisRecord]) -> float:
    """Share of games won; games without a known result count as not won."""
    if not analyses:
        return 0.0
    wins = sum(1 for record in analyses if result_outcome(record.player_result) == "win")
    return round(wins / len(analyses), 3)


def calculate_average_accuracy(analyses: List[AnalysisRecord]) -> float:
    if not analyses:
        return 0.0
    return round(sum(record.accuracy for record in analyses) / len(analyses), 1)


def calculate_time_class_stats(analyses: List[AnalysisRecord]) -> Dict[str, TimeClassStats]:
    stats: Dict[str, TimeClassStats] = defaultdict(TimeClassStats)
    accuracy_sums: Dict[str, float] = defaultdict(float)
    for record in analyses:
        time_class = record.time_class or "unknown"
        entry = stats[time_class]
        entry.games += 1
        accuracy_sums[time_class] += record.accuracy
        outcome = result_outcome(record.player_result)
        if outcome == "win":
            entry.wins += 1
        elif outcome == "draw":
            entry.draws += 1
        elif outcome == "loss":
            entry.losses += 1

    for time_class, entry in stats.items():
        entry.average_accuracy = round(accuracy_sums[time_class] / entry.games, 1)
    return dict(stats)


def _share_of_good_moves(analyses: List[AnalysisRecord], window: slice) -> float:
    """Mean, over games, of the share of excellent or good moves within `window` of the player's moves."""
    shares = []
    for record in analyses:
        moves = player_moves(record.moves)[window]
        good = sum(1 for m in moves if m.classification in _GOOD_CLASSES)
        shares.append(good / len(moves) if moves else 0.0)
    return sum(shares) / len(shares) if shares else 0.0


def identify_strengths(analyses: List[AnalysisRecord], settings: "AnalysisSettings") -> List[str]:
    if not analyses:
        return []
    strengths: List[str] = []

    average_accuracy = calculate_average_accuracy(analyses)
    if average_accuracy > 70:
        strengths.append("Decent move accuracy")
    if average_accuracy > 80:
        strengths.append("Good move accuracy")
    if average_accuracy > 85:
        strengths.append("High move accuracy")

    opening_share = _share_of_good_moves(analyses, slice(0, settings.opening_window_moves))
    if opening_share > 0.6:
        strengths.append("Reasonable opening play")
    if opening_share > 0.8:
        strengths.append("Solid opening play")

    blunders_per_game = sum(record.count(MoveClassification.BLUNDER) for record in analyses) / len(analyses)
    if blunders_per_game <= 2:
        strengths.append("Generally avoids major blunders")
    if blunders_per_game <= 1:
        strengths.append("Avoids major blunders")

    if _share_of_good_moves(analyses, slice(-settings.time_pressure_window_moves, None)) > 0.7:
        strengths.append("Decent endgame technique")

    if len({record.opening_name or "unknown" for record in analyses}) > 3:
        strengths.append("Varied opening repertoire")

    if not strengths:
        strengths.append("Consistent game participation")
        if average_accuracy > 50:
            strengths.append("Basic chess understanding")
    return strengths


def identify_weaknesses(patterns: List[MistakePattern]) -> List[str]:
    """Descriptions of the most frequent non-minor patterns."""
    significant = [p for p in patterns if p.severity != Severity.MINOR]
    significant.sort(key=lambda p: p.frequency, reverse=True)
    return [p.description for p in significant[:MAX_WEAKNESSES]]


def generate_player_recommendations(report: PlayerReport) -> List[str]:
    """Training advice for the player as a whole, most urgent first."""
    recommendations: List[str] = []

    critical = [area for area in report.improvement_areas if area.priority == Priority.HIGH]
    if critical:
        recommendations.append(f"Priority focus: {critical[0].category}")
        recommendations.extend(critical[0].action_items[:2])

    if report.average_accuracy < 75:
        recommendations.append("Accuracy goal: aim for 80%+ accuracy by slowing down on critical moves")
        recommendations.append("Take 30+ seconds on tactical positions")

    by_type = {p.type: p for p in report.mistake_patterns}
    tactical = by_type.get(PatternType.TACTICAL)
    if tactical is not None and tactical.severity == Severity.MAJOR:
        recommendations.append("Tactical emergency: solve 20+ puzzles daily for 2 weeks")
        recommendations.append("Study basic tactical patterns (pins, forks, skewers)")

    if PatternType.ENDGAME in by_type:
        recommendations.append("Endgame focus: learn basic checkmate patterns")
        recommendations.append("Practice King + Queen vs King and King + Rook vs King")

    opening = by_type.get(PatternType.OPENING)
    if opening is not None and opening.frequency > report.games_analyzed / 3:
        recommendations.append("Opening stability: choose 1-2 openings and stick to them")
        recommendations.append("Learn opening principles before specific variations")

    if report.win_rate < 0.4:
        recommendations.append("Favour solid, safe moves over speculative attacks")
        recommendations.append("Trade pieces when ahead, avoid trades when behind")

    bullet = report.time_class_stats.get("bullet")
    if bullet is not None and bullet.average_accuracy < 70:
        recommendations.append("Bullet: rely on pattern recognition over long calculation")
    blitz = report.time_class_stats.get("blitz")
    if blitz is not None and blitz.average_accuracy < 75:
        recommendations.append("Blitz: practice quick tactical solutions")
    rapid = report.time_class_stats.get("rapid")
    if rapid is not None and rapid.average_accuracy > 85:
        recommendations.append("Rapid is your strongest format; use it to try new ideas")

    if "High move accuracy" in report.strengths:
        recommendations.append("Leverage your accuracy by playing longer time controls")
    if "Solid opening play" in report.strengths:
        recommendations.append("Build on your opening knowledge with middlegame plans")
    if "Avoids major blunders" in report.strengths:
        recommendations.append("Your solid play can frustrate opponents; be patient")

    if not recommendations:
        recommendations.append("Excellent progress! Continue your current training routine")
        recommendations.append("Consider gradually increasing game complexity")
    return recommendations[:MAX_PLAYER_RECOMMENDATIONS]


def build_player_report(
    username: str,
    analyses: List[AnalysisRecord],
    settings: "AnalysisSettings",
    profile: Optional[ProfileSummary] = None,
    cached_count: int = 0,
    computed_count: int = 0,
    skipped_count: int = 0,
) -> PlayerReport:
    """Assembles the full report for one player from their analyzed games."""
    report = PlayerReport(
        username=username.lower(),
        analyses=analyses,
        profile=profile,
        cached_count=cached_count,
        computed_count=computed_count,
        skipped_count=skipped_count,
    )
    if not analyses:
        return report

    report.win_rate = calculate_win_rate(analyses)
    report.average_accuracy = calculate_average_accuracy(analyses)
    report.time_class_stats = calculate_time_class_stats(analyses)
    report.mistake_patterns = pattern_detector.detect_patterns(analyses, settings)
    report.improvement_areas = pattern_detector.generate_improvement_areas(report.mistake_patterns)
    report.strengths = identify_strengths(analyses, settings)
    report.weaknesses = identify_weaknesses(report.mistake_patterns)
    report.recommendations = generate_player_recommendations(report)
    return report
