# chess_insights/core/fallback_summary.py
"""
Builds a rule-based `GameSummary` from a game's statistics alone.

This is the summary used when no text generator is configured or when the
generator fails. It follows a "Prepare, Decide, Render" pattern: mistake
examples are first annotated with a pattern name, then the rules pick which
strengths, weaknesses and advice apply, and finally the text is rendered.

Where several phrasings are equally valid, one is chosen with `pick_variant`
keyed on the game, so the same game always produces the same summary.
"""

from collections import defaultdict
from typing import Dict, List, Tuple

from chess_insights.core.phrasing import pick_variant
from chess_insights.types import (CommonPattern, GameStatistics, GameSummary, ImprovementPlan,
                                  MistakeExample, MoveClassification)

MAX_SUMMARY_EXAMPLES = 5
MAX_COMMON_PATTERNS = 3
MAX_EXAMPLES_PER_PATTERN = 3

_PATTERN_DESCRIPTIONS: Dict[str, str] = {
    "Opening blunders": "Critical errors in the opening phase that give away advantage early",
    "Opening inaccuracies": "Imprecise opening moves that deviate from optimal development",
    "Tactical oversight": "Missing opponent threats, combinations, or tactical opportunities",
    "Positional mistakes": "Poor strategic decisions affecting pawn structure or piece placement",
    "Endgame errors": "Technical mistakes in endgame positions requiring precise play",
    "Minor inaccuracies": "Small imprecisions that accumulate over the game",
}

_TYPE_DESCRIPTIONS: Dict[MoveClassification, str] = {
    MoveClassification.BLUNDER: "This move loses significant material or position",
    MoveClassification.MISTAKE: "This move worsens your position noticeably",
    MoveClassification.INACCURACY: "A slightly imprecise move with better alternatives",
}

_KEY_MOMENTS = [
    "Opening phase completed with reasonable development",
    "Middlegame contained several critical decision points",
    "Endgame technique could be improved",
]

_IMPROVEMENT_PLAN = ImprovementPlan(
    immediate=[
        "Review all blunders and mistakes from this game",
        "Identify the tactical patterns you missed",
        "Practice similar positions",
    ],
    short_term=[
        "Solve 10-15 tactical puzzles daily",
        "Study 2-3 master games per week in your opening",
        "Play slower time controls to reduce errors",
    ],
    long_term=[
        "Build a solid opening repertoire with understanding",
        "Study endgame fundamentals systematically",
        "Develop strategic planning and positional play",
    ],
)

# Alternative openings for the performance summary, one tuple per accuracy band.
_SUMMARY_TEMPLATES: Dict[str, Tuple[str, ...]] = {
    "outstanding": (
        "Outstanding performance with {accuracy:.1f}% accuracy. Your play showed excellent "
        "understanding of chess principles with minimal errors.",
        "An outstanding game at {accuracy:.1f}% accuracy. You played with precision and "
        "made very few errors.",
    ),
    "strong": (
        "Strong performance with {accuracy:.1f}% accuracy. You demonstrated good chess "
        "understanding with {errors} significant errors that can be addressed.",
        "A strong game at {accuracy:.1f}% accuracy. {errors} significant errors kept it "
        "from being excellent.",
    ),
    "solid": (
        "Solid effort with {accuracy:.1f}% accuracy. There's room for improvement, "
        "particularly in reducing the {blunders} blunders that affected your position.",
        "A solid effort at {accuracy:.1f}% accuracy. Cutting down the {blunders} blunders "
        "is the quickest way to improve.",
    ),
    "difficult": (
        "This game showed {accuracy:.1f}% accuracy with {errors} critical errors. Focus on "
        "calculation and pattern recognition to improve.",
        "A difficult game at {accuracy:.1f}% accuracy with {errors} critical errors. "
        "Calculation and pattern recognition are the areas to work on.",
    ),
}


# --- 1. PREPARE ---

def identify_mistake_pattern(example: MistakeExample) -> str:
    """Names the kind of error from its type and when in the game it happened."""
    if example.type == MoveClassification.BLUNDER:
        if example.move_number <= 10:
            return "Opening blunders"
        if example.move_number >= 30:
            return "Endgame errors"
        return "Tactical oversight"
    if example.type == MoveClassification.MISTAKE:
        if example.move_number <= 10:
            return "Opening inaccuracies"
        return "Positional mistakes"
    return "Minor inaccuracies"


def describe_pattern(pattern: str) -> str:
    return _PATTERN_DESCRIPTIONS.get(pattern, "Recurring pattern of similar mistakes")


def explain_mistake(example: MistakeExample) -> str:
    base = _TYPE_DESCRIPTIONS.get(example.type, "Suboptimal move")
    return f"{base}. Consider {example.best_move} instead."


def _annotate_examples(examples: List[MistakeExample]) -> List[MistakeExample]:
    return [
        example.model_copy(update={
            "pattern": identify_mistake_pattern(example),
            "explanation": explain_mistake(example),
        })
        for example in examples
    ]


def _group_common_patterns(examples: List[MistakeExample]) -> List[CommonPattern]:
    """Patterns seen at least twice, most frequent first."""
    grouped: Dict[str, List[MistakeExample]] = defaultdict(list)
    for example in examples:
        grouped[example.pattern or "Minor inaccuracies"].append(example)

    patterns = [
        CommonPattern(
            pattern=name,
            description=describe_pattern(name),
            frequency=len(members),
            examples=members[:MAX_EXAMPLES_PER_PATTERN],
        )
        for name, members in grouped.items()
        if len(members) >= 2
    ]
    # sorted() is stable, so equally frequent patterns keep first-seen order.
    return sorted(patterns, key=lambda p: p.frequency, reverse=True)[:MAX_COMMON_PATTERNS]


# --- 2. DECIDE ---

def _accuracy_band(accuracy: float) -> str:
    if accuracy >= 90:
        return "outstanding"
    if accuracy >= 80:
        return "strong"
    if accuracy >= 70:
        return "solid"
    return "difficult"


def _identify_strengths(stats: GameStatistics) -> List[str]:
    strengths: List[str] = []
    if stats.accuracy >= 85:
        strengths.append("Maintained high accuracy throughout the game")
    if stats.blunders == 0:
        strengths.append("No critical blunders - excellent tactical awareness")
    if stats.mistakes <= 1:
        strengths.append("Consistent decision-making with minimal errors")
    if not strengths:
        strengths.append("Completed the game and gained valuable experience")
        strengths.append("Showed fighting spirit throughout")
    return strengths


def _identify_weaknesses(stats: GameStatistics) -> List[str]:
    weaknesses: List[str] = []
    if stats.blunders > 0:
        weaknesses.append(f"{stats.blunders} critical blunder(s) - need to slow down and check for tactics")
    if stats.mistakes > 2:
        weaknesses.append(f"{stats.mistakes} mistakes affecting evaluation - improve positional understanding")
    if stats.inaccuracies > 5:
        weaknesses.append(f"{stats.inaccuracies} inaccuracies - work on finding the most accurate moves")
    if not weaknesses:
        weaknesses.append("Minor calculation oversights in complex positions")
    return weaknesses


def _generate_advice(stats: GameStatistics) -> List[str]:
    advice: List[str] = []
    if stats.blunders > 0:
        advice.append('Before moving, always ask: "What is my opponent threatening?"')
        advice.append("Spend extra time on critical positions where tactics are likely")
    if stats.mistakes > 2:
        advice.append("Study positional chess principles to improve evaluation skills")
        advice.append("Practice identifying weak squares and pieces")
    if stats.accuracy < 80:
        advice.append("Solve tactical puzzles daily to improve pattern recognition")
    advice.append("Review your games with an engine to understand critical moments")
    return advice


# --- 3. RENDER ---

def _render_performance_summary(stats: GameStatistics, game_uuid: str, seed: int) -> str:
    template = pick_variant(_SUMMARY_TEMPLATES[_accuracy_band(stats.accuracy)], game_uuid, seed=seed)
    return template.format(
        accuracy=stats.accuracy,
        errors=stats.blunders + stats.mistakes,
        blunders=stats.blunders,
    )


# --- Public API ---

def generate_fallback_summary(game_uuid: str, stats: GameStatistics, seed: int = 0) -> GameSummary:
    """
    Produces a complete `GameSummary` from `stats` without any external service.

    Args:
        game_uuid: Identifies the game; it keys the choice between phrasings.
        stats: The game's aggregates and mistake examples.
        seed: Changes which phrasings are chosen, for all games at once.

    Returns:
        The summary. Identical inputs always give an identical summary.
    """
    examples = _annotate_examples(stats.mistake_examples)
    return GameSummary(
        summary=_render_performance_summary(stats, game_uuid, seed),
        key_moments=list(_KEY_MOMENTS),
        strengths=_identify_strengths(stats),
        weaknesses=_identify_weaknesses(stats),
        advice=_generate_advice(stats),
        improvement_plan=_IMPROVEMENT_PLAN.model_copy(deep=True),
        mistake_examples=examples[:MAX_SUMMARY_EXAMPLES],
        common_patterns=_group_common_patterns(examples),
    )
