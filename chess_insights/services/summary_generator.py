# chess_insights/services/summary_generator.py
"""
Implementations of the `SummaryGenerator` protocol.

* `AnthropicSummaryGenerator` asks a Claude model for a coaching summary in a
  fixed JSON shape and validates the reply into a `GameSummary`.
* `RuleBasedSummaryGenerator` builds the summary from the game statistics
  alone. It never fails and is also what the pipeline falls back to.
"""

import asyncio
import json
import re
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import anthropic
import structlog
from pydantic import ValidationError

from chess_insights.core.fallback_summary import generate_fallback_summary
from chess_insights.exceptions import SummaryGenerationError
from chess_insights.types import (CommonPattern, GameRecord, GameStatistics, GameSummary, ImprovementPlan,
                                  MistakeExample, MoveClassification, PlayerColor)

if TYPE_CHECKING:
    from chess_insights.config.settings import AnalysisSettings, SummarySettings

logger = structlog.get_logger(__name__)

_CODE_FENCE_RE = re.compile(r"```(?:json)?\n?")

_PROMPT_TEMPLATE = """You are a master chess coach analyzing a chess game. Please provide a comprehensive analysis with specific examples.

GAME DATA:
- PGN: {pgn}
- Player Color: {color}
- Accuracy: {accuracy:.1f}%
- Blunders: {blunders}
- Mistakes: {mistakes}
- Inaccuracies: {inaccuracies}
{opening_line}{errors_section}
Please provide your analysis in the following JSON format:
{{
  "summary": "A 2-3 sentence overview of the game and the player's performance",
  "keyMoments": ["Description of 3-4 critical moments in the game"],
  "strengths": ["2-3 specific things the player did well"],
  "weaknesses": ["2-3 specific areas where the player struggled"],
  "advice": ["3-4 actionable pieces of advice for improvement"],
  "improvementPlan": {{
    "immediate": ["2-3 things to focus on in the next game"],
    "shortTerm": ["2-3 study goals for the next 1-2 weeks"],
    "longTerm": ["2-3 skills to develop over 1-3 months"]
  }},
  "mistakeExamples": [
    {{
      "moveNumber": 15,
      "move": "Qxd4",
      "type": "blunder",
      "explanation": "Hangs the queen to Nf6+",
      "betterMove": "Qd2",
      "pattern": "Hanging piece"
    }}
  ],
  "commonPatterns": [
    {{
      "pattern": "Tactical oversight",
      "description": "Frequently missing opponent's threats and tactics",
      "frequency": 3
    }}
  ]
}}

Analyze the ERROR EXAMPLES to identify patterns. Be specific, encouraging, and instructive. Return ONLY valid JSON without any markdown formatting or code blocks."""


def build_summary_prompt(game: GameRecord, player_color: PlayerColor, statistics: GameStatistics) -> str:
    errors_section = ""
    if statistics.mistake_examples:
        lines = [
            f"- Move {m.move_number}. {m.move} ({m.type.value}) - Better was {m.best_move}"
            for m in statistics.mistake_examples
        ]
        errors_section = "\nERROR EXAMPLES:\n" + "\n".join(lines) + "\n"
    return _PROMPT_TEMPLATE.format(
        pgn=game.pgn,
        color=player_color.value,
        accuracy=statistics.accuracy,
        blunders=statistics.blunders,
        mistakes=statistics.mistakes,
        inaccuracies=statistics.inaccuracies,
        opening_line=f"- Opening: {statistics.opening_name}\n" if statistics.opening_name else "",
        errors_section=errors_section,
    )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item]


def _parse_mistake_examples(raw: Any, statistics: GameStatistics, game_uuid: str) -> List[MistakeExample]:
    """Maps the model's examples onto `MistakeExample`, dropping entries that do not fit."""
    if not isinstance(raw, list):
        return []
    positions = {(m.move_number, m.move): m.position for m in statistics.mistake_examples}
    examples: List[MistakeExample] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            move_number = int(item.get("moveNumber", 0))
            move = str(item.get("move", ""))
            examples.append(MistakeExample(
                move_number=move_number,
                move=move,
                type=MoveClassification(item.get("type")),
                position=positions.get((move_number, move), ""),
                best_move=str(item.get("betterMove") or ""),
                game_uuid=game_uuid,
                explanation=str(item.get("explanation") or ""),
                pattern=item.get("pattern"),
            ))
        except (TypeError, ValueError):
            logger.debug("Ignoring malformed mistake example in generated summary.", item=item)
    return examples


def _parse_common_patterns(raw: Any) -> List[CommonPattern]:
    if not isinstance(raw, list):
        return []
    patterns: List[CommonPattern] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            patterns.append(CommonPattern(
                pattern=str(item["pattern"]),
                description=str(item.get("description", "")),
                frequency=int(item.get("frequency", 1)),
            ))
        except (KeyError, TypeError, ValueError):
            logger.debug("Ignoring malformed pattern in generated summary.", item=item)
    return patterns


def parse_summary_response(text: str, statistics: GameStatistics, game_uuid: str) -> GameSummary:
    """
    Parses the model's JSON reply, tolerating a surrounding Markdown code fence.

    Raises:
        SummaryGenerationError: If the reply is not a JSON object.
    """
    cleaned = _CODE_FENCE_RE.sub("", text).strip()
    try:
        data: Dict[str, Any] = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise SummaryGenerationError(f"Summary reply is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SummaryGenerationError("Summary reply is not a JSON object.")

    plan = data.get("improvementPlan") if isinstance(data.get("improvementPlan"), dict) else {}
    try:
        return GameSummary(
            summary=str(data.get("summary") or "Analysis completed."),
            key_moments=_string_list(data.get("keyMoments")),
            strengths=_string_list(data.get("strengths")),
            weaknesses=_string_list(data.get("weaknesses")),
            advice=_string_list(data.get("advice")),
            improvement_plan=ImprovementPlan(
                immediate=_string_list(plan.get("immediate")),
                short_term=_string_list(plan.get("shortTerm")),
                long_term=_string_list(plan.get("longTerm")),
            ),
            mistake_examples=_parse_mistake_examples(data.get("mistakeExamples"), statistics, game_uuid),
            common_patterns=_parse_common_patterns(data.get("commonPatterns")),
        )
    except ValidationError as e:
        raise SummaryGenerationError(f"Summary reply does not fit the summary model: {e}") from e


class AnthropicSummaryGenerator:
    """Generates game summaries with the Anthropic Messages API."""

    def __init__(self, settings: "SummarySettings", client: Optional[anthropic.AsyncAnthropic] = None):
        if client is None and not settings.api_key:
            raise ValueError("An API key is required for generated summaries.")
        self._settings = settings
        self._client = client or anthropic.AsyncAnthropic(api_key=settings.api_key)

    async def summarize(self, game: GameRecord, player_color: PlayerColor, statistics: GameStatistics) -> GameSummary:
        """
        Raises:
            SummaryGenerationError: On any API, timeout or parsing failure.
        """
        prompt = build_summary_prompt(game, player_color, statistics)
        try:
            message = await asyncio.wait_for(
                self._client.messages.create(
                    model=self._settings.model,
                    max_tokens=self._settings.max_tokens,
                    temperature=self._settings.temperature,
                    messages=[{"role": "user", "content": prompt}],
                ),
                timeout=self._settings.timeout_seconds,
            )
        except anthropic.APIError as e:
            raise SummaryGenerationError(f"Summary request failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise SummaryGenerationError(f"Summary request timed out after {self._settings.timeout_seconds}s.") from e

        text = "".join(block.text for block in message.content if getattr(block, "type", None) == "text")
        if not text.strip():
            raise SummaryGenerationError("Summary reply contained no text.")
        logger.debug("Generated summary received.", game_uuid=game.uuid, chars=len(text))
        return parse_summary_response(text, statistics, game.uuid)


class RuleBasedSummaryGenerator:
    """Deterministic summaries computed from the statistics alone."""

    def __init__(self, settings: "AnalysisSettings"):
        self._seed = settings.fallback_seed

    async def summarize(self, game: GameRecord, player_color: PlayerColor, statistics: GameStatistics) -> GameSummary:
        return generate_fallback_summary(game.uuid, statistics, seed=self._seed)
