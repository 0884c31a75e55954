# chess_insights/orchestration/pipeline_factory.py
"""
A factory for creating the per-game analysis pipeline.

This module's sole responsibility is to construct and return the list of
`ProcessingStage` objects in the correct sequential order, so that the
analysis pipeline does not need to know how each stage is wired.
"""

from typing import Any, Dict, List

from chess_insights.orchestration.pipeline_stages import (EvaluationStage, ParseStage, RecordStage,
                                                          StatisticsStage, SummaryStage)
from chess_insights.types import ProcessingStage


def create_pipeline(services: Dict[str, Any]) -> List[ProcessingStage]:
    """
    Builds and returns the list of processing stages in their correct execution order.

    Expected keys: ``pgn_parser_func``, ``move_evaluator``, ``summary_generator``
    (may be None), ``fallback_summary_generator`` and, optionally, ``tracker``.
    """
    evaluator = services["move_evaluator"]
    return [
        ParseStage(services["pgn_parser_func"]),
        EvaluationStage(evaluator),
        StatisticsStage(),
        SummaryStage(
            services.get("summary_generator"),
            services["fallback_summary_generator"],
            services.get("tracker"),
        ),
        RecordStage(evaluator.version),
    ]
