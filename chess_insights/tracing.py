# chess_insights/tracing.py

"""
tracing
~~~~~~~

Run identifiers and per-stage timing for the analysis log stream.

A run id is bound into structlog's context variables once per player run, so
every event emitted while that run is in flight (including the ones logged by
stages running in other tasks) can be grouped afterwards.
"""

import functools
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CorrelationID:
    run_id: str
    username: str
    game_uuid: Optional[str] = None

    @classmethod
    def start(cls, username: str) -> "CorrelationID":
        """A fresh id for one player run."""
        return cls(run_id=f"run-{uuid.uuid4().hex[:8]}", username=username)

    @property
    def short_id(self) -> str:
        # run-1a2b3c4d or run-1a2b3c4d:5e6f7a8b
        if self.game_uuid:
            return f"{self.run_id}:{self.game_uuid[:8]}"
        return self.run_id


def trace_stage(func: Callable) -> Callable:
    """
    Wraps a stage's `execute(self, context)` and logs how long it took.

    A stage that raises is logged with its elapsed time and the error type
    before the exception propagates unchanged.
    """
    @functools.wraps(func)
    async def wrapper(stage: Any, context: Any, *args: Any, **kwargs: Any) -> Any:
        stage_name = type(stage).__name__
        game = getattr(context, "game", None)
        game_uuid = getattr(game, "uuid", None)
        started = time.perf_counter()
        try:
            result = await func(stage, context, *args, **kwargs)
        except Exception as e:
            logger.debug(
                "Stage failed.", stage=stage_name, game_uuid=game_uuid,
                elapsed_ms=round((time.perf_counter() - started) * 1000, 2), error_type=type(e).__name__,
            )
            raise
        logger.debug(
            "Stage finished.", stage=stage_name, game_uuid=game_uuid,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return result
    return wrapper
