"""
Per-run counters for a player analysis.

The orchestrator resets the tracker when a run starts, the pipeline and cache
coordinator count what they do, and the orchestrator copies the analysis
counts into the report and logs the rest as a summary when the run ends.
"""
from collections import Counter
from enum import Enum
from typing import Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


class StatKey(Enum):
    """Counter names; the value is the label used in the run summary."""
    GAMES_FETCHED = "games collected"
    MONTHS_FETCHED = "monthly archives loaded"
    MONTHS_FAILED = "monthly archives failed"
    MONTHS_FROM_STORE = "monthly archives from durable store"
    ANALYSES_FROM_CACHE = "analyses from cache"
    ANALYSES_COMPUTED = "analyses computed"
    GAMES_SKIPPED_TOTAL = "games skipped"
    SKIPPED_BAD_PGN = "skipped: malformed game record"
    SKIPPED_PLAYER_NOT_IN_GAME = "skipped: player not in game"
    SUMMARY_FALLBACKS = "rule-based summaries"
    STORAGE_WRITE_FAILURES = "durable writes failed"


class StatisticsTracker:
    def __init__(self):
        self.stats: Counter = Counter()

    def reset(self) -> None:
        self.stats.clear()

    def add_stat(self, key: StatKey, count: int = 1) -> None:
        self.stats[key] += count

    def get(self, key: StatKey) -> int:
        return self.stats.get(key, 0)

    @property
    def cache_hit_ratio(self) -> Optional[float]:
        """Share of analyses served from cache, or None before any game was analyzed."""
        served = self.get(StatKey.ANALYSES_FROM_CACHE)
        total = served + self.get(StatKey.ANALYSES_COMPUTED)
        return served / total if total else None

    def snapshot(self) -> Dict[str, int]:
        """Non-zero counters keyed by label, in declaration order."""
        return {key.value: self.stats[key] for key in StatKey if self.stats[key]}

    def log_summary(self, username: str) -> None:
        ratio = self.cache_hit_ratio
        logger.info(
            "Analysis run summary.",
            username=username,
            cache_hit_ratio=None if ratio is None else round(ratio, 3),
            **{label.replace(" ", "_").replace(":", ""): count for label, count in self.snapshot().items()},
        )
