# chess_insights/storage/ephemeral_cache.py
"""
Process-local, time-limited caches for player profiles and monthly game lists.

Expiry is lazy: nothing runs in the background, an entry is checked when it is
read and discarded there if it has outlived its TTL. Which TTL applies to a
monthly batch is decided at read time: the batch for the calendar month that
is current *now* (according to the clock) gets the short lifetime, because new
games may still be added to it; every other month gets the long one.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

import structlog

from chess_insights.types import EphemeralStats, GameRecord, ProfileSummary
from chess_insights.utils import metrics

if TYPE_CHECKING:
    from chess_insights.config.settings import CacheSettings

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]
MonthKey = Tuple[str, int, int]
YearMonth = Tuple[int, int]


@dataclass(frozen=True, slots=True)
class _Entry:
    value: Any
    stored_at: float


class EphemeralCache:
    """Holds profiles, archive month lists and monthly game lists for a bounded time."""

    def __init__(self, settings: "CacheSettings", clock: Clock = time.time):
        """
        Args:
            settings: Supplies the TTLs, in seconds.
            clock: Returns the current time as a POSIX timestamp. Tests inject
                a fake clock to cross TTL boundaries without sleeping.
        """
        self._profile_ttl = settings.profile_ttl_seconds
        self._current_month_ttl = settings.current_month_ttl_seconds
        self._past_month_ttl = settings.past_month_ttl_seconds
        self._archive_list_ttl = settings.archive_list_ttl_seconds
        self._clock = clock
        self._profiles: Dict[str, _Entry] = {}
        self._batches: Dict[MonthKey, _Entry] = {}
        self._archive_lists: Dict[str, _Entry] = {}

    def _is_current_month(self, year: int, month: int, now: float) -> bool:
        today = datetime.fromtimestamp(now, tz=timezone.utc)
        return (year, month) == (today.year, today.month)

    def monthly_ttl(self, year: int, month: int) -> float:
        """The lifetime that applies to the batch for `year`/`month` right now."""
        if self._is_current_month(year, month, self._clock()):
            return self._current_month_ttl
        return self._past_month_ttl

    # --- Profiles ---

    def get_profile(self, username: str) -> Optional[ProfileSummary]:
        key = username.lower()
        entry = self._profiles.get(key)
        if entry is None:
            metrics.CACHE_LOOKUPS_TOTAL.labels(tier="ephemeral", kind="profile", result="miss").inc()
            return None
        if self._clock() - entry.stored_at >= self._profile_ttl:
            del self._profiles[key]
            logger.debug("Cached profile expired.", username=key)
            metrics.CACHE_LOOKUPS_TOTAL.labels(tier="ephemeral", kind="profile", result="expired").inc()
            return None
        metrics.CACHE_LOOKUPS_TOTAL.labels(tier="ephemeral", kind="profile", result="hit").inc()
        return entry.value

    def put_profile(self, username: str, summary: ProfileSummary) -> None:
        self._profiles[username.lower()] = _Entry(summary, self._clock())

    # --- Monthly batches ---

    def get_monthly_batch(self, username: str, year: int, month: int) -> Optional[List[GameRecord]]:
        """
        Returns the cached games for one player and month while they are fresh.

        An empty list is a valid cached value (the player had no games that
        month) and is distinct from None (nothing cached).
        """
        key: MonthKey = (username.lower(), year, month)
        entry = self._batches.get(key)
        if entry is None:
            metrics.CACHE_LOOKUPS_TOTAL.labels(tier="ephemeral", kind="monthly_batch", result="miss").inc()
            return None
        now = self._clock()
        ttl = self._current_month_ttl if self._is_current_month(year, month, now) else self._past_month_ttl
        if now - entry.stored_at >= ttl:
            del self._batches[key]
            logger.debug("Cached monthly batch expired.", username=key[0], year=year, month=month, ttl=ttl)
            metrics.CACHE_LOOKUPS_TOTAL.labels(tier="ephemeral", kind="monthly_batch", result="expired").inc()
            return None
        metrics.CACHE_LOOKUPS_TOTAL.labels(tier="ephemeral", kind="monthly_batch", result="hit").inc()
        return list(entry.value)

    def put_monthly_batch(self, username: str, year: int, month: int, games: List[GameRecord]) -> None:
        self._batches[(username.lower(), year, month)] = _Entry(list(games), self._clock())

    # --- Archive month lists ---

    def get_archive_months(self, username: str, allow_stale: bool = False) -> Optional[List[YearMonth]]:
        """
        Returns the months the player has archives for, newest first.

        With `allow_stale`, an expired list is still returned (and kept); this
        is the fallback when the source cannot be asked for a fresh one.
        """
        key = username.lower()
        entry = self._archive_lists.get(key)
        if entry is None:
            metrics.CACHE_LOOKUPS_TOTAL.labels(tier="ephemeral", kind="archive_list", result="miss").inc()
            return None
        if not allow_stale and self._clock() - entry.stored_at >= self._archive_list_ttl:
            metrics.CACHE_LOOKUPS_TOTAL.labels(tier="ephemeral", kind="archive_list", result="expired").inc()
            return None
        metrics.CACHE_LOOKUPS_TOTAL.labels(tier="ephemeral", kind="archive_list", result="hit").inc()
        return list(entry.value)

    def put_archive_months(self, username: str, months: List[YearMonth]) -> None:
        self._archive_lists[username.lower()] = _Entry(sorted(set(months), reverse=True), self._clock())

    def cached_months(self, username: str) -> List[YearMonth]:
        """Months with a monthly batch held for the player, fresh or not, newest first."""
        name = username.lower()
        return sorted(((year, month) for user, year, month in self._batches if user == name), reverse=True)

    # --- Maintenance ---

    def clear_archive_months(self, username: Optional[str] = None) -> None:
        if username is None:
            self._archive_lists.clear()
        else:
            self._archive_lists.pop(username.lower(), None)


    def clear_profiles(self, username: Optional[str] = None) -> None:
        if username is None:
            self._profiles.clear()
        else:
            self._profiles.pop(username.lower(), None)

    def clear_monthly_batches(self, username: Optional[str] = None) -> None:
        if username is None:
            self._batches.clear()
            return
        name = username.lower()
        for key in [k for k in self._batches if k[0] == name]:
            del self._batches[key]

    def stats(self) -> EphemeralStats:
        """Entry counts, including entries that have expired but not yet been read."""
        return EphemeralStats(profile_count=len(self._profiles), monthly_batch_count=len(self._batches))
