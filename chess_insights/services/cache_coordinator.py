# chess_insights/services/cache_coordinator.py
"""
Provides the single entry point to every cache tier.

`CacheCoordinator` decides which tier is consulted for what:

* The list of months a player has archives for, monthly game lists and
  player profiles are served from the `EphemeralCache` while fresh, and
  fetched from the game source otherwise. Fetched games are also written to
  the durable store, which backs the month list and the monthly games when
  the source is down.
* Game analyses are memoized in the durable store. `resolve_analyses` looks
  them up in bulk, computes only the misses, and writes every new analysis
  through immediately, so an interrupted run never loses finished work.

A durable write that fails is logged and ignored: the caller still receives
its data and the next run simply recomputes. Errors from the compute callback
are never hidden, and neither are game source errors, except for the month
list when there is a local substitute for it.
"""

import asyncio
from typing import Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

import structlog

from chess_insights.exceptions import PlayerNotFoundError, SourceUnavailableError, StorageError
from chess_insights.statistics import StatKey
from chess_insights.types import (AnalysisComputer, AnalysisRecord, CacheStats, GameRecord,
                                  GamesFetcher, MonthsFetcher, ProfileFetcher, ProfileSummary)
from chess_insights.utils import metrics

if TYPE_CHECKING:
    from chess_insights.statistics import StatisticsTracker
    from chess_insights.storage.ephemeral_cache import EphemeralCache
    from chess_insights.types import DurableStore

logger = structlog.get_logger(__name__)


class CacheCoordinator:
    """
    Façade over the durable store and the ephemeral cache.

    Constructed once per process and used as an async context manager, which
    opens and closes the durable store.
    """

    def __init__(
        self,
        store: "DurableStore",
        ephemeral: "EphemeralCache",
        tracker: Optional["StatisticsTracker"] = None,
        analysis_concurrency: int = 1,
    ):
        """
        Args:
            store: The durable game and analysis store.
            ephemeral: The in-memory TTL cache.
            tracker: Optional run statistics; durable write failures are counted there.
            analysis_concurrency: How many analysis misses may be computed at
                once. With 1, misses are computed strictly one after another in
                input order.
        """
        self._store = store
        self._ephemeral = ephemeral
        self._tracker = tracker
        self._analysis_concurrency = max(1, analysis_concurrency)

    async def __aenter__(self) -> "CacheCoordinator":
        await self._store.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        await self._store.close()

    def _record_write_failure(self, kind: str, error: Exception, **context) -> None:
        logger.warning("Durable write failed; continuing without it.", kind=kind, error=str(error), **context)
        metrics.CACHE_WRITE_FAILURES_TOTAL.labels(kind=kind).inc()
        if self._tracker is not None:
            self._tracker.add_stat(StatKey.STORAGE_WRITE_FAILURES)

    # --- Games ---

    async def fetch_monthly_games(
        self, username: str, year: int, month: int, external_fetch: GamesFetcher
    ) -> List[GameRecord]:
        """
        Returns the games one player finished in one calendar month.

        Served from the ephemeral cache while fresh. On a miss, `external_fetch`
        is awaited, and its result is cached in memory and persisted durably.
        `external_fetch` takes no arguments; callers bind username, year and
        month beforehand, e.g. with `functools.partial(source.fetch_month, ...)`.

        Raises:
            Whatever `external_fetch` raises, unmodified.
        """
        cached = self._ephemeral.get_monthly_batch(username, year, month)
        if cached is not None:
            logger.debug("Monthly games served from cache.", username=username.lower(), year=year, month=month, count=len(cached))
            return cached

        games = await external_fetch()
        self._ephemeral.put_monthly_batch(username, year, month, games)
        try:
            await self._store.put_games(games)
        except StorageError as e:
            self._record_write_failure("game", e, username=username.lower(), year=year, month=month)
        logger.debug("Monthly games fetched from source.", username=username.lower(), year=year, month=month, count=len(games))
        return games

    async def stored_monthly_games(self, username: str, year: int, month: int) -> List[GameRecord]:
        """Games for one month as last persisted, regardless of how old they are."""
        games = await self._store.get_month_games(username, year, month)
        metrics.CACHE_LOOKUPS_TOTAL.labels(tier="durable", kind="monthly_batch", result="hit" if games else "miss").inc()
        return games

    async def get_archive_months(self, username: str, external_fetch: MonthsFetcher) -> List[Tuple[int, int]]:
        """
        Returns the months the player has games in, newest first.

        A fresh cached list is returned as is. Otherwise `external_fetch` (no
        arguments) is awaited and its result cached. If the source is
        unavailable, the months known locally are used: an expired list,
        months with a cached batch, or months with games in the durable store.

        Raises:
            PlayerNotFoundError: From `external_fetch`, unmodified.
            SourceUnavailableError: If the source failed and no month is known locally.
        """
        cached = self._ephemeral.get_archive_months(username)
        if cached is not None:
            return cached
        try:
            months = await external_fetch()
        except PlayerNotFoundError:
            raise
        except SourceUnavailableError as e:
            known = (
                self._ephemeral.get_archive_months(username, allow_stale=True)
                or self._ephemeral.cached_months(username)
                or await self._store.known_months(username)
            )
            if not known:
                raise
            logger.warning("Month list unavailable, using months known locally.", username=username.lower(), months=len(known), error=str(e))
            return known
        self._ephemeral.put_archive_months(username, months)
        return sorted(set(months), reverse=True)

    async def get_game(self, uuid: str) -> Optional[GameRecord]:
        """Point lookup of a previously fetched game."""
        record = await self._store.get_game(uuid)
        metrics.CACHE_LOOKUPS_TOTAL.labels(tier="durable", kind="game", result="hit" if record else "miss").inc()
        return record

    # --- Profiles ---

    async def get_profile(self, username: str, external_fetch: ProfileFetcher) -> ProfileSummary:
        """Returns the player's profile, fetching it only when the cached copy is missing or stale."""
        cached = self._ephemeral.get_profile(username)
        if cached is not None:
            return cached
        profile = await external_fetch()
        self._ephemeral.put_profile(username, profile)
        return profile

    # --- Analyses ---

    async def _compute_and_store(self, username: str, game_uuid: str, compute: AnalysisComputer) -> Optional[AnalysisRecord]:
        record = await compute(game_uuid)
        if record is None:
            return None
        try:
            await self._store.put_analysis(game_uuid, username, record)
        except StorageError as e:
            self._record_write_failure("analysis", e, game_uuid=game_uuid)
        return record

    async def _compute_concurrently(
        self, username: str, misses: List[str], compute: AnalysisComputer
    ) -> Dict[str, Optional[AnalysisRecord]]:
        semaphore = asyncio.Semaphore(self._analysis_concurrency)

        async def _bounded(game_uuid: str) -> Optional[AnalysisRecord]:
            async with semaphore:
                return await self._compute_and_store(username, game_uuid, compute)

        tasks = [asyncio.create_task(_bounded(game_uuid)) for game_uuid in misses]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return dict(zip(misses, results))

    async def resolve_analyses(
        self, username: str, game_uuids: Sequence[str], compute: AnalysisComputer
    ) -> List[AnalysisRecord]:
        """
        Returns an analysis for every requested game, computing only what is not stored.

        Stored analyses are fetched in one bulk lookup. Each miss is passed to
        `compute` and the result is written to the durable store before the
        next miss starts. `compute` may return None to skip a game; skipped
        games are neither stored nor included in the result.

        Args:
            username: The player the analyses belong to (case-insensitive).
            game_uuids: Games to resolve. Duplicates are resolved once.
            compute: Produces the analysis for one game uuid.

        Returns:
            The analyses, in the order the uuids were given.

        Raises:
            Whatever `compute` raises. Analyses computed before the failure
            have already been persisted.
        """
        name = username.lower()
        ordered = list(dict.fromkeys(game_uuids))
        if not ordered:
            return []

        cached = await self._store.get_analyses_bulk(name, ordered)
        misses = [game_uuid for game_uuid in ordered if game_uuid not in cached]
        metrics.CACHE_LOOKUPS_TOTAL.labels(tier="durable", kind="analysis", result="hit").inc(len(cached))
        metrics.CACHE_LOOKUPS_TOTAL.labels(tier="durable", kind="analysis", result="miss").inc(len(misses))
        logger.info("Analysis cache checked.", username=name, requested=len(ordered), hits=len(cached), misses=len(misses))

        computed: Dict[str, Optional[AnalysisRecord]] = {}
        if self._analysis_concurrency == 1 or len(misses) < 2:
            for game_uuid in misses:
                computed[game_uuid] = await self._compute_and_store(name, game_uuid, compute)
        else:
            computed = await self._compute_concurrently(name, misses, compute)

        resolved: List[AnalysisRecord] = []
        for game_uuid in ordered:
            record = cached.get(game_uuid) or computed.get(game_uuid)
            if record is not None:
                resolved.append(record)
        return resolved

    # --- Maintenance ---

    async def stats(self) -> CacheStats:
        """Record counts for every tier."""
        return CacheStats(durable=await self._store.stats(), ephemeral=self._ephemeral.stats())

    async def clear(self, username: Optional[str] = None) -> None:
        """
        Empties every tier, or only the entries belonging to `username`.

        Raises:
            StorageWriteError: If the durable store could not be cleared.
        """
        self._ephemeral.clear_profiles(username)
        self._ephemeral.clear_monthly_batches(username)
        self._ephemeral.clear_archive_months(username)
        await self._store.clear(username)
        logger.info("Caches cleared.", username=username.lower() if username else "*")
