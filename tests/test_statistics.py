# tests/test_statistics.py
from chess_insights.statistics import StatKey, StatisticsTracker


def test_counts_accumulate_and_reset():
    tracker = StatisticsTracker()

    tracker.add_stat(StatKey.GAMES_FETCHED, 4)
    tracker.add_stat(StatKey.GAMES_FETCHED)

    assert tracker.get(StatKey.GAMES_FETCHED) == 5
    tracker.reset()
    assert tracker.get(StatKey.GAMES_FETCHED) == 0


def test_cache_hit_ratio():
    tracker = StatisticsTracker()
    assert tracker.cache_hit_ratio is None

    tracker.add_stat(StatKey.ANALYSES_FROM_CACHE, 3)
    tracker.add_stat(StatKey.ANALYSES_COMPUTED, 1)

    assert tracker.cache_hit_ratio == 0.75


def test_snapshot_lists_only_nonzero_counters_in_order():
    tracker = StatisticsTracker()
    tracker.add_stat(StatKey.SUMMARY_FALLBACKS)
    tracker.add_stat(StatKey.GAMES_FETCHED, 2)

    assert list(tracker.snapshot().items()) == [("games collected", 2), ("rule-based summaries", 1)]


def test_log_summary_does_not_raise():
    tracker = StatisticsTracker()
    tracker.add_stat(StatKey.SKIPPED_BAD_PGN)

    tracker.log_summary("bob")
