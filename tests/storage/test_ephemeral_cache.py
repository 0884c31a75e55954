# tests/storage/test_ephemeral_cache.py
from datetime import datetime, timezone

import pytest

from chess_insights.config.settings import CacheSettings
from chess_insights.storage.ephemeral_cache import EphemeralCache
from chess_insights.types import ProfileSummary

# 2024-03-20 12:00 UTC; March 2024 is the "current" month for these tests.
NOW = datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc).timestamp()


class FakeClock:
    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> EphemeralCache:
    return EphemeralCache(CacheSettings(), clock=clock)


def test_current_month_batch_expires_after_short_ttl(cache, clock, make_game):
    games = [make_game("g1")]
    cache.put_monthly_batch("bob", 2024, 3, games)

    clock.advance(299)
    assert cache.get_monthly_batch("bob", 2024, 3) == games

    clock.advance(1)
    assert cache.get_monthly_batch("bob", 2024, 3) is None


def test_past_month_batch_uses_long_ttl(cache, clock, make_game):
    cache.put_monthly_batch("bob", 2024, 2, [make_game("g1", month=2)])

    clock.advance(3600)
    assert cache.get_monthly_batch("bob", 2024, 2) is not None

    clock.advance(86400 - 3600)
    assert cache.get_monthly_batch("bob", 2024, 2) is None


def test_ttl_class_is_decided_when_read(cache, clock):
    # Stored while March is current; read after the month has rolled over.
    cache.put_monthly_batch("bob", 2024, 3, [])
    clock.advance(12 * 86400)

    assert cache.monthly_ttl(2024, 3) == 86400
    assert cache.get_monthly_batch("bob", 2024, 3) is None


def test_empty_batch_is_a_hit(cache):
    cache.put_monthly_batch("bob", 2024, 1, [])

    assert cache.get_monthly_batch("bob", 2024, 1) == []
    assert cache.get_monthly_batch("bob", 2023, 12) is None


def test_usernames_are_case_insensitive(cache):
    cache.put_monthly_batch("Bob", 2024, 1, [])
    cache.put_profile("BOB", ProfileSummary(username="bob"))

    assert cache.get_monthly_batch("bOB", 2024, 1) == []
    assert cache.get_profile("bob").username == "bob"


def test_profile_ttl(cache, clock):
    cache.put_profile("bob", ProfileSummary(username="bob", followers=3))

    clock.advance(3599)
    assert cache.get_profile("bob").followers == 3

    clock.advance(1)
    assert cache.get_profile("bob") is None
    assert cache.stats().profile_count == 0


def test_returned_batch_is_a_copy(cache, make_game):
    cache.put_monthly_batch("bob", 2024, 1, [make_game("g1")])

    cache.get_monthly_batch("bob", 2024, 1).clear()

    assert len(cache.get_monthly_batch("bob", 2024, 1)) == 1


def test_clear_for_one_player(cache):
    cache.put_monthly_batch("bob", 2024, 1, [])
    cache.put_monthly_batch("bob", 2024, 2, [])
    cache.put_monthly_batch("alice", 2024, 1, [])
    cache.put_profile("bob", ProfileSummary(username="bob"))

    cache.clear_monthly_batches("Bob")
    cache.clear_profiles("Bob")

    stats = cache.stats()
    assert stats.monthly_batch_count == 1
    assert stats.profile_count == 0
    assert cache.get_monthly_batch("alice", 2024, 1) == []


def test_clear_everything(cache):
    cache.put_monthly_batch("bob", 2024, 1, [])
    cache.put_profile("alice", ProfileSummary(username="alice"))

    cache.clear_monthly_batches()
    cache.clear_profiles()

    assert cache.stats().monthly_batch_count == 0
    assert cache.stats().profile_count == 0


def test_archive_months_expire_but_stay_available_as_stale(cache, clock):
    cache.put_archive_months("Bob", [(2024, 1), (2024, 3), (2024, 1)])
    assert cache.get_archive_months("bob") == [(2024, 3), (2024, 1)]

    clock.advance(300)

    assert cache.get_archive_months("bob") is None
    assert cache.get_archive_months("bob", allow_stale=True) == [(2024, 3), (2024, 1)]


def test_cached_months_lists_batches_for_one_player(cache):
    cache.put_monthly_batch("bob", 2024, 1, [])
    cache.put_monthly_batch("Bob", 2024, 3, [])
    cache.put_monthly_batch("alice", 2024, 2, [])

    assert cache.cached_months("BOB") == [(2024, 3), (2024, 1)]


def test_clear_archive_months(cache):
    cache.put_archive_months("bob", [(2024, 3)])
    cache.put_archive_months("alice", [(2024, 3)])

    cache.clear_archive_months("bob")

    assert cache.get_archive_months("bob") is None
    assert cache.get_archive_months("alice") == [(2024, 3)]
