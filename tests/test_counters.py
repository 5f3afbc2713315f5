from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone

import pytest
from django.db import connection

from echo.clock import utc_day
from echo.counters import DailyCounterStore
from echo.models import DailyMessageCounter


@pytest.mark.django_db
def test_first_increment_creates_row(counters: DailyCounterStore, alice) -> None:
    day = date(2025, 3, 10)
    assert not DailyMessageCounter.objects.filter(user=alice).exists()

    allowed, remaining = counters.try_increment(alice, day, 5)

    assert (allowed, remaining) == (True, 4)
    assert DailyMessageCounter.objects.get(user=alice, date=day).count == 1


@pytest.mark.django_db
def test_exhausted_quota_rejects_without_writing(counters: DailyCounterStore, alice) -> None:
    day = date(2025, 3, 10)
    results = [counters.try_increment(alice, day, 2) for _ in range(4)]

    assert results == [(True, 1), (True, 0), (False, 0), (False, 0)]
    assert counters.count(alice, day) == 2


@pytest.mark.django_db
def test_zero_limit_never_creates_row(counters: DailyCounterStore, alice) -> None:
    assert counters.try_increment(alice, date(2025, 3, 10), 0) == (False, 0)
    assert DailyMessageCounter.objects.count() == 0


@pytest.mark.django_db
def test_uncapped_increment_records_usage(counters: DailyCounterStore, alice) -> None:
    day = date(2025, 3, 10)
    for _ in range(7):
        assert counters.try_increment(alice, day, None) == (True, None)
    assert counters.count(alice, day) == 7
    assert counters.remaining(alice, day, 5) == 0


@pytest.mark.django_db
def test_counters_are_keyed_by_utc_day(counters: DailyCounterStore, alice) -> None:
    late = datetime(2025, 3, 10, 23, 59, 59, tzinfo=timezone.utc)
    early = datetime(2025, 3, 11, 0, 0, 1, tzinfo=timezone.utc)

    counters.try_increment(alice, utc_day(late), 1)
    allowed, _ = counters.try_increment(alice, utc_day(early), 1)

    assert allowed
    assert DailyMessageCounter.objects.filter(user=alice).count() == 2


@pytest.mark.django_db
def test_counters_are_per_user(counters: DailyCounterStore, alice, bob) -> None:
    day = date(2025, 3, 10)
    counters.try_increment(alice, day, 1)
    assert counters.try_increment(bob, day, 1) == (True, 0)


@pytest.mark.django_db
def test_free_tier_remaining_uses_clock_day(counters: DailyCounterStore, clock, alice, settings) -> None:
    settings.ECHO = {"FREE_TIER_DAILY_LIMIT": 5}
    counters.try_increment(alice, counters.today(), None)
    counters.try_increment(alice, counters.today(), None)
    assert counters.free_tier_remaining(alice) == 3

    clock.advance(days=1)
    assert counters.free_tier_remaining(alice) == 5


@pytest.mark.django_db(transaction=True)
def test_concurrent_increments_never_exceed_limit(counters: DailyCounterStore, alice) -> None:
    day = date(2025, 3, 10)
    limit = 3

    def attempt(_):
        try:
            return counters.try_increment(alice.pk, day, limit)[0]
        finally:
            connection.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(attempt, range(10)))

    assert outcomes.count(True) == limit
    assert outcomes.count(False) == 10 - limit
    assert counters.count(alice, day) == limit
