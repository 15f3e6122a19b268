"""Tests for the sliding-window rate limiters."""

import threading

from postcap.captions.rate_limiter import (
    KeyedSlidingWindowLimiter,
    SlidingWindowLimiter,
)


def test_admits_up_to_per_minute_limit_then_rejects():
    """maxPerMinute=2: three calls within one minute yield [True, True, False]."""
    limiter = SlidingWindowLimiter(max_per_minute=2, max_per_hour=10)

    results = [limiter.admit(now=t) for t in (0.0, 1.0, 2.0)]

    assert results == [True, True, False]


def test_nth_request_rejected_for_any_minute_budget():
    """Request number maxPerMinute+1 within the window is the first rejected."""
    for max_per_minute in (1, 3, 7):
        limiter = SlidingWindowLimiter(max_per_minute=max_per_minute, max_per_hour=100)
        results = [limiter.admit(now=float(i)) for i in range(max_per_minute + 1)]
        assert results[:-1] == [True] * max_per_minute
        assert results[-1] is False


def test_rejected_request_does_not_consume_quota():
    limiter = SlidingWindowLimiter(max_per_minute=1, max_per_hour=10)

    assert limiter.admit(now=0.0) is True
    assert limiter.admit(now=10.0) is False
    assert limiter.admit(now=20.0) is False

    status = limiter.status(now=20.0)
    assert status.requests_in_last_minute == 1
    assert status.requests_in_last_hour == 1


def test_short_window_slides():
    """Once the oldest request is a minute old, a new one is admitted."""
    limiter = SlidingWindowLimiter(max_per_minute=2, max_per_hour=10)

    assert limiter.admit(now=0.0)
    assert limiter.admit(now=30.0)
    assert not limiter.admit(now=59.0)
    assert limiter.admit(now=60.0)


def test_hour_limit_applies_across_minutes():
    limiter = SlidingWindowLimiter(max_per_minute=5, max_per_hour=3)

    assert limiter.admit(now=0.0)
    assert limiter.admit(now=120.0)
    assert limiter.admit(now=240.0)
    assert not limiter.admit(now=360.0)
    # First entry ages out of the hour window
    assert limiter.admit(now=3600.0)


def test_prune_drops_entries_older_than_hour():
    limiter = SlidingWindowLimiter(max_per_minute=10, max_per_hour=10)
    limiter.admit(now=0.0)
    limiter.admit(now=100.0)

    status = limiter.status(now=3650.0)

    assert status.requests_in_last_hour == 1
    assert status.requests_in_last_minute == 0


def test_status_reports_counts_and_maxima():
    limiter = SlidingWindowLimiter(max_per_minute=2, max_per_hour=10)
    limiter.admit(now=0.0)

    status = limiter.status(now=1.0)

    assert status.requests_in_last_minute == 1
    assert status.requests_in_last_hour == 1
    assert status.max_requests_per_minute == 2
    assert status.max_requests_per_hour == 10


def test_status_updates_after_each_request():
    limiter = SlidingWindowLimiter(max_per_minute=5, max_per_hour=10)

    limiter.admit(now=0.0)
    assert limiter.status(now=0.5).requests_in_last_minute == 1

    limiter.admit(now=1.0)
    assert limiter.status(now=1.5).requests_in_last_minute == 2


def test_uses_injected_clock_when_now_omitted():
    ticks = iter([0.0, 1.0, 2.0, 3.0])
    limiter = SlidingWindowLimiter(
        max_per_minute=2, max_per_hour=10, clock=lambda: next(ticks)
    )

    assert limiter.admit() is True
    assert limiter.admit() is True
    assert limiter.admit() is False


def test_timestamps_stay_ordered_with_skewed_now():
    limiter = SlidingWindowLimiter(max_per_minute=10, max_per_hour=10)
    limiter.admit(now=100.0)
    limiter.admit(now=50.0)

    assert list(limiter._timestamps) == [100.0, 100.0]


def test_reset_clears_history():
    limiter = SlidingWindowLimiter(max_per_minute=1, max_per_hour=1)
    limiter.admit(now=0.0)

    limiter.reset()

    assert limiter.admit(now=1.0) is True


def test_concurrent_admissions_never_exceed_limit():
    """The lock prevents over-admission under concurrent callers."""
    limiter = SlidingWindowLimiter(
        max_per_minute=25, max_per_hour=1000, clock=lambda: 0.0
    )
    admitted = []
    admitted_lock = threading.Lock()
    barrier = threading.Barrier(50)

    def worker():
        barrier.wait()
        result = limiter.admit()
        with admitted_lock:
            admitted.append(result)

    threads = [threading.Thread(target=worker) for _ in range(50)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert admitted.count(True) == 25
    assert admitted.count(False) == 25


def test_keyed_limiter_partitions_by_key():
    limiter = KeyedSlidingWindowLimiter(max_per_minute=1, max_per_hour=10)

    assert limiter.admit("alice", now=0.0) is True
    assert limiter.admit("alice", now=1.0) is False
    assert limiter.admit("bob", now=1.0) is True

    assert limiter.status("alice", now=2.0).requests_in_last_minute == 1
    assert limiter.status("carol", now=2.0).requests_in_last_minute == 0


def test_keyed_status_does_not_track_unseen_keys():
    limiter = KeyedSlidingWindowLimiter(max_per_minute=5, max_per_hour=50)

    for i in range(100):
        status = limiter.status(f"caller-{i}", now=0.0)
        assert status.requests_in_last_hour == 0
        assert status.max_requests_per_minute == 5

    assert len(limiter) == 0


def test_keyed_limiter_evicts_idle_callers():
    limiter = KeyedSlidingWindowLimiter(max_per_minute=5, max_per_hour=50)
    for i in range(10_000):
        limiter.admit(f"caller-{i}", now=0.0)
    assert len(limiter) == 10_000

    assert limiter.admit("late-caller", now=7200.0) is True

    assert len(limiter) == 1


def test_keyed_limiter_keeps_callers_inside_the_hour():
    limiter = KeyedSlidingWindowLimiter(max_per_minute=1, max_per_hour=2)
    limiter.admit("alice", now=0.0)
    limiter.admit("bob", now=3000.0)

    limiter.admit("carol", now=3700.0)

    assert len(limiter) == 2
    assert limiter.status("bob", now=3700.0).requests_in_last_hour == 1


def test_is_idle_after_hour_passes():
    limiter = SlidingWindowLimiter(max_per_minute=1, max_per_hour=1)
    limiter.admit(now=0.0)

    assert limiter.is_idle(now=10.0) is False
    assert limiter.is_idle(now=3600.0) is True
