"""RateLimiter unit tests: fixed-window admission per key."""

import asyncio

import pytest

from mailsync.application.services.batch_processor import BatchOptions, BatchProcessor
from mailsync.application.services.rate_limiter import RateLimiter
from tests.fakes import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start=100.0)


def test_admits_up_to_ceiling_then_rejects(clock) -> None:
    limiter = RateLimiter(max_requests=3, window_seconds=1.0, clock=clock, sleep=clock.sleep)
    assert [limiter.check_limit("k") for _ in range(4)] == [True, True, True, False]


def test_keys_are_independent(clock) -> None:
    limiter = RateLimiter(max_requests=1, window_seconds=1.0, clock=clock, sleep=clock.sleep)
    assert limiter.check_limit("messages-get-a")
    assert limiter.check_limit("messages-get-b")
    assert not limiter.check_limit("messages-get-a")


def test_window_reopens_after_reset_time(clock) -> None:
    limiter = RateLimiter(max_requests=2, window_seconds=1.0, clock=clock, sleep=clock.sleep)
    limiter.check_limit("k")
    limiter.check_limit("k")
    assert not limiter.check_limit("k")
    clock.now += 1.0
    assert limiter.check_limit("k")
    assert limiter.get_status("k").count == 1


@pytest.mark.asyncio
async def test_wait_for_limit_never_exceeds_ceiling_per_window(clock) -> None:
    """120 admissions at 50/window span three windows; no window admits more than 50."""
    limiter = RateLimiter(max_requests=50, window_seconds=1.0, clock=clock, sleep=clock.sleep)
    admitted_at: list[float] = []
    for _ in range(120):
        await limiter.wait_for_limit("k")
        admitted_at.append(clock.now)

    per_window: dict[int, int] = {}
    for t in admitted_at:
        window = int(t - 100.0)
        per_window[window] = per_window.get(window, 0) + 1
    assert max(per_window.values()) <= 50
    assert sorted(per_window.values(), reverse=True) == [50, 50, 20]
    assert clock.sleeps == [1.0, 1.0]


def test_status_reset_and_clear(clock) -> None:
    limiter = RateLimiter(max_requests=5, window_seconds=2.0, clock=clock, sleep=clock.sleep)
    assert limiter.get_status("k") is None
    limiter.check_limit("k")
    status = limiter.get_status("k")
    assert (status.count, status.remaining, status.reset_at) == (1, 4, 102.0)
    limiter.reset("k")
    assert limiter.get_status("k") is None
    limiter.check_limit("a")
    limiter.check_limit("b")
    limiter.clear_all()
    assert limiter.get_status("a") is None and limiter.get_status("b") is None


def test_rejects_invalid_configuration() -> None:
    with pytest.raises(ValueError):
        RateLimiter(max_requests=0)
    with pytest.raises(ValueError):
        RateLimiter(window_seconds=0)


class SharedClock:
    """Clock shared by concurrent waiters; a sleep yields, then advances to its wake time."""

    def __init__(self, start: float) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        target = self.now + seconds
        await asyncio.sleep(0)
        self.now = max(self.now, target)


@pytest.mark.asyncio
async def test_concurrent_waiters_never_exceed_ceiling_per_window() -> None:
    clock = SharedClock(start=100.0)
    limiter = RateLimiter(max_requests=50, window_seconds=1.0, clock=clock, sleep=clock.sleep)
    processor = BatchProcessor(BatchOptions(batch_size=120, concurrency=10, delay_between_batches=0))
    per_window: dict[int, int] = {}

    async def admit(_: int) -> None:
        await limiter.wait_for_limit("messages-get-conn-1")
        window = int(clock.now - 100.0)
        per_window[window] = per_window.get(window, 0) + 1

    results = await asyncio.wait_for(processor.process_batch(list(range(120)), admit), timeout=2)

    assert all(r.ok for r in results)
    assert sum(per_window.values()) == 120
    assert max(per_window.values()) <= 50
    assert per_window == {0: 50, 1: 50, 2: 20}
