"""PerformanceMonitor unit tests."""

import pytest

from mailsync.application.services.performance_monitor import PerformanceMonitor


class StepClock:
    def __init__(self) -> None:
        self.t = 0.0

    def __call__(self) -> float:
        self.t += 0.05
        return self.t


@pytest.mark.asyncio
async def test_tracks_success_and_failure_and_reraises() -> None:
    monitor = PerformanceMonitor(clock=StepClock())

    async def ok() -> str:
        return "done"

    async def boom() -> None:
        raise RuntimeError("provider down")

    assert await monitor.track_operation("watch-setup", ok, {"connection_id": "c1"}) == "done"
    with pytest.raises(RuntimeError):
        await monitor.track_operation("watch-setup", boom)

    stats = monitor.get_stats("watch-setup")
    assert (stats.total, stats.successful, stats.failed, stats.success_rate) == (2, 1, 1, 50)
    assert stats.avg_duration_ms == pytest.approx(50.0)
    errors = monitor.get_recent_errors()
    assert [e.error for e in errors] == ["provider down"]
    assert set(monitor.get_summary()) == {"watch-setup"}


@pytest.mark.asyncio
async def test_ring_is_bounded_and_clear_empties_it() -> None:
    monitor = PerformanceMonitor(max_metrics=3)

    async def ok() -> None:
        return None

    for _ in range(5):
        await monitor.track_operation("op", ok)
    assert len(monitor.get_metrics()) == 3
    monitor.clear()
    assert monitor.get_stats().total == 0
    assert monitor.get_summary() == {}
