"""In-process operation timing: bounded ring of metrics plus per-operation stats.

Each tracked operation also opens an OpenTelemetry span, so durations show up
in traces when telemetry is enabled.
"""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from mailsync.shared.telemetry.logging import get_logger
from mailsync.shared.telemetry.tracing import TracedOperation

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class PerformanceMetric:
    operation: str
    start_time: float
    end_time: float | None = None
    duration_ms: float | None = None
    success: bool = False
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OperationStats:
    total: int
    successful: int
    failed: int
    avg_duration_ms: float
    min_duration_ms: float
    max_duration_ms: float
    success_rate: int


class PerformanceMonitor:
    """Constructed once per process and injected; not a module global."""

    def __init__(
        self,
        max_metrics: int = 1000,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._metrics: deque[PerformanceMetric] = deque(maxlen=max_metrics)
        self._clock = clock

    async def track_operation(
        self,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        metadata: dict[str, Any] | None = None,
    ) -> T:
        """Await fn, recording duration and outcome. Exceptions are recorded and re-raised."""
        metric = PerformanceMetric(
            operation=operation,
            start_time=self._clock(),
            metadata=dict(metadata or {}),
        )
        try:
            async with TracedOperation(operation, metric.metadata):
                result = await fn()
            metric.success = True
            return result
        except Exception as e:
            metric.error = str(e)
            raise
        finally:
            metric.end_time = self._clock()
            metric.duration_ms = (metric.end_time - metric.start_time) * 1000
            self._metrics.append(metric)
            if not metric.success:
                logger.warning(
                    "Operation %s failed after %.0fms: %s",
                    operation,
                    metric.duration_ms,
                    metric.error,
                )

    def get_metrics(self, operation: str | None = None) -> list[PerformanceMetric]:
        if operation is None:
            return list(self._metrics)
        return [m for m in self._metrics if m.operation == operation]

    def get_stats(self, operation: str | None = None) -> OperationStats:
        metrics = self.get_metrics(operation)
        if not metrics:
            return OperationStats(0, 0, 0, 0.0, 0.0, 0.0, 0)
        durations = [m.duration_ms or 0.0 for m in metrics]
        successful = sum(1 for m in metrics if m.success)
        return OperationStats(
            total=len(metrics),
            successful=successful,
            failed=len(metrics) - successful,
            avg_duration_ms=sum(durations) / len(durations),
            min_duration_ms=min(durations),
            max_duration_ms=max(durations),
            success_rate=round(successful / len(metrics) * 100),
        )

    def get_recent_errors(self, limit: int = 10) -> list[PerformanceMetric]:
        """Most recent failed operations, newest first."""
        errors = [m for m in reversed(self._metrics) if not m.success]
        return errors[:limit]

    def clear(self) -> None:
        self._metrics.clear()

    def get_summary(self) -> dict[str, OperationStats]:
        """Stats per operation name."""
        operations = sorted({m.operation for m in self._metrics})
        return {op: self.get_stats(op) for op in operations}
