"""In-process performance metrics (Bearer CRON_SECRET)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from mailsync.api.v1.dependencies import get_performance_monitor, require_cron_secret
from mailsync.application.services.performance_monitor import PerformanceMonitor
from mailsync.schemas.sync import (
    OperationStatsResponse,
    PerformanceSummaryResponse,
    RecentErrorResponse,
)

router = APIRouter(dependencies=[Depends(require_cron_secret)])


@router.get("/performance", response_model=PerformanceSummaryResponse)
def performance_summary(
    monitor: Annotated[PerformanceMonitor, Depends(get_performance_monitor)],
    error_limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> PerformanceSummaryResponse:
    """Per-operation timing stats and the most recent failures."""
    return PerformanceSummaryResponse(
        operations={
            name: OperationStatsResponse.model_validate(stats)
            for name, stats in monitor.get_summary().items()
        },
        recent_errors=[
            RecentErrorResponse(
                operation=m.operation,
                error=m.error,
                duration_ms=m.duration_ms,
                metadata=m.metadata,
            )
            for m in monitor.get_recent_errors(error_limit)
        ],
    )
