"""
Admin analytics API endpoints.

Provides endpoints for:
- GET /analytics - ad hoc period report
- POST /analytics/refresh - recompute all cached metrics (rate limited)
- POST /analytics/refresh/{metric_type} - recompute one cached metric (rate limited)
- GET /analytics/status - last refresh, staleness and cooldown state
- GET /analytics/cached - stored metric payloads
- GET /analytics/live - uncached counts
"""
import math
from typing import Dict, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from charmshop.api.deps import actor_from_user, get_analytics_service, get_current_user, get_db
from charmshop.models.analytics_snapshot import MetricType
from charmshop.schemas.analytics import (
    AnalyticsStatus,
    ApiResponse,
    PeriodName,
    RefreshOutcome,
    RefreshResponse,
    RefreshResult,
)
from charmshop.schemas.error import REMEDIATION_HINTS, ErrorCode
from charmshop.services.analytics_service import AnalyticsService
from charmshop.services.period_report_service import PeriodReportService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/analytics", dependencies=[Depends(get_current_user)])

REFRESH_FAILED_MESSAGE = "Failed to refresh analytics"


def _refresh_response(result: RefreshResult, service: AnalyticsService, message: str) -> JSONResponse:
    """Map a refresh result to its HTTP response: 200, 429 on cooldown, 500 on failure."""
    cooldown_status = service.get_cooldown_status()

    if result.outcome == RefreshOutcome.COMPLETED:
        body = RefreshResponse(
            success=True,
            data=result.data,
            message=message,
            cooldown_status=cooldown_status,
        )
        status_code = status.HTTP_200_OK
    elif result.outcome == RefreshOutcome.COOLDOWN:
        body = RefreshResponse(
            success=False,
            error=result.error,
            cooldown_remaining=result.cooldown_remaining,
            cooldown_status=cooldown_status,
        )
        status_code = status.HTTP_429_TOO_MANY_REQUESTS
    else:
        # Failure details stay in the logs and the failed refresh run
        body = RefreshResponse(
            success=False,
            error=REFRESH_FAILED_MESSAGE,
            message=REMEDIATION_HINTS[ErrorCode.ANALYTICS_REFRESH_FAILED],
            cooldown_status=cooldown_status,
        )
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    headers = None
    if result.cooldown_remaining:
        headers = {"Retry-After": str(max(1, math.ceil(result.cooldown_remaining / 1000)))}

    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )


@router.get("", response_model=ApiResponse)
async def get_period_analytics(
    period: Optional[str] = Query(default=PeriodName.THIS_MONTH.value, description="Reporting period"),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse:
    """
    Revenue, expense and best seller report for a period.

    Unknown periods are reported as This Month.
    """
    service = PeriodReportService(db)
    data = await service.get_period_analytics(period)
    return ApiResponse(data=data, message="Analytics data retrieved successfully")


@router.post("/refresh")
async def refresh_all_analytics(
    service: AnalyticsService = Depends(get_analytics_service),
    current_user: Dict = Depends(get_current_user),
) -> JSONResponse:
    """
    Recompute every cached metric.

    Returns 429 with `cooldownRemaining` (ms) while any metric is cooling down.
    """
    result = await service.refresh_all_analytics(actor=actor_from_user(current_user))
    return _refresh_response(result, service, "Analytics refreshed successfully")


@router.post("/refresh/{metric_type}")
async def refresh_metric(
    metric_type: str,
    service: AnalyticsService = Depends(get_analytics_service),
    current_user: Dict = Depends(get_current_user),
) -> JSONResponse:
    """Recompute one cached metric."""
    try:
        MetricType(metric_type)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown metric type: {metric_type}. {REMEDIATION_HINTS[ErrorCode.INVALID_METRIC_TYPE]}",
        )

    result = await service.refresh_analytics(metric_type, actor=actor_from_user(current_user))
    return _refresh_response(result, service, f"{metric_type} refreshed successfully")


@router.get("/status", response_model=ApiResponse[AnalyticsStatus])
async def get_analytics_status(
    service: AnalyticsService = Depends(get_analytics_service),
) -> ApiResponse:
    """Last completed refresh, staleness and cooldown state. Never starts a cooldown."""
    analytics_status = AnalyticsStatus(**await service.get_status())
    return ApiResponse[AnalyticsStatus](data=analytics_status)


@router.get("/cached", response_model=ApiResponse)
async def get_cached_analytics(
    service: AnalyticsService = Depends(get_analytics_service),
) -> ApiResponse:
    """Stored metric payloads keyed by metric type."""
    return ApiResponse(data=await service.get_cached_analytics())


@router.get("/live", response_model=ApiResponse)
async def get_live_metrics(
    service: AnalyticsService = Depends(get_analytics_service),
) -> ApiResponse:
    """Current product / order / expense counts."""
    return ApiResponse(data=await service.get_live_metrics())
