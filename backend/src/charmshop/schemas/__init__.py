"""Pydantic schemas for API request/response validation."""

from charmshop.schemas.analytics import (
    AnalyticsStatus,
    ApiResponse,
    CooldownEntry,
    ExpenseCategoryShare,
    LiveMetrics,
    MonthlyTrendPoint,
    PeriodAnalytics,
    PeriodName,
    RefreshOutcome,
    RefreshResponse,
    RefreshResult,
    TopProduct,
)
from charmshop.schemas.error import (
    ErrorCode,
    ErrorDetail,
    ErrorResponse,
    REMEDIATION_HINTS,
)
