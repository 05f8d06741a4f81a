"""Pydantic schemas for analytics payloads and responses.

Wire format is camelCase to match what the admin frontend consumes.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema serializing field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(CamelModel, Generic[T]):
    """Standard `{success, data, message}` envelope used by admin endpoints."""

    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    error: Optional[str] = None


class RefreshOutcome(str, Enum):
    """Why a refresh returned what it did."""

    COMPLETED = "completed"
    COOLDOWN = "cooldown"
    ERROR = "error"


class RefreshResult(CamelModel):
    """
    Result of a gated refresh.

    A cooldown rejection is an expected outcome, not an error: it carries the
    remaining wait and `outcome == COOLDOWN`.
    """

    success: bool
    outcome: RefreshOutcome
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    cooldown_remaining: Optional[int] = Field(default=None, description="Milliseconds until refresh is allowed")

    @property
    def is_cooldown(self) -> bool:
        return self.outcome == RefreshOutcome.COOLDOWN


class CooldownEntry(CamelModel):
    """Cooldown state for one metric type."""

    can_refresh: bool
    remaining_ms: int


class RefreshResponse(CamelModel):
    """Body of POST /analytics/refresh."""

    success: bool
    data: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    error: Optional[str] = None
    cooldown_remaining: Optional[int] = None
    cooldown_status: Dict[str, CooldownEntry]


class AnalyticsStatus(CamelModel):
    """Body of GET /analytics/status."""

    last_refreshed: Optional[datetime] = None
    is_stale: bool
    cooldown_status: Dict[str, CooldownEntry]
    can_refresh: bool


class LiveMetrics(CamelModel):
    """Uncached counts read straight from the data store."""

    total_products: int
    total_orders: int
    total_expenses: int
    last_updated: str


class MonthlyTrendPoint(CamelModel):
    month: str = Field(..., description="Calendar month, YYYY-MM")
    revenue: int
    expenses: int
    net_profit: int
    order_count: int


class ExpenseCategoryShare(CamelModel):
    category: str
    amount: int
    count: int
    percentage: int


class TopProduct(CamelModel):
    name: str
    total_sold: int
    revenue: int
    average_price: int
    order_count: int


class PeriodName(str, Enum):
    """Periods accepted by the ad hoc analytics endpoint."""

    THIS_WEEK = "This Week"
    THIS_MONTH = "This Month"
    LAST_3_MONTHS = "Last 3 Months"
    THIS_YEAR = "This Year"


class RevenuePoint(CamelModel):
    month: str
    revenue: int
    expenses: int


class CategorySpend(CamelModel):
    name: str
    amount: int
    percentage: int


class SellingProduct(CamelModel):
    name: str
    sales: int
    revenue: str
    profit: str


class PeriodSummary(CamelModel):
    total_revenue: int
    total_expenses: int
    net_profit: int
    revenue_change: float
    expense_change: float
    profit_margin: float
    most_profitable_month: str
    average_monthly_revenue: int
    expense_efficiency: float


class PeriodAnalytics(CamelModel):
    """Body of GET /analytics?period=..."""

    revenue_data: List[RevenuePoint]
    expense_categories: List[CategorySpend]
    top_selling_products: List[SellingProduct]
    summary: PeriodSummary
