"""
Analytics persistence models.

- MetricSnapshot: latest computed result per metric type (one row per type)
- RefreshRun: audit trail of refresh attempts
- AnalyticsHistory: dated bundles written after a full refresh
"""

import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, Integer, String, Text

from charmshop.models.base import Base, JSONType


class MetricType(str, enum.Enum):
    """The four cached analytics metrics."""

    NET_REVENUE = "net_revenue"
    MONTHLY_TRENDS = "monthly_trends"
    EXPENSE_BREAKDOWN = "expense_breakdown"
    TOP_PRODUCTS = "top_products"


class RefreshStatus(str, enum.Enum):
    """Refresh run status. processing resolves to completed or failed exactly once."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class MetricSnapshot(Base):
    """
    Most recent computed result for a metric type.

    Rows are upserted in place on every refresh and never deleted by it.
    Dashboard widgets share the table under "widget_"-prefixed keys.
    """

    __tablename__ = "analytics_cache"

    metric_type = Column(
        String(50),
        nullable=False,
        unique=True,
        comment="Metric type (net_revenue, monthly_trends, ...) or widget_-prefixed dashboard widget key",
    )
    calculated_data = Column(JSONType, nullable=False)
    computation_time_ms = Column(Integer, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self) -> str:
        return (
            f"<MetricSnapshot("
            f"metric_type={self.metric_type}, "
            f"updated_at={self.updated_at}"
            f")>"
        )


class RefreshRun(Base):
    """Audit record of one refresh attempt (single metric or all metrics)."""

    __tablename__ = "analytics_metadata"

    status = Column(
        Enum(RefreshStatus, values_callable=lambda x: [e.value for e in x], native_enum=False, length=20),
        nullable=False,
        default=RefreshStatus.PROCESSING,
        index=True,
    )
    triggered_by = Column(String(100), nullable=False, default="system")
    metric_type = Column(String(50), nullable=True, comment="Null when all metrics were refreshed")
    last_refresh_at = Column(DateTime, nullable=True, index=True)
    refresh_duration_ms = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<RefreshRun(id={self.id}, status={self.status}, triggered_by={self.triggered_by})>"


class AnalyticsHistory(Base):
    """Dated bundle of all four metrics, written after each full refresh."""

    __tablename__ = "analytics_history"

    metric_type = Column(String(50), nullable=False, default="daily_snapshot")
    calculated_data = Column(JSONType, nullable=False)
    snapshot_date = Column(DateTime, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<AnalyticsHistory(id={self.id}, snapshot_date={self.snapshot_date})>"
