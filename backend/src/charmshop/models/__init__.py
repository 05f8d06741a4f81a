"""SQLAlchemy ORM models for the charmshop back office."""
# Import all models here to ensure they are registered with Alembic

from charmshop.models.base import Base
from charmshop.models.product import Product
from charmshop.models.order import Order, OrderItem, OrderStatus, REVENUE_STATUSES
from charmshop.models.expense import Expense, ExpenseCategory
from charmshop.models.analytics_snapshot import (
    AnalyticsHistory,
    MetricSnapshot,
    MetricType,
    RefreshRun,
    RefreshStatus,
)

__all__ = [
    "Base",
    "Product",
    "Order",
    "OrderItem",
    "OrderStatus",
    "REVENUE_STATUSES",
    "Expense",
    "ExpenseCategory",
    "AnalyticsHistory",
    "MetricSnapshot",
    "MetricType",
    "RefreshRun",
    "RefreshStatus",
]
