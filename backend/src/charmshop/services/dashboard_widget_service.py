"""Dashboard widget service.

Two kinds of widgets:
- on-the-fly counts that must always be current (pending orders, stale payment-pending orders)
- heavier aggregates cached in the analytics_cache table, each with a freshness threshold

Widget rows share the analytics_cache table with the refreshable metrics. Their
keys carry the "widget_" prefix, which no MetricType value has.
"""
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog
from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from charmshop.metrics import dashboard_widget_cache_total
from charmshop.models.analytics_snapshot import MetricSnapshot
from charmshop.models.expense import Expense, ExpenseCategory
from charmshop.models.order import REVENUE_STATUSES, Order, OrderItem, OrderStatus
from charmshop.models.product import Product
from charmshop.services.analytics_service import UNCATEGORIZED, UNKNOWN_PRODUCT, _to_float, upsert_snapshot
from charmshop.utils.currency import format_inr
from charmshop.utils.dates import month_bounds, shift_months

logger = structlog.get_logger(__name__)

WIDGET_KEY_PREFIX = "widget_"
PENDING_WINDOW = timedelta(hours=6)
DEFAULT_FRESHNESS = timedelta(minutes=30)
WIDGET_FRESHNESS: Dict[str, timedelta] = {
    "overall_revenue": timedelta(hours=2),
    "net_profit": timedelta(hours=2),
    "overall_aov": timedelta(hours=1),
    "average_product_value": timedelta(hours=1),
}
CACHED_WIDGETS = [
    "overall_revenue",
    "monthly_revenue",
    "monthly_orders",
    "net_profit",
    "average_order_value",
    "overall_aov",
    "revenue_growth",
    "expense_breakdown",
    "top_selling_products",
    "average_product_value",
]
EXPENSE_BREAKDOWN_LIMIT = 7
TOP_SELLING_LIMIT = 5


def widget_key(widget: str) -> str:
    """analytics_cache key for a cached widget."""
    return f"{WIDGET_KEY_PREFIX}{widget}"


def _money(amount: float) -> Dict[str, Any]:
    return {"formatted": format_inr(amount, decimals=2)}


class DashboardWidgetService:
    """Service for admin dashboard widgets."""

    def __init__(self, db: AsyncSession, now: Optional[datetime] = None):
        self.db = db
        self._now = now

    @property
    def now(self) -> datetime:
        return self._now or datetime.utcnow()

    # On-the-fly widgets

    async def get_pending_orders(self) -> int:
        """Non-cancelled orders that are payment pending or were placed in the last 6 hours."""
        stmt = select(func.count(Order.id)).where(
            Order.status != OrderStatus.CANCELLED,
            or_(
                Order.status == OrderStatus.PAYMENT_PENDING,
                Order.created_at >= self.now - PENDING_WINDOW,
            ),
        )
        return (await self.db.execute(stmt)).scalar() or 0

    async def get_stale_data_count(self) -> int:
        """Payment-pending orders older than 6 hours."""
        stmt = select(func.count(Order.id)).where(
            Order.status == OrderStatus.PAYMENT_PENDING,
            Order.created_at <= self.now - PENDING_WINDOW,
        )
        return (await self.db.execute(stmt)).scalar() or 0

    # Cached widgets

    async def get_overall_revenue(self) -> Dict[str, Any]:
        return await self._cached("overall_revenue", self._compute_overall_revenue)

    async def get_monthly_revenue(self) -> Dict[str, Any]:
        return await self._cached("monthly_revenue", self._compute_monthly_revenue)

    async def get_monthly_orders(self) -> int:
        cached = await self._cached("monthly_orders", self._compute_monthly_orders)
        return cached["value"]

    async def get_net_profit(self) -> Dict[str, Any]:
        return await self._cached("net_profit", self._compute_net_profit)

    async def get_average_order_value(self) -> Dict[str, Any]:
        return await self._cached("average_order_value", self._compute_average_order_value)

    async def get_overall_aov(self) -> Dict[str, Any]:
        return await self._cached("overall_aov", self._compute_overall_aov)

    async def get_revenue_growth(self) -> Dict[str, Any]:
        return await self._cached("revenue_growth", self._compute_revenue_growth)

    async def get_expense_breakdown(self) -> List[Dict[str, Any]]:
        cached = await self._cached("expense_breakdown", self._compute_expense_breakdown)
        return cached["data"]

    async def get_top_selling_products(self) -> List[Dict[str, Any]]:
        cached = await self._cached("top_selling_products", self._compute_top_selling_products)
        return cached["data"]

    async def get_average_product_value(self) -> Dict[str, Any]:
        return await self._cached("average_product_value", self._compute_average_product_value)

    async def get_all_widgets(self) -> Dict[str, Any]:
        """
        All widgets for the dashboard in one payload.

        Returns:
            Dict keyed by camelCase widget name
        """
        return {
            "overallRevenue": await self.get_overall_revenue(),
            "monthlyRevenue": await self.get_monthly_revenue(),
            "monthlyOrders": await self.get_monthly_orders(),
            "netProfit": await self.get_net_profit(),
            "pendingOrders": await self.get_pending_orders(),
            "staleData": await self.get_stale_data_count(),
            "averageOrderValue": await self.get_average_order_value(),
            "overallAov": await self.get_overall_aov(),
            "revenueGrowth": await self.get_revenue_growth(),
            "expenseBreakdown": await self.get_expense_breakdown(),
            "topSellingProducts": await self.get_top_selling_products(),
            "averageProductValue": await self.get_average_product_value(),
        }

    async def refresh_all_cached_widgets(self) -> Dict[str, Any]:
        """Drop every cached widget row and recompute all widgets."""
        keys = [widget_key(widget) for widget in CACHED_WIDGETS]
        await self.db.execute(delete(MetricSnapshot).where(MetricSnapshot.metric_type.in_(keys)))
        await self.db.commit()
        logger.info("dashboard_widgets_cache_cleared", widget_count=len(CACHED_WIDGETS))
        return await self.get_all_widgets()

    # Cache management

    async def _cached(self, widget: str, compute: Callable[[], Awaitable[Dict[str, Any]]]) -> Dict[str, Any]:
        cached = await self._get_cached_widget(widget)
        if cached is not None:
            dashboard_widget_cache_total.labels(widget=widget, result="hit").inc()
            return cached

        dashboard_widget_cache_total.labels(widget=widget, result="miss").inc()
        data = await compute()
        await upsert_snapshot(self.db, widget_key(widget), data)
        return data

    async def _get_cached_widget(self, widget: str) -> Optional[Dict[str, Any]]:
        """Stored widget payload if it is younger than the widget's freshness threshold."""
        stmt = select(MetricSnapshot).where(MetricSnapshot.metric_type == widget_key(widget)).limit(1)
        snapshot = (await self.db.execute(stmt)).scalars().first()
        if snapshot is None:
            return None

        updated_at = snapshot.updated_at or self.now
        if self.now - updated_at > WIDGET_FRESHNESS.get(widget, DEFAULT_FRESHNESS):
            return None
        return snapshot.calculated_data

    # Calculations

    def _current_month(self):
        return month_bounds(self.now)

    async def _revenue_between(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> float:
        conditions = [Order.status.in_(REVENUE_STATUSES)]
        if start is not None:
            conditions.append(Order.created_at >= start)
        if end is not None:
            conditions.append(Order.created_at < end)
        stmt = select(func.coalesce(func.sum(Order.total_amount), 0)).where(and_(*conditions))
        return _to_float((await self.db.execute(stmt)).scalar())

    async def _average_order_between(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> float:
        conditions = [Order.status.in_(REVENUE_STATUSES)]
        if start is not None:
            conditions.append(Order.created_at >= start)
        if end is not None:
            conditions.append(Order.created_at < end)
        stmt = select(func.coalesce(func.avg(Order.total_amount), 0)).where(and_(*conditions))
        return _to_float((await self.db.execute(stmt)).scalar())

    async def _compute_overall_revenue(self) -> Dict[str, Any]:
        revenue = await self._revenue_between()
        return {"revenue": revenue, **_money(revenue)}

    async def _compute_monthly_revenue(self) -> Dict[str, Any]:
        revenue = await self._revenue_between(*self._current_month())
        return {"revenue": revenue, **_money(revenue)}

    async def _compute_monthly_orders(self) -> Dict[str, Any]:
        start, end = self._current_month()
        stmt = select(func.count(Order.id)).where(
            Order.status != OrderStatus.CANCELLED,
            Order.created_at >= start,
            Order.created_at < end,
        )
        return {"value": (await self.db.execute(stmt)).scalar() or 0}

    async def _compute_net_profit(self) -> Dict[str, Any]:
        total_revenue = await self._revenue_between()
        expenses_stmt = select(func.coalesce(func.sum(Expense.amount), 0))
        total_expenses = _to_float((await self.db.execute(expenses_stmt)).scalar())

        profit = total_revenue - total_expenses
        margin = (profit / total_revenue) * 100 if total_revenue > 0 else 0.0
        return {
            "profit": profit,
            "margin": margin,
            **_money(profit),
            "marginFormatted": f"{margin:.1f}% margin",
        }

    async def _compute_average_order_value(self) -> Dict[str, Any]:
        aov = await self._average_order_between(*self._current_month())
        return {"aov": aov, **_money(aov)}

    async def _compute_overall_aov(self) -> Dict[str, Any]:
        aov = await self._average_order_between()
        return {"aov": aov, **_money(aov)}

    async def _compute_revenue_growth(self) -> Dict[str, Any]:
        start, end = self._current_month()
        current = await self._revenue_between(start, end)
        previous = await self._revenue_between(shift_months(start, -1), start)

        percentage = 0.0
        trend = "neutral"
        if previous > 0:
            percentage = (current - previous) / previous * 100
            trend = "up" if percentage > 0 else "down" if percentage < 0 else "neutral"
        elif current > 0:
            percentage = 100.0
            trend = "up"

        sign = "+" if percentage >= 0 else ""
        return {"percentage": percentage, "trend": trend, "formatted": f"{sign}{percentage:.1f}%"}

    async def _compute_expense_breakdown(self) -> Dict[str, Any]:
        amount = func.sum(Expense.amount)
        stmt = (
            select(ExpenseCategory.name, amount.label("amount"))
            .select_from(Expense)
            .outerjoin(ExpenseCategory, Expense.category_id == ExpenseCategory.id)
            .where(ExpenseCategory.is_active.is_(True))
            .group_by(ExpenseCategory.id, ExpenseCategory.name)
            .order_by(amount.desc())
        )
        rows = (await self.db.execute(stmt)).all()
        total = sum(_to_float(row.amount) for row in rows)

        breakdown = [
            {
                "category": row.name or UNCATEGORIZED,
                "amount": round(_to_float(row.amount), 2),
                "percentage": round(_to_float(row.amount) / total * 100) if total > 0 else 0,
            }
            for row in rows
        ]
        return {"data": breakdown[:EXPENSE_BREAKDOWN_LIMIT]}

    async def _compute_top_selling_products(self) -> Dict[str, Any]:
        start, end = self._current_month()
        sales_count = func.count(OrderItem.id)
        revenue = func.sum(OrderItem.total_price)
        stmt = (
            select(
                Product.product_code,
                Product.name,
                sales_count.label("sales_count"),
                revenue.label("revenue"),
            )
            .select_from(Order)
            .outerjoin(OrderItem, Order.id == OrderItem.order_id)
            .outerjoin(Product, OrderItem.product_id == Product.id)
            .where(
                Order.status.in_(REVENUE_STATUSES),
                Order.created_at >= start,
                Order.created_at < end,
            )
            .group_by(Product.id, Product.product_code, Product.name)
            .order_by(sales_count.desc(), revenue.desc())
            .limit(TOP_SELLING_LIMIT)
        )
        rows = (await self.db.execute(stmt)).all()

        return {
            "data": [
                {
                    "productCode": row.product_code or "N/A",
                    "productName": row.name or UNKNOWN_PRODUCT,
                    "salesCount": row.sales_count or 0,
                    "revenue": round(_to_float(row.revenue), 2),
                }
                for row in rows
            ]
        }

    async def _compute_average_product_value(self) -> Dict[str, Any]:
        stmt = select(func.coalesce(func.avg(Product.base_price), 0)).where(Product.is_active.is_(True))
        aov = _to_float((await self.db.execute(stmt)).scalar())
        return {"aov": aov, **_money(aov)}
