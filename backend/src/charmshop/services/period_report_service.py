"""Ad hoc period analytics for the admin analytics page.

Computed on every request straight from orders and expenses; nothing here is
cached or throttled.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple, Union

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from charmshop.models.expense import Expense, ExpenseCategory
from charmshop.models.order import Order, OrderItem
from charmshop.schemas.analytics import (
    CategorySpend,
    PeriodAnalytics,
    PeriodName,
    PeriodSummary,
    RevenuePoint,
    SellingProduct,
)
from charmshop.services.analytics_service import UNKNOWN_PRODUCT, _product_name, _to_float
from charmshop.utils.currency import format_inr
from charmshop.utils.dates import shift_months

logger = structlog.get_logger(__name__)

CHART_MONTHS = 6
TOP_SELLERS_LIMIT = 5
# Margin assumed for product profit estimates
ASSUMED_PROFIT_RATE = 0.375


def resolve_period(period: Union[PeriodName, str, None]) -> PeriodName:
    """Map a query value to a PeriodName; unknown or missing values mean This Month."""
    try:
        return PeriodName(period)
    except ValueError:
        return PeriodName.THIS_MONTH


def period_start(period: PeriodName, now: datetime) -> datetime:
    """
    Start of the reporting window.

    This Month deliberately reaches back six months so the chart has data.
    """
    if period == PeriodName.THIS_WEEK:
        return now - timedelta(days=7)
    if period == PeriodName.LAST_3_MONTHS:
        return shift_months(now, -3)
    if period == PeriodName.THIS_YEAR:
        return datetime(now.year, 1, 1)
    return shift_months(now, -CHART_MONTHS)


def _month_key(moment: datetime) -> Tuple[int, int]:
    return moment.year, moment.month


def _percent_change(current: int, previous: int) -> float:
    if previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100, 2)


class PeriodReportService:
    """Builds the revenue / expense / best seller report for one period."""

    def __init__(self, db: AsyncSession, now: Optional[datetime] = None):
        self.db = db
        self.now = now

    async def get_period_analytics(self, period: Union[PeriodName, str, None] = None) -> Dict[str, Any]:
        """
        Build the period report.

        Args:
            period: One of the PeriodName values; anything else falls back to This Month

        Returns:
            PeriodAnalytics payload (camelCase keys)
        """
        now = self.now or datetime.utcnow()
        resolved = resolve_period(period)
        start = period_start(resolved, now)

        logger.info("period_analytics_requested", period=resolved.value, since=start.isoformat())

        orders_rows = (
            await self.db.execute(
                select(Order.total_amount, Order.created_at).where(Order.created_at >= start)
            )
        ).all()
        expense_rows = (
            await self.db.execute(
                select(Expense.amount, Expense.expense_date, Expense.category_id).where(
                    Expense.expense_date >= start
                )
            )
        ).all()

        revenue_data = self._revenue_series(orders_rows, expense_rows, now)
        categories = await self._category_spend(expense_rows) if expense_rows else []
        top_sellers = await self._top_sellers(start) if orders_rows else []

        report = PeriodAnalytics(
            revenue_data=revenue_data,
            expense_categories=categories,
            top_selling_products=top_sellers,
            summary=self._summary(revenue_data),
        )
        return report.model_dump(by_alias=True)

    def _revenue_series(self, orders_rows, expense_rows, now: datetime) -> List[RevenuePoint]:
        revenue_by_month: Dict[Tuple[int, int], float] = {}
        for total_amount, created_at in orders_rows:
            if created_at is None:
                continue
            key = _month_key(created_at)
            revenue_by_month[key] = revenue_by_month.get(key, 0.0) + _to_float(total_amount)

        expenses_by_month: Dict[Tuple[int, int], float] = {}
        for amount, expense_date, _category_id in expense_rows:
            if expense_date is None:
                continue
            key = _month_key(expense_date)
            expenses_by_month[key] = expenses_by_month.get(key, 0.0) + _to_float(amount)

        series = []
        for offset in range(CHART_MONTHS - 1, -1, -1):
            month = shift_months(now, -offset)
            key = _month_key(month)
            series.append(
                RevenuePoint(
                    month=month.strftime("%b"),
                    revenue=round(revenue_by_month.get(key, 0.0)),
                    expenses=round(expenses_by_month.get(key, 0.0)),
                )
            )

        if all(point.revenue == 0 and point.expenses == 0 for point in series):
            return []
        return series

    async def _category_spend(self, expense_rows) -> List[CategorySpend]:
        result = await self.db.execute(
            select(ExpenseCategory.id, ExpenseCategory.name).where(ExpenseCategory.is_active.is_(True))
        )
        categories = result.all()

        by_category: Dict[Any, float] = {}
        total = 0.0
        for amount, _expense_date, category_id in expense_rows:
            value = _to_float(amount)
            by_category[category_id] = by_category.get(category_id, 0.0) + value
            total += value

        spend = []
        for category_id, name in categories:
            amount = by_category.get(category_id, 0.0)
            rounded = round(amount)
            if rounded <= 0:
                continue
            spend.append(
                CategorySpend(
                    name=name,
                    amount=rounded,
                    percentage=round(amount / total * 100) if total > 0 else 0,
                )
            )
        return sorted(spend, key=lambda item: item.amount, reverse=True)

    async def _top_sellers(self, start: datetime) -> List[SellingProduct]:
        stmt = (
            select(OrderItem.product_snapshot, OrderItem.quantity, OrderItem.total_price)
            .select_from(OrderItem)
            .outerjoin(Order, OrderItem.order_id == Order.id)
            .where(Order.created_at >= start)
        )
        rows = (await self.db.execute(stmt)).all()

        sales: Dict[str, Dict[str, float]] = {}
        for snapshot, quantity, total_price in rows:
            name = _product_name(snapshot) or UNKNOWN_PRODUCT
            entry = sales.setdefault(name, {"sales": 0, "revenue": 0.0})
            entry["sales"] += quantity or 0
            entry["revenue"] += _to_float(total_price)

        ranked = sorted(sales.items(), key=lambda item: item[1]["sales"], reverse=True)[:TOP_SELLERS_LIMIT]
        return [
            SellingProduct(
                name=name,
                sales=int(entry["sales"]),
                revenue=format_inr(entry["revenue"]),
                profit=format_inr(entry["revenue"] * ASSUMED_PROFIT_RATE),
            )
            for name, entry in ranked
        ]

    @staticmethod
    def _summary(revenue_data: List[RevenuePoint]) -> PeriodSummary:
        total_revenue = sum(point.revenue for point in revenue_data)
        total_expenses = sum(point.expenses for point in revenue_data)
        net_profit = total_revenue - total_expenses

        revenue_change = expense_change = 0.0
        if len(revenue_data) >= 2:
            current, previous = revenue_data[-1], revenue_data[-2]
            revenue_change = _percent_change(current.revenue, previous.revenue)
            expense_change = _percent_change(current.expenses, previous.expenses)

        most_profitable = "N/A"
        if revenue_data:
            best = revenue_data[0]
            for point in revenue_data[1:]:
                if point.revenue - point.expenses > best.revenue - best.expenses:
                    best = point
            most_profitable = best.month

        return PeriodSummary(
            total_revenue=total_revenue,
            total_expenses=total_expenses,
            net_profit=net_profit,
            revenue_change=revenue_change,
            expense_change=expense_change,
            profit_margin=round(net_profit / total_revenue * 100, 2) if total_revenue > 0 else 0.0,
            most_profitable_month=most_profitable,
            average_monthly_revenue=round(total_revenue / len(revenue_data)) if revenue_data else 0,
            expense_efficiency=round(total_expenses / total_revenue * 100, 2) if total_revenue > 0 else 0.0,
        )
