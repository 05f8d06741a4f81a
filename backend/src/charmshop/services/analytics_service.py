"""
Analytics service for the admin back office.

Computes four cached metrics from orders and expenses:
- net_revenue: non-cancelled order revenue minus all expenses, with profit margin
- monthly_trends: revenue / expenses / profit / order count per calendar month (last 12)
- expense_breakdown: spend per active expense category with share of total
- top_products: best sellers by revenue, read from order line snapshots

Each computed metric is upserted into `analytics_cache` (one row per metric type)
and mirrored into the in-process AnalyticsCache. Recomputation of a metric is
refused while its 5 minute cooldown is running; that refusal is a normal result,
not an exception.
"""

import asyncio
import time
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from uuid import UUID

import structlog
from pydantic.alias_generators import to_camel
from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from charmshop.cache import AnalyticsCache
from charmshop.config import settings
from charmshop.metrics import (
    analytics_cooldown_rejections_total,
    analytics_refresh_duration_seconds,
    analytics_refresh_total,
)
from charmshop.models.analytics_snapshot import (
    AnalyticsHistory,
    MetricSnapshot,
    MetricType,
    RefreshRun,
    RefreshStatus,
)
from charmshop.models.expense import Expense, ExpenseCategory
from charmshop.models.order import Order, OrderItem, OrderStatus
from charmshop.models.product import Product
from charmshop.schemas.analytics import (
    ExpenseCategoryShare,
    LiveMetrics,
    MonthlyTrendPoint,
    RefreshOutcome,
    RefreshResult,
    TopProduct,
)
from charmshop.tracing import get_tracer
from charmshop.utils.dates import shift_months

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)

COOLDOWN_MESSAGE = "Analytics refresh is rate limited. Please wait before refreshing again."
UNKNOWN_PRODUCT = "Unknown Product"
UNCATEGORIZED = "Uncategorized"
TRAILING_MONTHS = 12
TOP_PRODUCTS_LIMIT = 10
HISTORY_METRIC_TYPE = "daily_snapshot"
DEFAULT_ACTOR = "system"


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _to_float(value: Any) -> float:
    return float(value) if value is not None else 0.0


def _product_name(snapshot: Any) -> str:
    """Product name from a line item snapshot: product.name, then name."""
    if not isinstance(snapshot, dict):
        return UNKNOWN_PRODUCT
    product = snapshot.get("product")
    if isinstance(product, dict) and product.get("name"):
        return product["name"]
    return snapshot.get("name") or UNKNOWN_PRODUCT


def parse_metric_type(value: Union[MetricType, str]) -> Optional[MetricType]:
    """Return the MetricType for value, or None when it names no known metric."""
    if isinstance(value, MetricType):
        return value
    try:
        return MetricType(value)
    except ValueError:
        return None


async def upsert_snapshot(db: AsyncSession, key: str, data: Dict[str, Any]) -> MetricSnapshot:
    """
    Insert or overwrite the analytics_cache row for key.

    A single INSERT ... ON CONFLICT DO UPDATE on the unique metric_type, so
    concurrent writers of the same key never collide. Last write wins; the
    row's updated_at is always moved forward.

    Args:
        db: Async database session
        key: Metric type or dashboard widget key
        data: JSON-serializable payload

    Returns:
        The stored MetricSnapshot
    """
    dialect = db.get_bind().dialect.name
    insert = postgresql_insert if dialect == "postgresql" else sqlite_insert

    now = datetime.utcnow()
    stmt = insert(MetricSnapshot).values(
        metric_type=key,
        calculated_data=data,
        computation_time_ms=data.get("computationTimeMs"),
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[MetricSnapshot.metric_type],
        set_={
            "calculated_data": stmt.excluded.calculated_data,
            "computation_time_ms": stmt.excluded.computation_time_ms,
            "updated_at": stmt.excluded.updated_at,
        },
    ).returning(MetricSnapshot)

    result = await db.execute(stmt, execution_options={"populate_existing": True})
    snapshot = result.scalars().one()

    await db.commit()
    logger.debug("analytics_snapshot_stored", metric_type=key)
    return snapshot


class AnalyticsService:
    """
    Service for calculating, storing and throttling analytics metrics.

    The AnalyticsCache is owned by the application (one per process) and passed
    in; the service itself is created per request.
    """

    def __init__(
        self,
        db: AsyncSession,
        cache: AnalyticsCache,
        session_factory: Optional[async_sessionmaker] = None,
    ):
        """
        Initialize analytics service.

        Args:
            db: Async database session
            cache: Process-wide analytics cache holding cooldown state
            session_factory: Opens extra sessions so refresh_all_analytics can run
                its calculations concurrently; without it they run one by one
        """
        self.db = db
        self.cache = cache
        self.session_factory = session_factory

    async def get_live_metrics(self) -> Dict[str, Any]:
        """
        Current catalog / order / expense counts. Never cached.

        Returns:
            Dict with totalProducts, totalOrders, totalExpenses and lastUpdated
        """
        products = await self.db.execute(
            select(func.count(Product.id)).where(Product.is_active.is_(True))
        )
        orders = await self.db.execute(select(func.count(Order.id)))
        expenses = await self.db.execute(select(func.count(Expense.id)))

        return LiveMetrics(
            total_products=products.scalar() or 0,
            total_orders=orders.scalar() or 0,
            total_expenses=expenses.scalar() or 0,
            last_updated=datetime.utcnow().isoformat(),
        ).model_dump(by_alias=True)

    async def calculate_net_revenue(self) -> Dict[str, Any]:
        """
        Calculate net revenue.

        netRevenue = sum(non-cancelled order totals) - sum(expense amounts)
        profitMarginPercentage = netRevenue / totalRevenue * 100 (0 when no revenue)

        Returns:
            Dict with totalRevenue, totalExpenses, netRevenue,
            profitMarginPercentage, calculatedAt, computationTimeMs
        """
        started = time.perf_counter()
        logger.info("calculating_net_revenue")

        revenue_stmt = select(func.coalesce(func.sum(Order.total_amount), 0)).where(
            Order.status != OrderStatus.CANCELLED
        )
        expenses_stmt = select(func.coalesce(func.sum(Expense.amount), 0))

        total_revenue = _to_float((await self.db.execute(revenue_stmt)).scalar())
        total_expenses = _to_float((await self.db.execute(expenses_stmt)).scalar())
        net_revenue = total_revenue - total_expenses

        if total_revenue > 0:
            profit_margin = (net_revenue / total_revenue) * 100
        else:
            profit_margin = 0.0

        logger.info(
            "net_revenue_calculated",
            total_revenue=total_revenue,
            total_expenses=total_expenses,
            net_revenue=net_revenue,
        )

        return {
            "totalRevenue": total_revenue,
            "totalExpenses": total_expenses,
            "netRevenue": net_revenue,
            "profitMarginPercentage": round(profit_margin, 2),
            "calculatedAt": datetime.utcnow().isoformat(),
            "computationTimeMs": _elapsed_ms(started),
        }

    async def calculate_monthly_trends(self) -> Dict[str, Any]:
        """
        Calculate revenue, expenses, net profit and order count per month.

        Only the trailing 12 months are read. Months without any order or
        expense are left out rather than zero-filled.

        Returns:
            Dict with monthlyTrends (ascending by YYYY-MM, at most 12 entries),
            calculatedAt, computationTimeMs
        """
        started = time.perf_counter()
        since = shift_months(datetime.utcnow(), -TRAILING_MONTHS)
        logger.info("calculating_monthly_trends", since=since.isoformat())

        orders_stmt = select(Order.total_amount, Order.created_at).where(
            Order.created_at >= since,
            Order.status != OrderStatus.CANCELLED,
        )
        expenses_stmt = select(Expense.amount, Expense.expense_date).where(
            Expense.expense_date >= since
        )

        orders_rows = (await self.db.execute(orders_stmt)).all()
        expense_rows = (await self.db.execute(expenses_stmt)).all()

        monthly: Dict[str, Dict[str, float]] = {}

        def bucket(moment: datetime) -> Dict[str, float]:
            return monthly.setdefault(
                moment.strftime("%Y-%m"),
                {"revenue": 0.0, "expenses": 0.0, "order_count": 0},
            )

        for total_amount, created_at in orders_rows:
            if created_at is None:
                continue
            month = bucket(created_at)
            month["revenue"] += _to_float(total_amount)
            month["order_count"] += 1

        for amount, expense_date in expense_rows:
            if expense_date is None:
                continue
            bucket(expense_date)["expenses"] += _to_float(amount)

        trends = [
            MonthlyTrendPoint(
                month=month,
                revenue=round(values["revenue"]),
                expenses=round(values["expenses"]),
                net_profit=round(values["revenue"] - values["expenses"]),
                order_count=int(values["order_count"]),
            ).model_dump(by_alias=True)
            for month, values in sorted(monthly.items())
        ][-TRAILING_MONTHS:]

        logger.info("monthly_trends_calculated", month_count=len(trends))

        return {
            "monthlyTrends": trends,
            "calculatedAt": datetime.utcnow().isoformat(),
            "computationTimeMs": _elapsed_ms(started),
        }

    async def calculate_expense_breakdown(self) -> Dict[str, Any]:
        """
        Calculate spend per active expense category.

        Categories keep the order in which they are first seen, so equal
        amounts stay in a stable order after the descending sort.

        Returns:
            Dict with expenseBreakdown (category, amount, count, percentage),
            totalExpenses, calculatedAt, computationTimeMs
        """
        started = time.perf_counter()
        logger.info("calculating_expense_breakdown")

        stmt = (
            select(Expense.amount, ExpenseCategory.name)
            .select_from(Expense)
            .outerjoin(ExpenseCategory, Expense.category_id == ExpenseCategory.id)
            .where(ExpenseCategory.is_active.is_(True))
            .order_by(Expense.expense_date, Expense.created_at)
        )
        rows = (await self.db.execute(stmt)).all()

        categories: Dict[str, Dict[str, float]] = {}
        for amount, category_name in rows:
            entry = categories.setdefault(category_name or UNCATEGORIZED, {"amount": 0.0, "count": 0})
            entry["amount"] += _to_float(amount)
            entry["count"] += 1

        total_expenses = sum(entry["amount"] for entry in categories.values())

        breakdown = sorted(
            (
                ExpenseCategoryShare(
                    category=name,
                    amount=round(entry["amount"]),
                    count=int(entry["count"]),
                    percentage=round(entry["amount"] / total_expenses * 100) if total_expenses > 0 else 0,
                ).model_dump(by_alias=True)
                for name, entry in categories.items()
            ),
            key=lambda item: item["amount"],
            reverse=True,
        )

        logger.info(
            "expense_breakdown_calculated",
            category_count=len(breakdown),
            total_expenses=total_expenses,
        )

        return {
            "expenseBreakdown": breakdown,
            "totalExpenses": round(total_expenses),
            "calculatedAt": datetime.utcnow().isoformat(),
            "computationTimeMs": _elapsed_ms(started),
        }

    async def calculate_top_products(self) -> Dict[str, Any]:
        """
        Calculate the 10 best-selling products by revenue.

        Products are identified by the name in each line item's snapshot, so
        renamed or deleted catalog rows do not split or lose history.

        Returns:
            Dict with topProducts (name, totalSold, revenue, averagePrice,
            orderCount), calculatedAt, computationTimeMs
        """
        started = time.perf_counter()
        logger.info("calculating_top_products")

        stmt = (
            select(
                OrderItem.product_snapshot,
                OrderItem.quantity,
                OrderItem.unit_price,
                OrderItem.total_price,
            )
            .select_from(OrderItem)
            .outerjoin(Order, OrderItem.order_id == Order.id)
            .where(Order.status != OrderStatus.CANCELLED)
        )
        rows = (await self.db.execute(stmt)).all()

        performance: Dict[str, Dict[str, float]] = {}
        for snapshot, quantity, unit_price, total_price in rows:
            name = _product_name(snapshot)
            entry = performance.setdefault(name, {"total_sold": 0, "revenue": 0.0, "count": 0})
            if total_price is None:
                line_revenue = _to_float(unit_price) * (quantity or 0)
            else:
                line_revenue = _to_float(total_price)
            entry["total_sold"] += quantity or 0
            entry["revenue"] += line_revenue
            entry["count"] += 1

        ranked = sorted(
            (
                TopProduct(
                    name=name,
                    total_sold=int(entry["total_sold"]),
                    revenue=round(entry["revenue"]),
                    average_price=round(entry["revenue"] / entry["total_sold"]) if entry["total_sold"] else 0,
                    order_count=int(entry["count"]),
                ).model_dump(by_alias=True)
                for name, entry in performance.items()
            ),
            key=lambda item: item["revenue"],
            reverse=True,
        )[:TOP_PRODUCTS_LIMIT]

        logger.info("top_products_calculated", product_count=len(performance))

        return {
            "topProducts": ranked,
            "calculatedAt": datetime.utcnow().isoformat(),
            "computationTimeMs": _elapsed_ms(started),
        }

    async def store_metric(self, metric_type: Union[MetricType, str], data: Dict[str, Any]) -> MetricSnapshot:
        """
        Upsert the snapshot for a metric type (unconditional overwrite).

        Args:
            metric_type: Metric to store
            data: Calculated payload

        Returns:
            Stored MetricSnapshot
        """
        key = metric_type.value if isinstance(metric_type, MetricType) else metric_type
        return await upsert_snapshot(self.db, key, data)

    async def get_cached_analytics(self) -> Dict[str, Any]:
        """
        All stored metric snapshots, most recently updated first.

        Returns:
            Mapping of metric type to calculated payload
        """
        stmt = (
            select(MetricSnapshot)
            .where(MetricSnapshot.metric_type.in_([metric.value for metric in MetricType]))
            .order_by(MetricSnapshot.updated_at.desc())
        )
        result = await self.db.execute(stmt)
        return {snapshot.metric_type: snapshot.calculated_data for snapshot in result.scalars().all()}

    async def get_analytics(self, metric_type: MetricType) -> Optional[Dict[str, Any]]:
        """
        Read a metric without computing it: memory mirror first, then storage.

        A payload loaded from storage is mirrored into memory but does not start
        a cooldown; only an actual recomputation does.
        """
        cached = self.cache.get(metric_type)
        if cached is not None:
            return cached

        stmt = select(MetricSnapshot).where(MetricSnapshot.metric_type == metric_type.value)
        snapshot = (await self.db.execute(stmt)).scalars().first()
        if snapshot is None:
            return None

        self.cache.remember(metric_type, snapshot.calculated_data)
        return snapshot.calculated_data

    async def get_refresh_metadata(self) -> Optional[RefreshRun]:
        """Most recent completed refresh run, if any."""
        stmt = (
            select(RefreshRun)
            .where(RefreshRun.status == RefreshStatus.COMPLETED)
            .order_by(RefreshRun.last_refresh_at.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    def is_stale(last_refresh_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
        """True when analytics were never refreshed or the last refresh is too old."""
        if last_refresh_at is None:
            return True
        now = now or datetime.utcnow()
        return now - last_refresh_at > timedelta(hours=settings.analytics_stale_after_hours)

    async def create_historical_snapshot(self, bundle: Dict[str, Any]) -> AnalyticsHistory:
        """Write a dated bundle of all metrics. Write-only: nothing reads it back here."""
        today = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        history = AnalyticsHistory(
            metric_type=HISTORY_METRIC_TYPE,
            calculated_data=bundle,
            snapshot_date=today,
        )
        self.db.add(history)
        await self.db.commit()
        logger.info("analytics_history_created", snapshot_date=today.date().isoformat())
        return history

    def get_cooldown_status(self) -> Dict[str, Dict[str, Any]]:
        """Per metric type: whether it can be refreshed and the remaining cooldown in ms."""
        return self.cache.cooldown_status()

    async def get_status(self) -> Dict[str, Any]:
        """Last refresh time, staleness and cooldown state for the status endpoint."""
        metadata = await self.get_refresh_metadata()
        last_refreshed = metadata.last_refresh_at if metadata else None
        cooldown_status = self.get_cooldown_status()
        return {
            "last_refreshed": last_refreshed,
            "is_stale": self.is_stale(last_refreshed),
            "cooldown_status": cooldown_status,
            "can_refresh": all(entry["canRefresh"] for entry in cooldown_status.values()),
        }

    async def refresh_analytics(
        self,
        metric_type: Union[MetricType, str],
        actor: Optional[str] = None,
    ) -> RefreshResult:
        """
        Recompute one metric unless it is cooling down.

        Steps: cooldown check, processing run, calculation, upsert, memory
        mirror + cooldown mark, run completed. Any failure after the cooldown
        check resolves the same run to failed and is returned, not raised.

        Args:
            metric_type: Metric to refresh
            actor: Who triggered the refresh (defaults to "system")

        Returns:
            RefreshResult with outcome completed, cooldown or error
        """
        actor = actor or DEFAULT_ACTOR
        metric = parse_metric_type(metric_type)
        label = metric.value if metric else str(metric_type)

        if metric is not None and not self.cache.can_refresh(metric):
            return self._cooldown_result(metric)

        run_id: Optional[UUID] = None
        started = time.perf_counter()
        try:
            with tracer.start_as_current_span("analytics.refresh", attributes={"metric_type": label}):
                run_id = await self._start_run(actor, label)
                if metric is None:
                    raise ValueError(f"Unknown metric type: {metric_type}")

                data = await self._calculate(metric)
                await self.store_metric(metric, data)
                self.cache.mark_refreshed(metric, data)

                duration_ms = _elapsed_ms(started)
                await self._complete_run(run_id, duration_ms)
        except Exception as e:
            logger.exception("analytics_refresh_failed", metric_type=label, actor=actor, error=str(e))
            await self._fail_run(run_id, actor, label, str(e), _elapsed_ms(started))
            analytics_refresh_total.labels(metric_type=label, outcome=RefreshOutcome.ERROR.value).inc()
            return RefreshResult(success=False, outcome=RefreshOutcome.ERROR, error=str(e))

        analytics_refresh_total.labels(metric_type=label, outcome=RefreshOutcome.COMPLETED.value).inc()
        analytics_refresh_duration_seconds.labels(metric_type=label).observe(duration_ms / 1000)
        logger.info("analytics_refresh_completed", metric_type=label, actor=actor, duration_ms=duration_ms)

        return RefreshResult(success=True, outcome=RefreshOutcome.COMPLETED, data=data)

    async def refresh_all_analytics(self, actor: Optional[str] = None) -> RefreshResult:
        """
        Recompute all four metrics together.

        Refused as a whole if any metric is cooling down. The calculations run
        concurrently; the four writes and cooldown marks are not atomic as a
        group. A dated history bundle is written on success.

        Args:
            actor: Who triggered the refresh (defaults to "system")

        Returns:
            RefreshResult whose data maps netRevenue, monthlyTrends,
            expenseBreakdown and topProducts to their payloads
        """
        actor = actor or DEFAULT_ACTOR

        for metric in MetricType:
            if not self.cache.can_refresh(metric):
                return self._cooldown_result(metric)

        run_id: Optional[UUID] = None
        started = time.perf_counter()
        try:
            with tracer.start_as_current_span("analytics.refresh_all"):
                run_id = await self._start_run(actor, None)

                results = await self._calculate_all()

                for metric, data in results.items():
                    await self.store_metric(metric, data)
                for metric, data in results.items():
                    self.cache.mark_refreshed(metric, data)

                bundle = {to_camel(metric.value): data for metric, data in results.items()}
                await self.create_historical_snapshot(bundle)

                duration_ms = _elapsed_ms(started)
                await self._complete_run(run_id, duration_ms)
        except Exception as e:
            logger.exception("analytics_refresh_all_failed", actor=actor, error=str(e))
            await self._fail_run(run_id, actor, None, str(e), _elapsed_ms(started))
            analytics_refresh_total.labels(metric_type="all", outcome=RefreshOutcome.ERROR.value).inc()
            return RefreshResult(success=False, outcome=RefreshOutcome.ERROR, error=str(e))

        analytics_refresh_total.labels(metric_type="all", outcome=RefreshOutcome.COMPLETED.value).inc()
        analytics_refresh_duration_seconds.labels(metric_type="all").observe(duration_ms / 1000)
        logger.info("analytics_refresh_all_completed", actor=actor, duration_ms=duration_ms)

        return RefreshResult(success=True, outcome=RefreshOutcome.COMPLETED, data=bundle)

    async def _calculate(self, metric: MetricType) -> Dict[str, Any]:
        return await METRIC_CALCULATORS[metric](self)

    async def _calculate_isolated(self, metric: MetricType) -> Dict[str, Any]:
        async with self.session_factory() as session:
            return await METRIC_CALCULATORS[metric](AnalyticsService(session, self.cache))

    async def _calculate_all(self) -> Dict[MetricType, Dict[str, Any]]:
        metrics: List[MetricType] = list(MetricType)
        if self.session_factory is None:
            # A single AsyncSession cannot run statements concurrently
            results = [await self._calculate(metric) for metric in metrics]
        else:
            # The first failure cancels the remaining calculations before it is re-raised
            try:
                async with asyncio.TaskGroup() as group:
                    tasks = [group.create_task(self._calculate_isolated(metric)) for metric in metrics]
            except ExceptionGroup as errors:
                raise errors.exceptions[0] from errors
            results = [task.result() for task in tasks]
        return dict(zip(metrics, results))

    def _cooldown_result(self, metric: MetricType) -> RefreshResult:
        remaining = self.cache.remaining_cooldown(metric)
        analytics_cooldown_rejections_total.labels(metric_type=metric.value).inc()
        analytics_refresh_total.labels(metric_type=metric.value, outcome=RefreshOutcome.COOLDOWN.value).inc()
        logger.info("analytics_refresh_cooldown", metric_type=metric.value, cooldown_remaining_ms=remaining)
        return RefreshResult(
            success=False,
            outcome=RefreshOutcome.COOLDOWN,
            error=COOLDOWN_MESSAGE,
            cooldown_remaining=remaining,
        )

    async def _start_run(self, actor: str, metric_type: Optional[str]) -> UUID:
        run = RefreshRun(
            status=RefreshStatus.PROCESSING,
            triggered_by=actor[:100],
            metric_type=metric_type,
        )
        self.db.add(run)
        await self.db.commit()
        return run.id

    async def _complete_run(self, run_id: UUID, duration_ms: int) -> None:
        await self.db.execute(
            update(RefreshRun)
            .where(RefreshRun.id == run_id, RefreshRun.status == RefreshStatus.PROCESSING)
            .values(
                status=RefreshStatus.COMPLETED,
                last_refresh_at=datetime.utcnow(),
                refresh_duration_ms=duration_ms,
            )
        )
        await self.db.commit()

    async def _fail_run(
        self,
        run_id: Optional[UUID],
        actor: str,
        metric_type: Optional[str],
        error: str,
        duration_ms: int,
    ) -> None:
        """Resolve the processing run to failed, or record a failed run if none was created."""
        try:
            await self.db.rollback()
            if run_id is None:
                self.db.add(
                    RefreshRun(
                        status=RefreshStatus.FAILED,
                        triggered_by=actor[:100],
                        metric_type=metric_type,
                        refresh_duration_ms=duration_ms,
                        error_message=error,
                    )
                )
            else:
                await self.db.execute(
                    update(RefreshRun)
                    .where(RefreshRun.id == run_id, RefreshRun.status == RefreshStatus.PROCESSING)
                    .values(
                        status=RefreshStatus.FAILED,
                        refresh_duration_ms=duration_ms,
                        error_message=error,
                    )
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("analytics_refresh_failure_not_recorded", run_id=str(run_id), error=str(e))


MetricCalculator = Callable[[AnalyticsService], Awaitable[Dict[str, Any]]]

METRIC_CALCULATORS: Dict[MetricType, MetricCalculator] = {
    MetricType.NET_REVENUE: AnalyticsService.calculate_net_revenue,
    MetricType.MONTHLY_TRENDS: AnalyticsService.calculate_monthly_trends,
    MetricType.EXPENSE_BREAKDOWN: AnalyticsService.calculate_expense_breakdown,
    MetricType.TOP_PRODUCTS: AnalyticsService.calculate_top_products,
}

_missing_calculators = set(MetricType) - set(METRIC_CALCULATORS)
if _missing_calculators:
    raise RuntimeError(f"No calculator registered for: {sorted(m.value for m in _missing_calculators)}")
