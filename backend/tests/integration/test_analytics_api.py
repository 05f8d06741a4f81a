"""Integration tests for the admin analytics HTTP endpoints."""
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from charmshop.api.deps import get_current_user
from charmshop.auth.jwt import jwt_auth
from charmshop.main import app
from tests.conftest import FakeClock
from tests.utils.factories import create_category, create_expense, create_order, create_product

ANALYTICS = "/api/admin/analytics"


@pytest.mark.asyncio
async def test_refresh_all_then_cooldown(async_client: AsyncClient, db_session: AsyncSession) -> None:
    """Test the first refresh succeeds and an immediate second one gets 429 with the remaining wait."""
    await create_order(db_session, total_amount=Decimal("2500.00"))

    first = await async_client.post(f"{ANALYTICS}/refresh")
    assert first.status_code == 200
    body = first.json()
    assert body["success"] is True
    assert body["data"]["netRevenue"]["totalRevenue"] == 2500
    assert body["cooldownStatus"]["net_revenue"]["canRefresh"] is False

    second = await async_client.post(f"{ANALYTICS}/refresh")
    assert second.status_code == 429
    body = second.json()
    assert body["success"] is False
    assert 0 < body["cooldownRemaining"] <= 5 * 60 * 1000
    assert "rate limited" in body["error"]
    assert int(second.headers["Retry-After"]) == 300


@pytest.mark.asyncio
async def test_refresh_single_metric(async_client: AsyncClient, clock: FakeClock) -> None:
    """Test refreshing one metric, its cooldown, and the retry once the window passed."""
    response = await async_client.post(f"{ANALYTICS}/refresh/top_products")
    assert response.status_code == 200
    assert response.json()["message"] == "top_products refreshed successfully"

    clock.advance(4 * 60 * 1000)
    response = await async_client.post(f"{ANALYTICS}/refresh/top_products")
    assert response.status_code == 429
    assert response.json()["cooldownRemaining"] == 60 * 1000
    assert response.headers["Retry-After"] == "60"

    clock.advance(60 * 1000)
    response = await async_client.post(f"{ANALYTICS}/refresh/top_products")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_refresh_unknown_metric_returns_400(async_client: AsyncClient) -> None:
    """Test an unknown metric in the path is a client error."""
    response = await async_client.post(f"{ANALYTICS}/refresh/gross_margin")

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "Unknown metric type" in body["message"]


@pytest.mark.asyncio
async def test_status_endpoint(async_client: AsyncClient) -> None:
    """Test status before any refresh reports stale data and every metric refreshable."""
    response = await async_client.get(f"{ANALYTICS}/status")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["lastRefreshed"] is None
    assert data["isStale"] is True
    assert data["canRefresh"] is True
    assert set(data["cooldownStatus"]) == {"net_revenue", "monthly_trends", "expense_breakdown", "top_products"}

    await async_client.post(f"{ANALYTICS}/refresh/net_revenue")
    data = (await async_client.get(f"{ANALYTICS}/status")).json()["data"]
    assert data["lastRefreshed"] is not None
    assert data["isStale"] is False
    assert data["canRefresh"] is False
    assert data["cooldownStatus"]["net_revenue"]["remainingMs"] > 0


@pytest.mark.asyncio
async def test_cached_and_live_endpoints(async_client: AsyncClient, db_session: AsyncSession) -> None:
    """Test cached returns stored payloads and live returns current counts."""
    await create_product(db_session)
    await create_order(db_session)
    category = await create_category(db_session)
    await create_expense(db_session, category)

    response = await async_client.get(f"{ANALYTICS}/cached")
    assert response.status_code == 200
    assert response.json()["data"] == {}

    await async_client.post(f"{ANALYTICS}/refresh/expense_breakdown")
    cached = (await async_client.get(f"{ANALYTICS}/cached")).json()["data"]
    assert list(cached) == ["expense_breakdown"]

    live = (await async_client.get(f"{ANALYTICS}/live")).json()["data"]
    assert live["totalProducts"] == 1
    assert live["totalOrders"] == 1
    assert live["totalExpenses"] == 1


@pytest.mark.asyncio
async def test_period_report_endpoint(async_client: AsyncClient, db_session: AsyncSession) -> None:
    """Test the ad hoc report envelope; an unknown period falls back to This Month."""
    await create_order(db_session, total_amount=Decimal("1500.00"))

    response = await async_client.get(ANALYTICS, params={"period": "This Year"})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Analytics data retrieved successfully"
    assert body["data"]["summary"]["totalRevenue"] == 1500

    fallback = await async_client.get(ANALYTICS, params={"period": "Since Forever"})
    assert fallback.status_code == 200
    assert fallback.json()["data"]["summary"]["totalRevenue"] == 1500


@pytest.mark.asyncio
async def test_requires_authentication(async_client: AsyncClient) -> None:
    """Test analytics endpoints reject requests without a bearer token."""
    app.dependency_overrides.pop(get_current_user, None)

    response = await async_client.get(f"{ANALYTICS}/status")

    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "AuthenticationError"


@pytest.mark.asyncio
async def test_accepts_valid_token(async_client: AsyncClient) -> None:
    """Test a signed access token is accepted and an invalid one is not."""
    app.dependency_overrides.pop(get_current_user, None)
    token = jwt_auth.create_access_token("admin-1", email="admin@charmshop.test")

    response = await async_client.get(f"{ANALYTICS}/status", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200

    response = await async_client.get(f"{ANALYTICS}/status", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_health_endpoints(async_client: AsyncClient) -> None:
    """Test liveness and readiness probes."""
    response = await async_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    response = await async_client.get("/health/ready")
    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "connected"


@pytest.mark.asyncio
async def test_request_id_header(async_client: AsyncClient) -> None:
    """Test the request id is echoed back, or generated when absent."""
    response = await async_client.get("/health", headers={"X-Request-ID": "req_test123"})
    assert response.headers["X-Request-ID"] == "req_test123"

    response = await async_client.get("/health")
    assert response.headers["X-Request-ID"].startswith("req_")
