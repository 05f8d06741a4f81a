"""
Async client for the admin API with cached reads.

Reads of dashboard widgets, analytics and entity lists go through CacheService;
every successful mutation calls `invalidate_on_data_change` for its entity so
dependent reads are fetched again.
"""
from typing import Any, Dict, Optional

import httpx
import structlog

from charmshop.client.cache import CacheKey, CacheService, ChangeType
from charmshop.config import settings

logger = structlog.get_logger(__name__)

ADMIN_PREFIX = "/api/admin"

LIST_KEYS = {
    "products": (CacheKey.PRODUCTS_LIST, ChangeType.PRODUCT),
    "orders": (CacheKey.ORDERS_LIST, ChangeType.ORDER),
    "expenses": (CacheKey.EXPENSES_LIST, ChangeType.EXPENSE),
}


class AdminApiError(Exception):
    """The admin API answered with an error status."""

    def __init__(self, status_code: int, message: str, body: Optional[Dict[str, Any]] = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.body = body or {}


class AdminApiClient:
    """
    Admin API client.

    Usage:
        async with AdminApiClient(cache=CacheService()) as client:
            widgets = await client.get_dashboard_widgets()
    """

    def __init__(
        self,
        cache: CacheService,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cache = cache
        headers = {"Accept": "application/json"}
        token = token or settings.api_token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            headers=headers,
            timeout=timeout or settings.api_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "AdminApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = await self._client.request(method, f"{ADMIN_PREFIX}{path}", **kwargs)
        logger.debug("admin_api_request", method=method, path=path, status_code=response.status_code)
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.is_error:
            message = body.get("error") or body.get("message") or response.reason_phrase
            raise AdminApiError(response.status_code, str(message), body)
        return body

    async def _cached_get(self, key: CacheKey, path: str, use_cache: bool = True, **kwargs) -> Any:
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("admin_api_cache_hit", key=key.value)
                return cached

        body = self._json(await self._request("GET", path, **kwargs))
        data = body.get("data")
        self.cache.set(key, data, persistent=True)
        return data

    # Analytics

    async def get_analytics_status(self, use_cache: bool = True) -> Dict[str, Any]:
        return await self._cached_get(CacheKey.ANALYTICS_STATUS, "/analytics/status", use_cache)

    async def get_analytics_data(self, use_cache: bool = True) -> Dict[str, Any]:
        """Stored metric payloads (net revenue, trends, breakdown, top products)."""
        return await self._cached_get(CacheKey.ANALYTICS_DATA, "/analytics/cached", use_cache)

    async def get_period_analytics(self, period: str = "This Month") -> Dict[str, Any]:
        """Ad hoc period report. Not cached: it is recomputed server side on every call."""
        body = self._json(await self._request("GET", "/analytics", params={"period": period}))
        return body.get("data")

    async def refresh_analytics(self, metric_type: Optional[str] = None) -> Dict[str, Any]:
        """
        Ask the server to recompute analytics.

        A cooldown rejection (429) is returned as a body with success=False and
        cooldownRemaining rather than raised.
        """
        path = "/analytics/refresh" if metric_type is None else f"/analytics/refresh/{metric_type}"
        response = await self._request("POST", path)

        if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
            body = response.json()
            logger.info("admin_api_refresh_cooldown", cooldown_remaining_ms=body.get("cooldownRemaining"))
            return body

        body = self._json(response)
        self.cache.invalidate_on_data_change(ChangeType.ANALYTICS)
        return body

    # Dashboard

    async def get_dashboard_widgets(self, use_cache: bool = True) -> Dict[str, Any]:
        return await self._cached_get(CacheKey.DASHBOARD_WIDGETS, "/dashboard/widgets", use_cache)

    async def refresh_dashboard_widgets(self) -> Dict[str, Any]:
        """Force the server to recompute widgets, bypassing and then replacing the cached copy."""
        body = self._json(await self._request("POST", "/dashboard/widgets/refresh"))
        data = body.get("data")
        self.cache.set(CacheKey.DASHBOARD_WIDGETS, data, persistent=True)
        return data

    # Entity lists and mutations

    async def list_resource(self, resource: str, use_cache: bool = True, **params) -> Any:
        """
        List products, orders or expenses.

        Only the unfiltered list is cached; filtered queries always go to the server.
        """
        key, _change = LIST_KEYS[resource]
        if params:
            body = self._json(await self._request("GET", f"/{resource}", params=params))
            return body.get("data")
        return await self._cached_get(key, f"/{resource}", use_cache)

    async def create_resource(self, resource: str, payload: Dict[str, Any]) -> Any:
        return await self._mutate("POST", resource, f"/{resource}", json=payload)

    async def update_resource(self, resource: str, resource_id: str, payload: Dict[str, Any]) -> Any:
        return await self._mutate("PUT", resource, f"/{resource}/{resource_id}", json=payload)

    async def delete_resource(self, resource: str, resource_id: str) -> Any:
        return await self._mutate("DELETE", resource, f"/{resource}/{resource_id}")

    async def _mutate(self, method: str, resource: str, path: str, **kwargs) -> Any:
        _key, change = LIST_KEYS[resource]
        body = self._json(await self._request(method, path, **kwargs))
        self.cache.invalidate_on_data_change(change)
        return body.get("data")
