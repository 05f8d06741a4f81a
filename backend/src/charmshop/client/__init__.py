"""Admin API client with a dual-layer response cache."""

from charmshop.client.api import AdminApiClient, AdminApiError
from charmshop.client.cache import CacheKey, CacheService, ChangeType, NavigationType
from charmshop.client.storage import FileStorage, MemoryStorage, QuotaExceededError, StorageError

__all__ = [
    "AdminApiClient",
    "AdminApiError",
    "CacheKey",
    "CacheService",
    "ChangeType",
    "NavigationType",
    "FileStorage",
    "MemoryStorage",
    "QuotaExceededError",
    "StorageError",
]
