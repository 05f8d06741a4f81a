"""
Client-side cache for admin API reads.

Two layers:
- an in-memory map owning the live copy of every entry
- a persistent mirror (see charmshop.client.storage) for the six CacheKey values

Entries are valid while `now - timestamp <= ttl`. Expired entries are evicted
lazily on the next read; there is no background sweep. Storage faults (quota,
serialization, corrupted entries) are logged and swallowed so a cache problem
costs at most an extra request.
"""
import json
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

import structlog

from charmshop.client.storage import MemoryStorage, Storage, StorageError

logger = structlog.get_logger(__name__)

CACHE_VERSION = "1.0.0"
STORAGE_PREFIX = "cache_"

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS

DEFAULT_TTL = 5 * MINUTE_MS


class CacheKey(str, Enum):
    """Logical keys allowed in the persistent mirror."""

    DASHBOARD_WIDGETS = "DASHBOARD_WIDGETS"
    ANALYTICS_DATA = "ANALYTICS_DATA"
    ANALYTICS_STATUS = "ANALYTICS_STATUS"
    PRODUCTS_LIST = "PRODUCTS_LIST"
    ORDERS_LIST = "ORDERS_LIST"
    EXPENSES_LIST = "EXPENSES_LIST"


class ChangeType(str, Enum):
    """Kinds of mutations that make cached reads stale."""

    PRODUCT = "product"
    ORDER = "order"
    EXPENSE = "expense"
    ANALYTICS = "analytics"


class NavigationType(str, Enum):
    """How the current session was started (mirrors the browser navigation types)."""

    NAVIGATE = "navigate"
    RELOAD = "reload"
    BACK_FORWARD = "back_forward"


class CacheSource(str, Enum):
    MEMORY = "memory"
    STORAGE = "storage"


CACHE_TTLS: Dict[CacheKey, int] = {
    CacheKey.DASHBOARD_WIDGETS: 2 * HOUR_MS,
    CacheKey.ANALYTICS_DATA: 2 * HOUR_MS,
    CacheKey.ANALYTICS_STATUS: 30 * MINUTE_MS,
    CacheKey.PRODUCTS_LIST: 10 * MINUTE_MS,
    CacheKey.ORDERS_LIST: 10 * MINUTE_MS,
    CacheKey.EXPENSES_LIST: 10 * MINUTE_MS,
}

# Every read path derived from these entities must be listed here
INVALIDATION_MAP: Dict[ChangeType, List[CacheKey]] = {
    ChangeType.PRODUCT: [CacheKey.PRODUCTS_LIST, CacheKey.DASHBOARD_WIDGETS],
    ChangeType.ORDER: [CacheKey.ORDERS_LIST, CacheKey.DASHBOARD_WIDGETS, CacheKey.ANALYTICS_DATA],
    ChangeType.EXPENSE: [CacheKey.EXPENSES_LIST, CacheKey.DASHBOARD_WIDGETS, CacheKey.ANALYTICS_DATA],
    ChangeType.ANALYTICS: [CacheKey.ANALYTICS_DATA, CacheKey.ANALYTICS_STATUS],
}

PERSISTABLE_KEYS = frozenset(key.value for key in CacheKey)

KeyLike = Union[CacheKey, str]


def _epoch_ms() -> float:
    return time.time() * 1000


def _key_name(key: KeyLike) -> str:
    return key.value if isinstance(key, CacheKey) else str(key)


@dataclass
class CacheEntry:
    data: Any
    timestamp: float
    ttl: int
    source: str = CacheSource.MEMORY.value
    version: str = CACHE_VERSION

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_valid(self, now: float) -> bool:
        return self.age(now) <= self.ttl


class CacheService:
    """
    Dual-layer cache with TTL expiry and mutation-driven invalidation.

    Construct one per client session and pass it to whatever needs it.
    """

    def __init__(
        self,
        storage: Optional[Storage] = None,
        clock: Callable[[], float] = _epoch_ms,
        navigation: Optional[Callable[[], Union[NavigationType, str]]] = None,
    ):
        """
        Initialize the cache.

        Args:
            storage: Persistent mirror; defaults to an in-process MemoryStorage
            clock: Returns the current time in epoch milliseconds
            navigation: Reports how the session started, used by clear_on_hard_reload
        """
        self.storage = storage if storage is not None else MemoryStorage()
        self._clock = clock
        self._navigation = navigation
        self._memory: Dict[str, CacheEntry] = {}

    @staticmethod
    def storage_key(key: KeyLike) -> str:
        return f"{STORAGE_PREFIX}{_key_name(key)}"

    @staticmethod
    def is_persistable(key: KeyLike) -> bool:
        return _key_name(key) in PERSISTABLE_KEYS

    @staticmethod
    def default_ttl(key: KeyLike) -> int:
        name = _key_name(key)
        if name in PERSISTABLE_KEYS:
            return CACHE_TTLS[CacheKey(name)]
        return DEFAULT_TTL

    def set(self, key: KeyLike, data: Any, ttl: Optional[int] = None, persistent: bool = False) -> None:
        """
        Cache data under key.

        Args:
            key: Cache key
            data: JSON-serializable value
            ttl: Lifetime in milliseconds (defaults to the key's configured TTL)
            persistent: Also mirror into storage when the key is allow-listed
        """
        name = _key_name(key)
        entry = CacheEntry(
            data=data,
            timestamp=self._clock(),
            ttl=self.default_ttl(name) if ttl is None else ttl,
        )
        self._memory[name] = entry

        if persistent and self.is_persistable(name):
            self._write_storage(name, entry)

        logger.debug("client_cache_set", key=name, ttl=entry.ttl, persistent=persistent)

    def get(self, key: KeyLike) -> Optional[Any]:
        """Cached data for key, or None when absent or expired."""
        name = _key_name(key)
        now = self._clock()

        entry = self._memory.get(name)
        if entry is not None:
            if entry.is_valid(now):
                return entry.data
            self._evict(name)
            logger.debug("client_cache_expired", key=name, source=entry.source)
            return None

        if not self.is_persistable(name):
            return None

        entry = self._read_storage(name)
        if entry is None:
            return None
        if not entry.is_valid(now):
            self._remove_storage(name)
            logger.debug("client_cache_expired", key=name, source=CacheSource.STORAGE.value)
            return None

        entry.source = CacheSource.STORAGE.value
        self._memory[name] = entry
        logger.debug("client_cache_rehydrated", key=name)
        return entry.data

    def clear(self, key: Optional[KeyLike] = None) -> None:
        """Remove key from both layers, or everything when key is None."""
        if key is not None:
            self._evict(_key_name(key))
            return

        self._memory.clear()
        for name in PERSISTABLE_KEYS:
            self._remove_storage(name)
        logger.info("client_cache_cleared")

    def get_cache_status(self, key: KeyLike) -> Dict[str, Any]:
        """
        Describe the entry for key without touching it.

        Returns:
            Dict with hasCache, age (ms), isStale, source and lastUpdated
        """
        name = _key_name(key)
        now = self._clock()

        entry = self._memory.get(name)
        source = CacheSource.MEMORY.value
        if entry is None and self.is_persistable(name):
            entry = self._read_storage(name, evict_invalid=False)
            source = CacheSource.STORAGE.value

        if entry is None:
            return {"hasCache": False, "age": None, "isStale": True, "source": None, "lastUpdated": None}

        return {
            "hasCache": True,
            "age": entry.age(now),
            "isStale": not entry.is_valid(now),
            "source": source,
            "lastUpdated": datetime.fromtimestamp(entry.timestamp / 1000),
        }

    def invalidate_on_data_change(self, change_type: Union[ChangeType, str]) -> List[str]:
        """
        Drop every cached read affected by a mutation.

        Returns:
            Names of the keys that were cleared
        """
        try:
            change = ChangeType(change_type)
        except ValueError:
            logger.warning("client_cache_unknown_change_type", change_type=str(change_type))
            return []

        cleared = [key.value for key in INVALIDATION_MAP[change]]
        for name in cleared:
            self._evict(name)

        logger.info("client_cache_invalidated", change_type=change.value, keys=cleared)
        return cleared

    def clear_on_hard_reload(self) -> bool:
        """
        Clear persisted entries when the session started with a hard reload.

        Soft navigation keeps the persistent cache. Returns True if entries were cleared.
        """
        if self._navigation is None:
            return False

        try:
            navigation = NavigationType(self._navigation())
        except ValueError:
            return False

        if navigation != NavigationType.RELOAD:
            return False

        for name in PERSISTABLE_KEYS:
            self._memory.pop(name, None)
            self._remove_storage(name)
        logger.info("client_cache_cleared_on_reload")
        return True

    def _evict(self, name: str) -> None:
        self._memory.pop(name, None)
        if self.is_persistable(name):
            self._remove_storage(name)

    def _write_storage(self, name: str, entry: CacheEntry) -> None:
        record = asdict(entry)
        record["source"] = CacheSource.STORAGE.value
        try:
            self.storage.set_item(self.storage_key(name), json.dumps(record))
        except (TypeError, ValueError) as e:
            logger.warning("client_cache_serialization_failed", key=name, error=str(e))
        except StorageError as e:
            # Memory copy stays valid; only the mirror is lost
            logger.warning("client_cache_storage_write_failed", key=name, error=str(e))

    def _read_storage(self, name: str, evict_invalid: bool = True) -> Optional[CacheEntry]:
        """Persisted entry for name; corrupted or outdated records count as absent."""
        storage_key = self.storage_key(name)
        try:
            raw = self.storage.get_item(storage_key)
        except StorageError as e:
            logger.warning("client_cache_storage_read_failed", key=name, error=str(e))
            return None
        if raw is None:
            return None

        try:
            record = json.loads(raw)
            entry = CacheEntry(
                data=record["data"],
                timestamp=float(record["timestamp"]),
                ttl=int(record["ttl"]),
                source=CacheSource.STORAGE.value,
                version=record.get("version", ""),
            )
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            logger.warning("client_cache_entry_corrupted", key=name, error=str(e))
            entry = None

        if entry is None or entry.version != CACHE_VERSION:
            if evict_invalid:
                self._remove_storage(name)
            return None
        return entry

    def _remove_storage(self, name: str) -> None:
        try:
            self.storage.remove_item(self.storage_key(name))
        except StorageError as e:
            logger.warning("client_cache_storage_remove_failed", key=name, error=str(e))
