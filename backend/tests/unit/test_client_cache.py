"""Unit tests for the dual-layer client cache."""
import json

import pytest

from charmshop.client.cache import (
    CACHE_VERSION,
    CacheKey,
    CacheService,
    ChangeType,
    NavigationType,
)
from charmshop.client.storage import FileStorage, MemoryStorage
from tests.conftest import FakeClock


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def cache(storage: MemoryStorage, clock: FakeClock) -> CacheService:
    return CacheService(storage=storage, clock=clock)


def _populate(cache: CacheService, *keys: CacheKey) -> None:
    for key in keys:
        cache.set(key, {"key": key.value}, persistent=True)


def test_set_then_get_until_ttl_expires(cache: CacheService, storage: MemoryStorage, clock: FakeClock) -> None:
    """Test an entry is served while fresh and evicted from both layers once expired."""
    cache.set(CacheKey.ORDERS_LIST, {"x": 1}, ttl=1000, persistent=True)
    assert cache.get(CacheKey.ORDERS_LIST) == {"x": 1}
    assert storage.get_item("cache_ORDERS_LIST") is not None

    clock.advance(1000)
    assert cache.get(CacheKey.ORDERS_LIST) == {"x": 1}

    clock.advance(1)
    assert cache.get(CacheKey.ORDERS_LIST) is None
    assert storage.get_item("cache_ORDERS_LIST") is None
    assert cache.get_cache_status(CacheKey.ORDERS_LIST)["hasCache"] is False


def test_default_ttl_per_key(cache: CacheService, clock: FakeClock) -> None:
    """Test configured lifetimes: widgets last two hours, lists ten minutes."""
    cache.set(CacheKey.DASHBOARD_WIDGETS, {"w": 1})
    cache.set(CacheKey.PRODUCTS_LIST, [1, 2])

    clock.advance(11 * 60 * 1000)

    assert cache.get(CacheKey.DASHBOARD_WIDGETS) == {"w": 1}
    assert cache.get(CacheKey.PRODUCTS_LIST) is None


def test_non_allow_listed_key_stays_in_memory(cache: CacheService, storage: MemoryStorage) -> None:
    """Test arbitrary keys are cached in memory only, even when persistence is requested."""
    cache.set("order_detail_42", {"id": 42}, persistent=True)

    assert cache.get("order_detail_42") == {"id": 42}
    assert list(storage.keys()) == []


def test_rehydrates_from_storage(storage: MemoryStorage, clock: FakeClock) -> None:
    """Test a new session picks up persisted entries and reports them as coming from storage."""
    CacheService(storage=storage, clock=clock).set(CacheKey.ANALYTICS_DATA, {"net": 70}, persistent=True)

    fresh = CacheService(storage=storage, clock=clock)
    status = fresh.get_cache_status(CacheKey.ANALYTICS_DATA)
    assert status["hasCache"] is True
    assert status["source"] == "storage"

    assert fresh.get(CacheKey.ANALYTICS_DATA) == {"net": 70}


def test_invalidate_order_fan_out(cache: CacheService) -> None:
    """Test an order change drops orders, widgets and analytics but keeps products."""
    _populate(
        cache,
        CacheKey.ORDERS_LIST,
        CacheKey.DASHBOARD_WIDGETS,
        CacheKey.ANALYTICS_DATA,
        CacheKey.PRODUCTS_LIST,
    )

    cleared = cache.invalidate_on_data_change(ChangeType.ORDER)

    assert cleared == ["ORDERS_LIST", "DASHBOARD_WIDGETS", "ANALYTICS_DATA"]
    assert cache.get(CacheKey.ORDERS_LIST) is None
    assert cache.get(CacheKey.DASHBOARD_WIDGETS) is None
    assert cache.get(CacheKey.ANALYTICS_DATA) is None
    assert cache.get(CacheKey.PRODUCTS_LIST) == {"key": "PRODUCTS_LIST"}


@pytest.mark.parametrize(
    "change_type,cleared,kept",
    [
        ("product", {"PRODUCTS_LIST", "DASHBOARD_WIDGETS"}, {"ANALYTICS_DATA", "EXPENSES_LIST"}),
        ("expense", {"EXPENSES_LIST", "DASHBOARD_WIDGETS", "ANALYTICS_DATA"}, {"ORDERS_LIST"}),
        ("analytics", {"ANALYTICS_DATA", "ANALYTICS_STATUS"}, {"DASHBOARD_WIDGETS"}),
    ],
)
def test_invalidate_fan_out_per_change_type(
    cache: CacheService, change_type: str, cleared: set, kept: set
) -> None:
    """Test each change type clears exactly its dependent keys."""
    _populate(cache, *CacheKey)

    assert set(cache.invalidate_on_data_change(change_type)) == cleared
    for name in cleared:
        assert cache.get(name) is None
    for name in kept:
        assert cache.get(name) is not None


def test_invalidate_unknown_change_type(cache: CacheService) -> None:
    """Test an unknown change type clears nothing."""
    _populate(cache, CacheKey.PRODUCTS_LIST)

    assert cache.invalidate_on_data_change("supplier") == []
    assert cache.get(CacheKey.PRODUCTS_LIST) is not None


def test_clear_all_is_idempotent(cache: CacheService, storage: MemoryStorage) -> None:
    """Test clearing twice leaves both layers empty and does not fail."""
    _populate(cache, *CacheKey)
    cache.set("scratch", 1)

    cache.clear()
    cache.clear()

    assert list(storage.keys()) == []
    assert cache.get("scratch") is None
    assert all(cache.get(key) is None for key in CacheKey)


def test_clear_single_key(cache: CacheService, storage: MemoryStorage) -> None:
    """Test clearing one key leaves the others in place."""
    _populate(cache, CacheKey.ORDERS_LIST, CacheKey.EXPENSES_LIST)

    cache.clear(CacheKey.ORDERS_LIST)

    assert storage.get_item("cache_ORDERS_LIST") is None
    assert cache.get(CacheKey.EXPENSES_LIST) is not None


def test_cache_status_does_not_evict(cache: CacheService, storage: MemoryStorage, clock: FakeClock) -> None:
    """Test status reports an expired entry as stale without removing it."""
    cache.set(CacheKey.ANALYTICS_STATUS, {"ok": True}, ttl=1000, persistent=True)
    clock.advance(1500)

    status = cache.get_cache_status(CacheKey.ANALYTICS_STATUS)

    assert status["hasCache"] is True
    assert status["isStale"] is True
    assert status["age"] == 1500
    assert status["source"] == "memory"
    assert storage.get_item("cache_ANALYTICS_STATUS") is not None


def test_cache_status_missing_key(cache: CacheService) -> None:
    """Test status of a key that was never cached."""
    assert cache.get_cache_status(CacheKey.ORDERS_LIST) == {
        "hasCache": False,
        "age": None,
        "isStale": True,
        "source": None,
        "lastUpdated": None,
    }


def test_quota_exceeded_keeps_memory_copy(clock: FakeClock) -> None:
    """Test a full store only loses the persistent mirror."""
    storage = MemoryStorage(quota_bytes=10)
    cache = CacheService(storage=storage, clock=clock)

    cache.set(CacheKey.PRODUCTS_LIST, [{"name": "Heart Charm"}], persistent=True)

    assert cache.get(CacheKey.PRODUCTS_LIST) == [{"name": "Heart Charm"}]
    assert list(storage.keys()) == []


def test_unserializable_value_not_persisted(cache: CacheService, storage: MemoryStorage) -> None:
    """Test values that cannot be serialized stay in memory without raising."""
    marker = object()
    cache.set(CacheKey.ORDERS_LIST, marker, persistent=True)

    assert cache.get(CacheKey.ORDERS_LIST) is marker
    assert storage.get_item("cache_ORDERS_LIST") is None


def test_corrupted_entry_treated_as_absent(storage: MemoryStorage, clock: FakeClock) -> None:
    """Test garbage in storage is removed and reported as a miss."""
    storage.set_item("cache_EXPENSES_LIST", "{not json")
    cache = CacheService(storage=storage, clock=clock)

    assert cache.get(CacheKey.EXPENSES_LIST) is None
    assert storage.get_item("cache_EXPENSES_LIST") is None


def test_outdated_version_treated_as_absent(storage: MemoryStorage, clock: FakeClock) -> None:
    """Test entries written by another cache version are ignored."""
    record = {"data": [1], "timestamp": clock(), "ttl": 60000, "source": "storage", "version": "0.9.0"}
    storage.set_item("cache_ORDERS_LIST", json.dumps(record))
    cache = CacheService(storage=storage, clock=clock)

    assert cache.get(CacheKey.ORDERS_LIST) is None

    record["version"] = CACHE_VERSION
    storage.set_item("cache_ORDERS_LIST", json.dumps(record))
    assert cache.get(CacheKey.ORDERS_LIST) == [1]


def test_hard_reload_clears_persisted_entries(storage: MemoryStorage, clock: FakeClock) -> None:
    """Test a reload navigation wipes the persistent mirror while soft navigation keeps it."""
    CacheService(storage=storage, clock=clock).set(CacheKey.DASHBOARD_WIDGETS, {"w": 1}, persistent=True)

    soft = CacheService(storage=storage, clock=clock, navigation=lambda: NavigationType.NAVIGATE)
    assert soft.clear_on_hard_reload() is False
    assert soft.get(CacheKey.DASHBOARD_WIDGETS) == {"w": 1}

    hard = CacheService(storage=storage, clock=clock, navigation=lambda: "reload")
    assert hard.clear_on_hard_reload() is True
    assert hard.get(CacheKey.DASHBOARD_WIDGETS) is None
    assert list(storage.keys()) == []


def test_file_storage_round_trip(tmp_path, clock: FakeClock) -> None:
    """Test the file-backed store survives a new cache instance and honours removal."""
    storage = FileStorage(tmp_path / "cache")
    CacheService(storage=storage, clock=clock).set(CacheKey.ORDERS_LIST, [{"id": "o-1"}], persistent=True)

    assert list(storage.keys()) == ["cache_ORDERS_LIST"]
    assert CacheService(storage=FileStorage(tmp_path / "cache"), clock=clock).get(CacheKey.ORDERS_LIST) == [
        {"id": "o-1"}
    ]

    storage.remove_item("cache_ORDERS_LIST")
    storage.remove_item("cache_ORDERS_LIST")
    assert storage.get_item("cache_ORDERS_LIST") is None


def test_file_storage_quota(tmp_path, clock: FakeClock) -> None:
    """Test the file store refuses writes over its quota and the cache carries on."""
    storage = FileStorage(tmp_path, quota_bytes=32)
    cache = CacheService(storage=storage, clock=clock)

    cache.set(CacheKey.ORDERS_LIST, ["x" * 100], persistent=True)

    assert cache.get(CacheKey.ORDERS_LIST) == ["x" * 100]
    assert list(storage.keys()) == []
