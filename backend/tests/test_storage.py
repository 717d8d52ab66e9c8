"""
Tests: settings stores, configured parameters and the matrix read cache.

Run with:
    pytest backend/tests/test_storage.py -v
"""

import json

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from book_pricing.services.cache import TTLCache
from book_pricing.services.parameters import (
    BOOK_SIZES_KEY,
    PAPER_TYPES_KEY,
    ConfiguredParameters,
    SettingsParameterProvider,
)
from book_pricing.services.storage import InMemoryStore, SettingsStore


@pytest.fixture
def sql_store():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    store = SettingsStore(engine)
    store.create_tables()
    return store


class TestSettingsStore:

    def test_set_get_overwrite(self, sql_store):
        assert sql_store.get("k") is None
        sql_store.set("k", "v1")
        sql_store.set("k", "v2")
        assert sql_store.get("k") == "v2"

    def test_list_keys_treats_prefix_literally(self, sql_store):
        sql_store.set("pricing_matrix_QTU=", "{}")
        sql_store.set("pricingXmatrixYB5", "{}")
        sql_store.set("book_sizes", "[]")
        assert sql_store.list_keys("pricing_matrix_") == ["pricing_matrix_QTU="]

    def test_delete_many(self, sql_store):
        for key in ("a", "b", "c"):
            sql_store.set(key, "1")
        assert sql_store.delete_many(["a", "b", "missing"]) == 2
        assert sql_store.delete_many([]) == 0
        assert sql_store.delete("c")
        assert not sql_store.delete("c")
        assert sql_store.list_keys("") == []

    def test_ping(self, sql_store):
        assert sql_store.ping()


class TestInMemoryStore:

    def test_basic_operations(self):
        store = InMemoryStore({"x_1": "a", "y_1": "b"})
        assert store.list_keys("x_") == ["x_1"]
        store.set("x_2", "c")
        assert store.delete_many(["x_1", "x_2", "nope"]) == 2
        assert store.get("y_1") == "b"


class TestSettingsParameterProvider:

    def test_save_and_load(self):
        provider = SettingsParameterProvider(InMemoryStore())
        params = ConfiguredParameters(book_sizes=["رقعی (14×20)"], paper_types={"تحریر": [70, 80]})
        provider.save(params)

        loaded = provider.load()
        assert loaded.book_sizes == ["رقعی (14×20)"]
        assert loaded.paper_types == {"تحریر": ["70", "80"]}
        assert loaded.size_keys() == {"رقعی"}

    def test_missing_settings_mean_nothing_is_configured(self):
        loaded = SettingsParameterProvider(InMemoryStore()).load()
        assert loaded.book_sizes == []
        assert loaded.size_keys() == set()

    def test_broken_setting_does_not_drop_the_others(self):
        store = InMemoryStore({
            BOOK_SIZES_KEY: json.dumps(["B5"]),
            PAPER_TYPES_KEY: "{broken",
        })
        loaded = SettingsParameterProvider(store).load()
        assert loaded.book_sizes == ["B5"]
        assert loaded.paper_types == {}

    def test_wrong_shape_is_dropped(self):
        store = InMemoryStore({
            BOOK_SIZES_KEY: json.dumps(["B5"]),
            PAPER_TYPES_KEY: json.dumps(["not", "a", "map"]),
        })
        loaded = SettingsParameterProvider(store).load()
        assert loaded.book_sizes == ["B5"]
        assert loaded.paper_types == {}


class TestTTLCache:

    def test_entries_expire(self):
        now = [0.0]
        cache = TTLCache(ttl_seconds=10, clock=lambda: now[0])
        cache.put("a", 1)
        now[0] = 5
        assert cache.get("a") == 1
        now[0] = 11
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_zero_ttl_never_expires(self):
        now = [0.0]
        cache = TTLCache(ttl_seconds=0, clock=lambda: now[0])
        cache.put("a", 1)
        now[0] = 10 ** 9
        assert cache.get("a") == 1

    def test_clear(self):
        cache = TTLCache()
        cache.put("a", 1)
        cache.put("b", 2)
        cache.clear("a")
        assert cache.get("a") is None
        cache.clear()
        assert len(cache) == 0
