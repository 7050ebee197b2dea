"""Tests for cache stores, cache keys, and best-effort graph caching."""

from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storygraph.analysis.types import AnalysisRequest
from storygraph.errors import CacheError
from storygraph.models.base import Base
from storygraph.models.cache_entry import CacheEntry
from storygraph.services.cache import (
    AnalysisCache,
    DatabaseCacheStore,
    InMemoryCacheStore,
    content_fingerprint,
    derive_cache_key,
)


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


class _FailingStore:
    def get(self, key):  # noqa: ANN001
        raise CacheError(f"read failed for {key}")

    def put(self, key, value, ttl_seconds):  # noqa: ANN001
        raise CacheError(f"write failed for {key}")


class CacheKeyTests(unittest.TestCase):
    def test_identifier_is_preferred(self) -> None:
        key = derive_cache_key(AnalysisRequest(text="anything", identifier="book:1342"))

        self.assertEqual(key, "interactions:id:book:1342")

    def test_missing_identifier_falls_back_to_full_content_hash(self) -> None:
        key = derive_cache_key(AnalysisRequest(text="Alice spoke to Bob."))

        self.assertEqual(key, f"interactions:sha256:{content_fingerprint('Alice spoke to Bob.')}")

    def test_identifier_shaped_like_a_fingerprint_gets_its_own_key(self) -> None:
        text = "Alice spoke to Bob."
        fingerprint_key = derive_cache_key(AnalysisRequest(text=text))
        lookalike_key = derive_cache_key(
            AnalysisRequest(text="Unrelated text.", identifier=f"sha256:{content_fingerprint(text)}")
        )

        self.assertNotEqual(fingerprint_key, lookalike_key)

    def test_fingerprint_strategy_ignores_identifier_and_shared_prefixes(self) -> None:
        prefix = "It was the best of times. " * 10
        first = derive_cache_key(AnalysisRequest(text=prefix + "Alice", identifier="x"), "content_fingerprint")
        second = derive_cache_key(AnalysisRequest(text=prefix + "Carol", identifier="x"), "content_fingerprint")

        self.assertNotEqual(first, second)
        self.assertTrue(first.startswith("interactions:sha256:"))


class InMemoryCacheStoreTests(unittest.TestCase):
    def test_entries_expire_after_ttl(self) -> None:
        clock = _Clock()
        store = InMemoryCacheStore(clock=clock)
        store.put("k", {"Alice": {}}, ttl_seconds=60)

        clock.now += timedelta(seconds=59)
        self.assertEqual(store.get("k"), {"Alice": {}})
        clock.now += timedelta(seconds=1)
        self.assertIsNone(store.get("k"))
        self.assertEqual(len(store), 0)


class DatabaseCacheStoreTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autoflush=False, autocommit=False, future=True)
        Base.metadata.create_all(cls.engine)

    @classmethod
    def tearDownClass(cls) -> None:
        Base.metadata.drop_all(cls.engine)
        cls.engine.dispose()

    def setUp(self) -> None:
        with self.SessionLocal() as db:
            db.execute(delete(CacheEntry))
            db.commit()
        self.clock = _Clock()
        self.store = DatabaseCacheStore(self.SessionLocal, clock=self.clock)

    def test_put_then_get_round_trips_json(self) -> None:
        self.store.put("interactions:book:11", {"Alice": {"Hatter": {"interactions": 3}}}, ttl_seconds=3600)

        self.assertEqual(self.store.get("interactions:book:11"), {"Alice": {"Hatter": {"interactions": 3}}})
        self.assertIsNone(self.store.get("interactions:book:12"))

    def test_put_overwrites_existing_entry(self) -> None:
        self.store.put("book:11:title", "Alice's Adventures", ttl_seconds=60)
        self.store.put("book:11:title", "Alice's Adventures in Wonderland", ttl_seconds=60)

        with self.SessionLocal() as db:
            rows = list(db.scalars(select(CacheEntry).where(CacheEntry.key == "book:11:title")))
        self.assertEqual(len(rows), 1)
        self.assertEqual(self.store.get("book:11:title"), "Alice's Adventures in Wonderland")

    def test_expired_entry_reads_as_absent(self) -> None:
        self.store.put("book:11", "text", ttl_seconds=60)
        self.clock.now += timedelta(seconds=61)

        self.assertIsNone(self.store.get("book:11"))

    def test_empty_graph_is_present_not_absent(self) -> None:
        cache = AnalysisCache(self.store, ttl_seconds=60)
        cache.put("interactions:book:99", {})

        self.assertEqual(cache.get("interactions:book:99"), {})
        self.assertIsNone(cache.get("interactions:book:100"))


class AnalysisCacheTests(unittest.TestCase):
    def test_store_failures_degrade_to_miss_and_dropped_write(self) -> None:
        cache = AnalysisCache(_FailingStore())

        with self.assertLogs("storygraph.services.cache", level="WARNING"):
            self.assertIsNone(cache.get("interactions:book:1"))
        with self.assertLogs("storygraph.services.cache", level="WARNING"):
            self.assertFalse(cache.put("interactions:book:1", {"Alice": {"Bob": 1}}))

    def test_corrupt_entry_is_treated_as_miss(self) -> None:
        store = InMemoryCacheStore()
        store.put("interactions:book:1", {"Alice": {"Bob": {"interactions": -1}}}, ttl_seconds=60)
        store.put("interactions:book:2", "not a graph", ttl_seconds=60)
        cache = AnalysisCache(store)

        with self.assertLogs("storygraph.services.cache", level="WARNING"):
            self.assertIsNone(cache.get("interactions:book:1"))
        with self.assertLogs("storygraph.services.cache", level="WARNING"):
            self.assertIsNone(cache.get("interactions:book:2"))

    def test_graph_is_stored_in_wire_form(self) -> None:
        store = InMemoryCacheStore()
        cache = AnalysisCache(store, ttl_seconds=60)

        cache.put("interactions:book:1", {"Alice": {"Bob": 4}})

        self.assertEqual(store.get("interactions:book:1"), {"Alice": {"Bob": {"interactions": 4}}})
        self.assertEqual(cache.get("interactions:book:1"), {"Alice": {"Bob": 4}})


if __name__ == "__main__":
    unittest.main()
