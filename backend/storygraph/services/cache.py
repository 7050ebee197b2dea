"""Best-effort memoization of analyses, book texts, and titles."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Any, Literal, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storygraph.analysis.aggregator import graph_from_wire, graph_to_wire
from storygraph.analysis.types import AnalysisRequest, InteractionGraph
from storygraph.config import Settings, get_settings
from storygraph.errors import CacheError
from storygraph.models.cache_entry import CacheEntry

logger = logging.getLogger(__name__)

CacheKeyStrategy = Literal["identifier", "content_fingerprint"]
DEFAULT_CACHE_TTL_SECONDS = 60 * 60 * 24


class CacheStore(Protocol):
    """Key-value store with per-entry expiry. Raises CacheError on backend failure."""

    def get(self, key: str) -> Any | None:
        """Return the stored value, or None when absent or expired."""

    def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Store value under key, replacing any previous entry."""


class InMemoryCacheStore:
    """Process-local store used in offline mode and tests."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = Lock()
        self._entries: dict[str, tuple[Any, datetime]] = {}

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + timedelta(seconds=ttl_seconds))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DatabaseCacheStore:
    """SQL-backed store on the cache_entries table; one short session per operation."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def get(self, key: str) -> Any | None:
        try:
            with self._session_factory() as db:
                entry = db.scalar(select(CacheEntry).where(CacheEntry.key == key))
                if entry is None:
                    return None
                if _as_utc(entry.expires_at) <= self._clock():
                    return None
                return entry.value_json
        except SQLAlchemyError as exc:
            raise CacheError(f"Cache read failed for {key}") from exc

    def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        now = self._clock()
        expires_at = now + timedelta(seconds=ttl_seconds)
        try:
            with self._session_factory() as db:
                entry = db.scalar(select(CacheEntry).where(CacheEntry.key == key))
                if entry is None:
                    db.add(CacheEntry(key=key, value_json=value, created_at=now, expires_at=expires_at))
                else:
                    entry.value_json = value
                    entry.created_at = now
                    entry.expires_at = expires_at
                db.commit()
        except SQLAlchemyError as exc:
            raise CacheError(f"Cache write failed for {key}") from exc


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on round trip.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_default_cache_store(settings: Settings | None = None) -> CacheStore:
    """Return the configured cache store."""

    settings = settings or get_settings()
    if settings.cache_backend == "memory":
        return InMemoryCacheStore()
    from storygraph.db.session import SessionLocal

    return DatabaseCacheStore(SessionLocal)


def read_through(store: CacheStore, key: str) -> Any | None:
    """Return the cached value, treating any store failure as a miss."""

    try:
        return store.get(key)
    except CacheError:
        logger.warning("cache.read_failed key=%s", key, exc_info=True)
        return None


def write_through(store: CacheStore, key: str, value: Any, ttl_seconds: int) -> bool:
    """Store value, logging and swallowing any store failure. Returns whether it was written."""

    try:
        store.put(key, value, ttl_seconds)
    except CacheError:
        logger.warning("cache.write_failed key=%s", key, exc_info=True)
        return False
    return True


def content_fingerprint(text: str) -> str:
    """SHA-256 of the full text; prefixes are not used so shared openings never collide."""

    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def derive_cache_key(request: AnalysisRequest, strategy: CacheKeyStrategy = "identifier") -> str:
    """Derive the memoization key for an analysis request.

    The identifier strategy falls back to the content fingerprint when the
    request carries no identifier.
    """

    identifier = (request.identifier or "").strip()
    if strategy == "identifier" and identifier:
        return f"interactions:id:{identifier}"
    return f"interactions:sha256:{content_fingerprint(request.text)}"


class AnalysisCache:
    """Interaction-graph view over a cache store.

    A miss returns None; a stored empty graph returns {} and is a valid answer.
    """

    def __init__(self, store: CacheStore, *, ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS) -> None:
        self._store = store
        self.ttl_seconds = ttl_seconds

    def get(self, key: str) -> InteractionGraph | None:
        payload = read_through(self._store, key)
        if payload is None:
            return None
        if not isinstance(payload, dict):
            logger.warning("cache.corrupt_entry key=%s type=%s", key, type(payload).__name__)
            return None
        try:
            return graph_from_wire(payload)
        except ValueError:
            logger.warning("cache.corrupt_entry key=%s", key, exc_info=True)
            return None

    def put(self, key: str, graph: InteractionGraph, ttl_seconds: int | None = None) -> bool:
        return write_through(
            self._store,
            key,
            graph_to_wire(graph),
            self.ttl_seconds if ttl_seconds is None else ttl_seconds,
        )
