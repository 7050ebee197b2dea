"""ORM models package exports."""

from storygraph.models.cache_entry import CacheEntry

__all__ = ["CacheEntry"]
