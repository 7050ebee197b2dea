"""SQLAlchemy metadata registry import for Alembic."""

from storygraph.models import CacheEntry
from storygraph.models.base import Base

__all__ = ["Base", "CacheEntry"]
