"""Cache entry model."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from storygraph.models.base import Base, CreatedAtMixin, IdMixin


class CacheEntry(Base, IdMixin, CreatedAtMixin):
    """Memoized value (analysis graph, book text, or title) with an absolute expiry."""

    __tablename__ = "cache_entries"

    key: Mapped[str] = mapped_column(String(512), unique=True, index=True, nullable=False)
    value_json: Mapped[object] = mapped_column(JSON, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True, nullable=False)
