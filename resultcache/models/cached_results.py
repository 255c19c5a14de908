"""CachedResultSet model: materialized search results with reuse and expiry."""

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from resultcache.models.base import Base


class CachedResultSet(Base):
    """One materialized result set, keyed by query fingerprint."""

    __tablename__ = "cached_result_sets"
    __table_args__ = (
        Index("ix_cached_result_sets_fingerprint_created", "fingerprint", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    fingerprint: Mapped[str] = mapped_column(String(200), nullable=False)
    query_type: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    last_accessed_at: Mapped[datetime] = mapped_column(nullable=False, index=True)
    result_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    items: Mapped[list["CachedResultItem"]] = relationship(
        back_populates="result_set",
        order_by="CachedResultItem.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def touch(self, now: datetime) -> None:
        """Record a reuse. Never moves the access time backwards."""
        if now > self.last_accessed_at:
            self.last_accessed_at = now


class CachedResultItem(Base):
    """A single matching identifier inside a cached result set."""

    __tablename__ = "cached_result_items"

    result_set_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("cached_result_sets.id", ondelete="CASCADE"),
        primary_key=True,
    )
    position: Mapped[int] = mapped_column(Integer, primary_key=True)
    resource_id: Mapped[str] = mapped_column(String(200), nullable=False)

    result_set: Mapped[CachedResultSet] = relationship(back_populates="items")
