"""SQLAlchemy ORM models."""

from resultcache.models.base import Base, UTCDateTime
from resultcache.models.cached_results import CachedResultItem, CachedResultSet

__all__ = ["Base", "UTCDateTime", "CachedResultSet", "CachedResultItem"]
