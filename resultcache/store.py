"""Result store: all database access for cached result sets.

Every public method runs in exactly one transaction. SQLAlchemy errors are
logged and re-raised as ``StorageFailure`` so callers never depend on the
driver in use.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from resultcache.errors import StorageFailure
from resultcache.models import CachedResultItem, CachedResultSet

logger = logging.getLogger(__name__)

# Ids per DELETE statement; all chunks share the reaper's transaction.
DELETE_CHUNK_SIZE = 500


class ResultStore:
    """Transactional CRUD over ``CachedResultSet`` rows and their items."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str):
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Storage error | op=%s | %s", operation, str(e)[:200])
            raise StorageFailure(f"{operation} failed") from e

    async def claim_reusable(
        self, fingerprint: str, created_after: datetime, now: datetime,
    ) -> uuid.UUID | None:
        """Find the newest set for *fingerprint* created after *created_after* and touch it.

        The read and the access-time update commit together; the row is locked
        for the duration where the backend supports ``FOR UPDATE``.
        """
        async with self._transaction("claim_reusable") as session:
            stmt = (
                select(CachedResultSet)
                .where(
                    CachedResultSet.fingerprint == fingerprint,
                    CachedResultSet.created_at > created_after,
                )
                .order_by(CachedResultSet.created_at.desc())
                .limit(1)
                .with_for_update()
            )
            record = (await session.scalars(stmt)).first()
            if record is None:
                return None
            record.touch(now)
            return record.id

    async def insert(
        self,
        fingerprint: str,
        resource_ids: list[str],
        now: datetime,
        query_type: str = "",
    ) -> uuid.UUID:
        """Persist a brand-new result set with its snapshot."""
        async with self._transaction("insert") as session:
            record = CachedResultSet(
                id=uuid.uuid4(),
                fingerprint=fingerprint,
                query_type=query_type,
                created_at=now,
                last_accessed_at=now,
                result_count=len(resource_ids),
            )
            record.items = [
                CachedResultItem(position=i, resource_id=str(rid))
                for i, rid in enumerate(resource_ids)
            ]
            session.add(record)
        return record.id

    async def load_snapshot(self, result_set_id: uuid.UUID) -> list[str] | None:
        """Return the stored identifiers in order, or None if the set is gone."""
        async with self._transaction("load_snapshot") as session:
            exists = await session.scalar(
                select(CachedResultSet.id).where(CachedResultSet.id == result_set_id)
            )
            if exists is None:
                return None
            rows = await session.scalars(
                select(CachedResultItem.resource_id)
                .where(CachedResultItem.result_set_id == result_set_id)
                .order_by(CachedResultItem.position)
            )
            return list(rows)

    async def get(self, result_set_id: uuid.UUID) -> CachedResultSet | None:
        async with self._transaction("get") as session:
            return await session.get(CachedResultSet, result_set_id)

    async def count(self, fingerprint: str | None = None) -> int:
        async with self._transaction("count") as session:
            stmt = select(func.count()).select_from(CachedResultSet)
            if fingerprint is not None:
                stmt = stmt.where(CachedResultSet.fingerprint == fingerprint)
            return await session.scalar(stmt)

    async def delete_accessed_before(self, cutoff: datetime) -> int:
        """Delete every set last accessed before *cutoff*, items first, in one transaction.

        Rows currently locked by a concurrent reuse are skipped; the final
        delete re-checks the cutoff so a row touched after the scan survives.
        """
        async with self._transaction("delete_accessed_before") as session:
            stale_ids = (
                await session.scalars(
                    select(CachedResultSet.id)
                    .where(CachedResultSet.last_accessed_at < cutoff)
                    .with_for_update(skip_locked=True)
                )
            ).all()
            if not stale_ids:
                return 0

            deleted = 0
            for start in range(0, len(stale_ids), DELETE_CHUNK_SIZE):
                chunk = stale_ids[start:start + DELETE_CHUNK_SIZE]
                still_stale = (
                    select(CachedResultSet.id)
                    .where(
                        CachedResultSet.id.in_(chunk),
                        CachedResultSet.last_accessed_at < cutoff,
                    )
                )
                await session.execute(
                    delete(CachedResultItem)
                    .where(CachedResultItem.result_set_id.in_(still_stale))
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(
                    delete(CachedResultSet)
                    .where(
                        CachedResultSet.id.in_(chunk),
                        CachedResultSet.last_accessed_at < cutoff,
                    )
                    .execution_options(synchronize_session=False)
                )
                deleted += result.rowcount
            return deleted
