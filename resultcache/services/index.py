"""Result Cache Index: decides per query whether a cached result set can be reused.

Reuse is time-based only: the newest result set for a fingerprint is
returned while ``now - created_at < reuse_window``. Each reuse refreshes
``last_accessed_at``, which is what keeps the set alive against the reaper.

Graceful degradation: storage errors during lookup are treated as a miss,
so a broken cache only costs a re-executed query.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Protocol

from cachetools import LRUCache

from resultcache.clock import Clock, SystemClock
from resultcache.errors import StorageFailure
from resultcache.fingerprint import make_fingerprint
from resultcache.store import ResultStore

logger = logging.getLogger(__name__)

_UNSET = object()


class QueryEngine(Protocol):
    async def execute(self, query_type: str, params: dict[str, Any]) -> list[str]:
        """Run the search and return matching record identifiers."""
        ...


@dataclass(frozen=True)
class Hit:
    result_set_id: uuid.UUID


@dataclass(frozen=True)
class Miss:
    pass


@dataclass
class SearchOutcome:
    """What the request layer gets back from ``get_or_execute``.

    ``result_set_id`` is None only when the fresh result could not be stored.
    """
    fingerprint: str
    resource_ids: list[str]
    cache_hit: bool
    result_set_id: uuid.UUID | None = None


@dataclass
class IndexStats:
    hits: int = 0
    misses: int = 0
    degraded: int = 0
    vanished: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "degraded": self.degraded,
            "vanished": self.vanished,
            "hit_rate": round(self.hit_rate, 4),
        }


class ResultCacheIndex:
    """Lookup, admission and retrieval of cached result sets."""

    def __init__(
        self,
        store: ResultStore,
        clock: Clock | None = None,
        reuse_window: timedelta | None = None,
        lock_table_size: int = 1024,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.reuse_window = reuse_window
        # Per-fingerprint locks; eviction only risks a duplicate result set.
        self._locks = LRUCache(maxsize=lock_table_size)
        self._stats = IndexStats()

    def stats(self) -> IndexStats:
        return self._stats

    async def lookup_or_reserve(
        self, fingerprint: str, reuse_window: timedelta | None,
    ) -> Hit | Miss:
        """Return Hit(id) if a result set for *fingerprint* is still reusable, else Miss."""
        if not reuse_window:
            self._stats.misses += 1
            return Miss()

        now = self.clock.now()
        try:
            result_set_id = await self.store.claim_reusable(fingerprint, now - reuse_window, now)
        except StorageFailure:
            logger.warning("Cache lookup failed, treating as miss | fingerprint=%s", fingerprint[:20])
            self._stats.degraded += 1
            self._stats.misses += 1
            return Miss()

        if result_set_id is None:
            logger.debug("Cache MISS | fingerprint=%s", fingerprint[:20])
            self._stats.misses += 1
            return Miss()

        logger.info("Cache HIT | fingerprint=%s | id=%s", fingerprint[:20], result_set_id)
        self._stats.hits += 1
        return Hit(result_set_id)

    async def materialize(
        self, fingerprint: str, resource_ids: list[str], query_type: str = "",
    ) -> uuid.UUID:
        """Store a freshly computed result set and return its new id."""
        now = self.clock.now()
        result_set_id = await self.store.insert(fingerprint, list(resource_ids), now, query_type)
        logger.info(
            "Cache SET | fingerprint=%s | id=%s | items=%d",
            fingerprint[:20], result_set_id, len(resource_ids),
        )
        return result_set_id

    async def fetch(self, result_set_id: uuid.UUID) -> list[str] | None:
        """Return the snapshot for *result_set_id*, or None if it was never stored or has been reaped."""
        return await self.store.load_snapshot(result_set_id)

    def _lock_for(self, fingerprint: str) -> asyncio.Lock:
        lock = self._locks.get(fingerprint)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[fingerprint] = lock
        return lock

    async def get_or_execute(
        self,
        query_type: str,
        params: dict[str, Any],
        engine: QueryEngine,
        reuse_window: timedelta | None = _UNSET,
    ) -> SearchOutcome:
        """Serve a query from cache when possible, otherwise run it and cache the result.

        Concurrent callers for the same fingerprint in this process wait on one
        lock so the query engine runs once per reuse window. With reuse
        disabled there is nothing to share and no lock is taken.
        """
        if reuse_window is _UNSET:
            reuse_window = self.reuse_window
        fingerprint = make_fingerprint(query_type, params)

        if not reuse_window:
            self._stats.misses += 1
            return await self._execute_and_store(query_type, params, engine, fingerprint)

        async with self._lock_for(fingerprint):
            outcome = await self.lookup_or_reserve(fingerprint, reuse_window)
            if isinstance(outcome, Hit):
                resource_ids = await self._fetch_quietly(outcome.result_set_id)
                if resource_ids is not None:
                    return SearchOutcome(
                        fingerprint=fingerprint,
                        resource_ids=resource_ids,
                        cache_hit=True,
                        result_set_id=outcome.result_set_id,
                    )
                logger.info("Cached result set vanished, re-executing | id=%s", outcome.result_set_id)
                self._stats.hits -= 1
                self._stats.misses += 1
                self._stats.vanished += 1

            return await self._execute_and_store(query_type, params, engine, fingerprint)

    async def _execute_and_store(
        self,
        query_type: str,
        params: dict[str, Any],
        engine: QueryEngine,
        fingerprint: str,
    ) -> SearchOutcome:
        resource_ids = list(await engine.execute(query_type, params))
        try:
            result_set_id = await self.materialize(fingerprint, resource_ids, query_type)
        except StorageFailure:
            logger.warning("Result set not cached | fingerprint=%s", fingerprint[:20])
            result_set_id = None
        return SearchOutcome(
            fingerprint=fingerprint,
            resource_ids=resource_ids,
            cache_hit=False,
            result_set_id=result_set_id,
        )

    async def _fetch_quietly(self, result_set_id: uuid.UUID) -> list[str] | None:
        try:
            return await self.fetch(result_set_id)
        except StorageFailure:
            return None
