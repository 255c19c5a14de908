"""Stale Result Reaper: reclaims result sets nobody has reused within the retention window.

A set is deleted once ``last_accessed_at < now - retention - slack``.

``reap`` is a plain coroutine: the scheduler, the admin endpoint and tests
all call the same code path.
"""

import logging
from datetime import datetime, timedelta

from resultcache.clock import Clock, SystemClock
from resultcache.errors import ConfigurationError, StorageFailure
from resultcache.store import ResultStore

logger = logging.getLogger(__name__)

DEFAULT_CUTOFF_SLACK = timedelta(seconds=10)


def compute_cutoff(now: datetime, retention_window: timedelta, cutoff_slack: timedelta) -> datetime:
    """Sets last accessed strictly before this instant are eligible for deletion."""
    return now - retention_window - cutoff_slack


class StaleResultReaper:
    """Deletes expired result sets in one transaction per run."""

    def __init__(
        self,
        store: ResultStore,
        clock: Clock | None = None,
        expire_after: timedelta | None = None,
        cutoff_slack: timedelta = DEFAULT_CUTOFF_SLACK,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.expire_after = expire_after
        self.cutoff_slack = cutoff_slack
        self.last_cutoff: datetime | None = None

    async def reap(
        self,
        retention_window: timedelta | None,
        cutoff_slack: timedelta = DEFAULT_CUTOFF_SLACK,
        now: datetime | None = None,
    ) -> int:
        """Delete every result set whose retention has elapsed. Returns the number deleted.

        Raises ``StorageFailure`` if the transaction fails; nothing is deleted
        in that case and the next run starts over.
        """
        if retention_window is None:
            return 0
        if retention_window < timedelta(0) or cutoff_slack < timedelta(0):
            raise ConfigurationError("retention window and cutoff slack must not be negative")

        now = now or self.clock.now()
        cutoff = compute_cutoff(now, retention_window, cutoff_slack)
        self.last_cutoff = cutoff

        deleted = await self.store.delete_accessed_before(cutoff)
        if deleted:
            logger.info("Reaped stale result sets | deleted=%d | cutoff=%s", deleted, cutoff.isoformat())
        else:
            logger.debug("No stale result sets | cutoff=%s", cutoff.isoformat())
        return deleted

    async def run_once(self) -> int:
        """Scheduled entry point: reap with configured windows, never raise on storage errors."""
        try:
            return await self.reap(self.expire_after, self.cutoff_slack)
        except StorageFailure:
            logger.warning("Reaper run aborted, will retry next cycle")
            return 0
