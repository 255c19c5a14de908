"""Cache services: index, reaper and its scheduler."""

from resultcache.services.index import Hit, Miss, QueryEngine, ResultCacheIndex, SearchOutcome
from resultcache.services.reaper import StaleResultReaper
from resultcache.services.scheduler import ReaperScheduler

__all__ = [
    "Hit",
    "Miss",
    "QueryEngine",
    "ReaperScheduler",
    "ResultCacheIndex",
    "SearchOutcome",
    "StaleResultReaper",
]
