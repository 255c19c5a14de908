"""Shared test fixtures: file-backed SQLite per test and a settable clock."""

from datetime import datetime, timezone

import pytest

from resultcache.clock import FixedClock
from resultcache.database import build_engine, build_session_factory, close_db, init_db
from resultcache.services import ResultCacheIndex, StaleResultReaper
from resultcache.store import ResultStore

START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeQueryEngine:
    """Stands in for the search engine; records every execution."""

    def __init__(self, results: list[str] | None = None):
        self.results = results if results is not None else ["Patient/1", "Patient/2"]
        self.calls: list[tuple[str, dict]] = []

    async def execute(self, query_type: str, params: dict) -> list[str]:
        self.calls.append((query_type, params))
        return list(self.results)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'resultcache.db'}"


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
async def engine(database_url):
    eng = build_engine(database_url)
    assert await init_db(eng)
    yield eng
    await close_db(eng)


@pytest.fixture
def store(engine):
    return ResultStore(build_session_factory(engine))


@pytest.fixture
def index(store, clock):
    return ResultCacheIndex(store, clock=clock)


@pytest.fixture
def reaper(store, clock):
    return StaleResultReaper(store, clock=clock)


@pytest.fixture
def query_engine():
    return FakeQueryEngine()
