"""Result cache service: FastAPI application entry point.

Wires the index, the reaper and its scheduler to one database and exposes
search, result retrieval and an operator reap trigger.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from resultcache.clock import Clock, clock_from_settings
from resultcache.config import Settings, load_settings
from resultcache.database import build_engine, build_session_factory, close_db, init_db
from resultcache.errors import StorageFailure
from resultcache.schemas import (
    ReapRequest,
    ReapResponse,
    ResultSetResponse,
    SearchRequest,
    SearchResponse,
)
from resultcache.services import QueryEngine, ReaperScheduler, ResultCacheIndex, StaleResultReaper
from resultcache.store import ResultStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("resultcache")


# ═══════════════ LIFESPAN ═══════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info(
        "Result cache starting | reuse=%s | expiry=%s",
        settings.reuse_enabled, settings.expiry_enabled,
    )

    engine = build_engine(settings.database_url)
    db_ok = await init_db(engine)
    logger.info("Database: %s", "connected" if db_ok else "unavailable (lookups will miss)")

    store = ResultStore(build_session_factory(engine))
    clock = app.state.clock or clock_from_settings(settings)
    app.state.index = ResultCacheIndex(
        store,
        clock=clock,
        reuse_window=settings.reuse_window,
        lock_table_size=settings.lock_table_size,
    )
    app.state.reaper = StaleResultReaper(
        store,
        clock=clock,
        expire_after=settings.expire_after,
        cutoff_slack=settings.cutoff_slack,
    )
    app.state.scheduler = ReaperScheduler(app.state.reaper, settings.reap_interval_seconds)
    if settings.reap_on_startup and settings.expiry_enabled:
        app.state.scheduler.start()

    yield

    await app.state.scheduler.stop()
    await close_db(engine)
    logger.info("Result cache shutting down")


# ═══════════════ APP ═══════════════

def create_app(
    settings: Settings | None = None,
    query_engine: QueryEngine | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """Build the application. Configuration errors surface here, before serving."""
    app = FastAPI(
        title="Result Cache API",
        description="Search result reuse and expiry",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings or load_settings()
    app.state.query_engine = query_engine
    app.state.clock = clock

    # ═══════════════ ENDPOINTS ═══════════════

    @app.get("/health")
    async def health(request: Request):
        state = request.app.state
        return {
            "status": "ok",
            "reuse_enabled": state.settings.reuse_enabled,
            "expiry_enabled": state.settings.expiry_enabled,
            "index": state.index.stats().to_dict(),
            "reaper": state.scheduler.health(),
        }

    @app.post("/api/search", response_model=SearchResponse)
    async def search(body: SearchRequest, request: Request):
        state = request.app.state
        if state.query_engine is None:
            return JSONResponse(status_code=503, content={"error": "No query engine configured."})

        start = time.monotonic()
        try:
            outcome = await state.index.get_or_execute(body.query_type, body.params, state.query_engine)
        except Exception as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.error("Search failed | %dms | %s", elapsed_ms, str(e)[:300])
            return JSONResponse(status_code=500, content={"error": "Search failed."})

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Search completed | type=%s | items=%d | cached=%s | %dms",
            body.query_type, len(outcome.resource_ids), outcome.cache_hit, elapsed_ms,
        )
        return SearchResponse(
            result_set_id=outcome.result_set_id,
            resource_ids=outcome.resource_ids,
            cached=outcome.cache_hit,
            fingerprint=outcome.fingerprint,
        )

    @app.get("/api/results/{result_set_id}", response_model=ResultSetResponse)
    async def get_results(result_set_id: uuid.UUID, request: Request):
        try:
            resource_ids = await request.app.state.index.fetch(result_set_id)
        except StorageFailure:
            raise HTTPException(status_code=503, detail="Result store unavailable.")
        if resource_ids is None:
            raise HTTPException(status_code=404, detail="Result set not found or expired.")
        return ResultSetResponse(result_set_id=result_set_id, resource_ids=resource_ids)

    @app.post("/admin/reap", response_model=ReapResponse)
    async def reap(request: Request, body: ReapRequest | None = None):
        state = request.app.state
        settings = state.settings
        now = body.now if body else None
        try:
            deleted = await state.reaper.reap(settings.expire_after, settings.cutoff_slack, now=now)
        except StorageFailure:
            raise HTTPException(status_code=503, detail="Reap aborted, storage unavailable.")
        cutoff = state.reaper.last_cutoff if settings.expiry_enabled else None
        return ReapResponse(deleted=deleted, cutoff=cutoff)

    return app


app = create_app()
