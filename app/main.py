# app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import logging
import time

from app.core import config, db
from app.core.store import PickStore, open_store
from app.routers import pick_routes, slate_routes, stats_routes
from app.services.espn_common import EspnFeed
from app.services.live import LivePoller
from app.services.picks import sync_tracked_points
from app.services.slate import SlateRegistry

# ------------ Logging ------------
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("app")


# ------------ Access log middleware ------------
class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        t0 = time.perf_counter()
        try:
            response = await call_next(request)
            status = response.status_code
        except Exception:
            status = 500
            raise
        finally:
            dt = (time.perf_counter() - t0) * 1000
            logger.info(
                "ACCESS %s %s q=%s -> %s in %.1fms",
                request.method,
                request.url.path,
                request.url.query,
                status,
                dt,
            )
        return response


def create_app(
    feed: Optional[EspnFeed] = None,
    store: Optional[PickStore] = None,
    start_poller: bool = config.LIVE_POLLER_ENABLED,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.feed = feed or EspnFeed()
        app.state.registry = SlateRegistry()
        app.state.store = store or await open_store()

        async def _persist(slate):
            await sync_tracked_points(app.state.store, slate)

        app.state.poller = LivePoller(app.state.feed, app.state.registry, on_cycle=_persist)
        if start_poller:
            app.state.poller.start()
        try:
            yield
        finally:
            await app.state.poller.stop()
            await db.close_engine()

    app = FastAPI(
        title="Dirty Thirty API",
        version="1.0.0",
        docs_url="/docs",
        redoc_url=None,
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(AccessLogMiddleware)

    # ------------ CORS (open; the picker UI runs on its own origin) ------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------ Global error handler ------------
    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception("UNHANDLED ERROR: %s %s", request.method, request.url)
        return JSONResponse(status_code=500, content={"success": False, "error": "internal_error"})

    # ------------ Health ------------
    @app.get("/health")
    async def health():
        return {"ok": True, "time": datetime.now(timezone.utc).isoformat()}

    @app.get("/api/health")
    async def api_health():
        current = app.state.registry.current
        return {
            "ok": True,
            "time": datetime.now(timezone.utc).isoformat(),
            "slate": current.date if current else None,
            "pollerInFlight": app.state.poller.in_flight,
        }

    # ------------ Mount routers ------------
    app.include_router(slate_routes.router, prefix="/api")
    app.include_router(pick_routes.router, prefix="/api")
    app.include_router(stats_routes.router, prefix="/api")

    return app


app = create_app()
