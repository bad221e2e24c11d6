"""
FastAPI server exposing the precomputed SMA scan.
This file wires:
- ScanStore (latest successful scan)
- TTLCache (per-window read cache)
- the build job, behind a shared secret, for an external cron trigger
"""

import logging
import secrets
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sma_scanner.config import Settings, configure_logging, load_settings
from sma_scanner.core.cache import TTLCache
from sma_scanner.core.errors import ConfigError, ScanNotReadyError, UnsupportedWindowError
from sma_scanner.core.models import WindowScan
from sma_scanner.db.dbadapter import ScanStore
from sma_scanner.scanner import build_and_store, parse_window, window_view

logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store"}


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    store = ScanStore(db_path=str(settings.resolve_path(settings.db_path)))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        await store.init()
        try:
            yield
        finally:
            await store.close()

    app = FastAPI(title="SMA Scanner API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.cache = TTLCache()
    app.state.store = store

    @app.exception_handler(UnsupportedWindowError)
    async def unsupported_window(request: Request, exc: UnsupportedWindowError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(ScanNotReadyError)
    async def scan_not_ready(request: Request, exc: ScanNotReadyError):
        return JSONResponse(status_code=503, content={"error": str(exc)})

    @app.exception_handler(ConfigError)
    async def misconfigured(request: Request, exc: ConfigError):
        logger.error("%s", exc)
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.get("/api/scan", response_model=WindowScan)
    async def scan(window: Optional[str] = None):
        """Symbols below their SMA for one window, most-below first."""
        w = parse_window(window, settings.windows)

        async def compute() -> WindowScan:
            result = await app.state.store.load_latest()
            return window_view(result, w, settings.windows)

        payload = await app.state.cache.get_or_compute(f"scan:{w}", compute, settings.cache_ttl_seconds)
        return JSONResponse(content=payload.model_dump(by_alias=True), headers=NO_STORE)

    @app.get("/api/cron/build-sma")
    async def build_sma(secret: Optional[str] = None):
        """Run the batch scan and replace the stored result. Needs CRON_SECRET."""
        expected = settings.cron_secret
        if not expected or not secret or not secrets.compare_digest(secret.encode(), expected.encode()):
            logger.warning("rejected build-sma trigger with bad or missing secret")
            return JSONResponse(status_code=401, content={"error": "Unauthorized"})

        result = await build_and_store(settings, app.state.store)
        app.state.cache.invalidate()
        logger.info("build-sma stored scan as_of=%s", result.as_of)
        return {
            "ok": True,
            "asOf": result.as_of,
            "countByWindow": result.count_by_window,
            "diagnostics": result.diagnostics.model_dump() if result.diagnostics else None,
        }

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app
