# imagecdn/main.py
from __future__ import annotations

"""
# Image CDN API • Application Entrypoint (FastAPI)

ASGI application factory and lifecycle for the TMDB image cache.

## Middleware order
1) request id → 2) CORS → 3) gzip → 4) rate limits → 5) strip `Server` header.

## Probes
- `/healthz`: liveness (process up).
- `/readyz`: readiness (catalog DB check when the SQL catalog is used).
- `/metrics`: Prometheus exposition.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable
import os

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.gzip import GZipMiddleware
from starlette.responses import JSONResponse, Response

# Importing sets up sinks and the stdlib intercept.
from imagecdn.core import logger as _logsetup  # noqa: F401
from imagecdn.api.v1.routers import router as api_v1_router
from imagecdn.core.config import settings
from imagecdn.core.exception_handlers import (
    app_exception_handler,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from imagecdn.core.exceptions import AppException
from imagecdn.core.limiter import install_rate_limiter
from imagecdn.middleware.cors import configure_cors
from imagecdn.middleware.request_id import RequestIDMiddleware


# ─────────────────────────────────────────────────────────────────────────────
# 🔄 Lifespan: startup & shutdown
# ─────────────────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Log a banner on startup; dispose the catalog engine on shutdown."""
    logger.info(
        "✅ {} starting up | env={} | cdn={} | catalog={}",
        settings.PROJECT_NAME, settings.ENV, settings.cdn_base_url, settings.CATALOG_BACKEND,
    )
    try:
        yield
    finally:
        from imagecdn.db.session import dispose_engine

        try:
            await dispose_engine()
        except Exception:
            logger.exception("Error disposing catalog engine")
        logger.info("🛑 {} shutting down", settings.PROJECT_NAME)


# ─────────────────────────────────────────────────────────────────────────────
# 🏗️ App factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app() -> FastAPI:
    """
    Build and configure the FastAPI app instance.

    Returns:
        FastAPI: application with middleware, exception handlers, the v1
        router and health/readiness/metrics endpoints.
    """
    enable_docs = settings.ENABLE_DOCS
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        docs_url="/docs" if enable_docs else None,
        redoc_url="/redoc" if enable_docs else None,
        openapi_url="/openapi.json" if enable_docs else None,
        lifespan=lifespan,
    )

    # ── Middlewares (order matters) ─────────────────────────────────────────
    app.add_middleware(RequestIDMiddleware)
    configure_cors(app)
    app.add_middleware(GZipMiddleware, minimum_size=1024)
    install_rate_limiter(app)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    @app.middleware("http")
    async def _strip_server_header(request: Request, call_next: Callable) -> Response:
        """Remove the `Server` header to avoid leaking implementation details."""
        response: Response = await call_next(request)
        if "server" in response.headers:
            del response.headers["server"]
        return response

    # ── Exception handlers ──────────────────────────────────────────────────
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, global_exception_handler)  # type: ignore[arg-type]

    # ── Routers (versioned API) ─────────────────────────────────────────────
    app.include_router(api_v1_router, prefix=settings.API_V1_STR)

    # ── Meta endpoints ──────────────────────────────────────────────────────
    @app.get("/healthz", tags=["meta"])
    async def healthz() -> dict[str, bool]:
        """Liveness probe. No external checks."""
        return {"ok": True}

    @app.get("/readyz", tags=["meta"])
    async def readyz() -> JSONResponse:
        """Readiness probe: catalog connectivity (SQL backend only)."""
        db_ok = True
        if settings.CATALOG_BACKEND == "sql":
            from imagecdn.db.session import db_healthcheck

            db_ok = await db_healthcheck()
        return JSONResponse(
            {"ready": db_ok, "checks": {"catalog": db_ok}},
            status_code=200 if db_ok else 503,
        )

    @app.get("/metrics", tags=["meta"], include_in_schema=False)
    def metrics() -> Response:
        """📈 Prometheus metrics endpoint."""
        from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        return JSONResponse({"name": settings.PROJECT_NAME, "docs": app.docs_url or "", "version": settings.VERSION})

    return app


# ─────────────────────────────────────────────────────────────────────────────
# 🚀 Module-level ASGI app for Uvicorn/Gunicorn
# ─────────────────────────────────────────────────────────────────────────────
app = create_app()
__all__ = ["create_app", "app"]


# Local dev runner (prefer: `uvicorn imagecdn.main:app --reload`)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "imagecdn.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "1") == "1",
        workers=int(os.getenv("WORKERS", "1")),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
