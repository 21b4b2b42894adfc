# backend/softzen/main.py
from __future__ import annotations
import asyncio
import contextlib
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from softzen.api.routers import auth, dashboard, notifications, patient, reports, series, sessions, user, validation
from softzen.cache import ResponseCache
from softzen.config import Settings, get_settings
from softzen.db import Database
from softzen.errors import AppError, ServerError
from softzen.logging_config import configure_logging
from softzen.middleware import RequestTimeoutMiddleware

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    database = Database.from_settings(settings)
    if settings.auto_create_schema:
        await database.create_all()
    cache = ResponseCache(default_ttl=settings.cache_ttl)
    app.state.database = database
    app.state.cache = cache
    app.state.started_at = time.monotonic()
    purger = asyncio.create_task(cache.run_purger(settings.cache_purge_interval))
    logger.info("app_started", database=database.engine.url.render_as_string(hide_password=True))
    try:
        yield
    finally:
        purger.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await purger
        await database.dispose()
        logger.info("app_stopped")


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log("request_failed", path=request.url.path, status_code=exc.status_code, error=exc.message)
    return JSONResponse(exc.to_response(), status_code=exc.status_code)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    return JSONResponse(
        {
            "error": first.get("msg", "Invalid request body"),
            "field": ".".join(loc) or "body",
            "code": "INVALID_BODY",
            "type": "validation_error",
        },
        status_code=400,
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_error", path=request.url.path, method=request.method, exc_info=exc)
    err = ServerError("Internal server error")
    return JSONResponse(err.to_response(), status_code=err.status_code)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_json)

    app = FastAPI(title="SoftZen API", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(RequestTimeoutMiddleware, timeout=settings.request_timeout)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(auth.router)
    app.include_router(user.router)
    app.include_router(patient.router)
    app.include_router(series.router)
    app.include_router(sessions.router)
    app.include_router(dashboard.router)
    app.include_router(notifications.router)
    app.include_router(reports.router)
    app.include_router(validation.router)

    @app.get("/api/health")
    async def health(request: Request):
        state = request.app.state
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "cache_size": len(state.cache),
            "uptime": round(time.monotonic() - state.started_at, 3),
        }

    return app


app = create_app()
