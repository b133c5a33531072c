"""
api/main.py -- FastAPI application entry point for InstaCatalog.

Run with:      uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware -- adds CORS headers for the configured frontend origins
  2. log_requests   -- one access-log line per request

Lifespan builds every collaborator from the frozen Settings instance exactly
once (database engine, stores, token service, lifecycle, Instagram connector)
and places them on app.state. Request handlers and dependencies read them
from there and never call get_settings() themselves.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.instagram import router as instagram_router
from api.routes.posts import router as posts_router
from auth.instagram import InstagramConnector
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from core.database import create_db_engine
from core.errors import AppError
from posts.lifecycle import PostLifecycle, policy_for
from posts.publisher import SimulatedPublisher
from posts.store import PostStore

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("instacatalog.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Delete abandoned OAuth states every hour.

    States are normally deleted by the callback; this catches users who
    started the Instagram flow and never came back. CancelledError from
    task.cancel() during shutdown propagates out of asyncio.sleep.
    """
    while True:
        await asyncio.sleep(60 * 60)
        removed = app.state.user_store.purge_oauth_states(app.state.settings.oauth_state_ttl_seconds)
        if removed:
            logger.info("Purged %d expired OAuth states", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build application-level resources on startup and release them on shutdown.

    Startup order matters:
      1. Settings -- the module-level instance; everything else derives from it.
      2. Engine, then UserStore before PostStore (posts reference users).
      3. Purge task last -- it references app.state.user_store.
    """
    app.state.settings = settings
    logger.info("InstaCatalog API starting up")

    engine = create_db_engine(settings.database_url)
    app.state.user_store = UserStore(engine)
    post_store = PostStore(engine)
    app.state.token_service = TokenService(settings)

    policy = policy_for(settings.post_creation_status)
    app.state.lifecycle = PostLifecycle(
        post_store,
        policy,
        SimulatedPublisher(),
        max_attempts=settings.publish_max_attempts,
        backoff_seconds=settings.publish_backoff_seconds,
    )
    logger.info("Post lifecycle: %s mode", policy.name)

    app.state.instagram = InstagramConnector(settings)
    if not app.state.instagram.configured:
        logger.warning("META_APP_ID / META_APP_SECRET / META_REDIRECT_URI not set -- Instagram linking disabled")

    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    # Shutdown
    app.state.purge_task.cancel()
    engine.dispose()
    logger.info("InstaCatalog API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

# The single Settings instance for this process. The lifespan publishes it on
# app.state and builds every collaborator from it; CORS reads it below.
settings = get_settings()

app = FastAPI(
    title="InstaCatalog API",
    description="Create product posts and publish them to Instagram.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

# Middleware must be registered before the app starts serving: Starlette
# builds the middleware stack ahead of the lifespan and rejects
# add_middleware() afterwards. Hence the origin list comes from the
# module-level settings rather than from the lifespan.
# Requests without an Origin header (curl, server-to-server) are unaffected.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "token"],
    max_age=3600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])
app.include_router(posts_router, tags=["Posts"])
app.include_router(instagram_router, tags=["Instagram"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render domain errors (InvalidInput, NotFound, ...) with their mapped status."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=exc.code, message=exc.message, detail=exc.detail),
        ).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the request body or query params are missing or mistyped."""
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()})
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            error=ErrorDetail(
                code="invalid_input",
                message="Missing or invalid fields.",
                detail=", ".join(f for f in fields if f) or None,
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for FastAPI/Starlette HTTP exceptions (404 routes, 405, ...)."""
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    Security note: the raw exception is written to the log only, never to the
    response body. SQL text and stack traces stay server-side.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
