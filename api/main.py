"""
api/main.py -- FastAPI application entry point for the todolist service.

Run with:  python main.py
           uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware     -- any origin may call the API (browser frontend)
  2. SlowAPIMiddleware  -- enforces per-route rate limits from api.limiter

Lifespan handles startup and shutdown symmetrically:
  - Resource store: connectivity verified synchronously. Failure is fatal --
    the exception propagates out of the lifespan and the server never starts
    serving.
  - Cache: the Redis client is started in the background. Its failure is
    never fatal; reads fall back to the store until it connects.
  - Hasher and token service are built from Settings once and shared.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.tasks import router as tasks_router
from auth.store import UserStore
from auth.tokens import PasswordHasher, TokenService
from cache.aside import CacheAside
from cache.client import RedisCacheClient
from core.config import get_settings
from core.errors import AppError
from tasks.store import TaskStore

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("todolist.api")


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


def _open_stores(db_url: str) -> tuple[TaskStore, UserStore]:
    """Open both stores and verify the database answers. Raises on failure."""
    task_store = TaskStore(db_url)
    try:
        user_store = UserStore(db_url)
    except SQLAlchemyError:
        task_store.close()
        raise
    try:
        task_store.ping()
        user_store.ping()
    except SQLAlchemyError:
        task_store.close()
        user_store.close()
        raise
    return task_store, user_store


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.

    Startup order matters:
      1. Settings first -- every other component is built from it.
      2. Stores second -- fatal if unreachable, so fail before anything else
         (like the cache supervisor task) is started.
      3. Cache client last -- background connect, non-fatal.
    """
    settings = get_settings()
    logger.info("Todolist API starting up")

    try:
        task_store, user_store = _open_stores(settings.database_url)
    except SQLAlchemyError:
        logger.critical("Resource store unreachable at startup; refusing to serve")
        raise
    app.state.task_store = task_store
    app.state.user_store = user_store
    logger.info("Resource store connected")

    cache_client = RedisCacheClient(
        settings.redis_url,
        op_timeout=settings.cache_op_timeout_seconds,
        health_check_interval=settings.cache_health_check_seconds,
        max_reconnect_attempts=settings.cache_max_reconnect_attempts,
    )
    if settings.cache_enabled:
        await cache_client.start()
        logger.info("Cache client started (connecting in background)")
    else:
        logger.info("Cache disabled; every read goes to the store")
    app.state.cache_client = cache_client
    app.state.cache_aside = CacheAside(cache_client, ttl_seconds=settings.cache_ttl_seconds)

    app.state.hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.tokens = TokenService(settings.secret_key, settings.token_expire_seconds)

    yield

    # Shutdown
    await cache_client.close()
    task_store.close()
    user_store.close()
    logger.info("Todolist API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Todolist API",
    description="Task list with a cache-aside Redis layer and token authentication.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Wall-clock time is captured around call_next so latency is logged
# on every response.
# ---------------------------------------------------------------------------


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

app.include_router(tasks_router, tags=["Tasks"])
app.include_router(auth_router, tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {"error": "<message>"} envelope so clients can
# parse errors uniformly.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render ValidationError / NotFound / Conflict / Unauthorized."""
    return _error(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 naming the first field that failed validation.

    The API contract reports missing or malformed input as 400, not
    FastAPI's default 422.
    """
    errors = exc.errors()
    if not errors:
        return _error(400, "Request validation failed.")
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg", "invalid value")
    return _error(400, f"{field}: {message}" if field else message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a rate limit is exceeded. Retry-After is in seconds."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "Too many requests.")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes (404), wrong methods (405), and any explicit HTTPException."""
    response = _error(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors, including store faults at runtime.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "Internal server error")


# ---------------------------------------------------------------------------
# Root and health endpoints
#
# Defined directly in main.py (not in a router) so they are always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/", include_in_schema=False)
async def root() -> dict:
    return {"message": "Hello World"}


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness plus store and cache status.

    The cache being unavailable does not make the service unhealthy: reads
    fall back to the store.
    """
    components = {"app": "ok"}
    try:
        request.app.state.task_store.ping()
        components["database"] = "ok"
    except SQLAlchemyError:
        logger.warning("Health check: store ping failed", exc_info=True)
        components["database"] = "error"
    components["cache"] = "ok" if request.app.state.cache_client.is_connected() else "unavailable"
    status = "healthy" if components["database"] == "ok" else "degraded"
    return HealthResponse(status=status, version=__version__, components=components)
