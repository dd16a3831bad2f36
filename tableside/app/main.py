# main.py

"""FastAPI application wiring for the table-session lifecycle service."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import redis.asyncio as redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings
from .db import create_sessionmaker, init_models
from .errors import LifecycleError, Unexpected
from .middlewares import HttpErrorCounterMiddleware, LoggingMiddleware, RequestIdMiddleware
from .obs import capture_exception, configure_logging, init_sentry
from .repos_sqlalchemy import EntityStoreSQL
from .routes_bills import router as bills_router
from .routes_metrics import router as metrics_router
from .routes_orders import router as orders_router
from .routes_realtime import router as realtime_router
from .routes_reservations import router as reservations_router
from .routes_tables import router as tables_router
from .services.cache import CacheStore
from .services.dispatch import TransitionDispatcher
from .services.effects import EffectQueue
from .services.invalidation import InvalidationCoordinator
from .services.lifecycle import LifecycleEngine
from .services.read_path import ReadPath
from .services.realtime import EndpointRegistry, Notifier
from .services.reservations import ReservationService
from .services.transport import RedisPubSubTransport
from .utils.responses import err, error_response, ok

logger = logging.getLogger("tableside")


def create_app(
    settings: Settings | None = None,
    redis_client=None,
    sessionmaker=None,
    transport=None,
) -> FastAPI:
    """Build the application and wire every service onto ``app.state``.

    When ``sessionmaker`` is given the caller owns the schema; otherwise an
    engine is created for ``settings.database_url`` and its tables are
    created on startup.
    """
    settings = settings or get_settings()
    db_engine = None
    if sessionmaker is None:
        sessionmaker, db_engine = create_sessionmaker(settings.database_url)
    if redis_client is None:
        redis_client = redis.from_url(settings.redis_url)

    cache = CacheStore(redis_client, retry_after=settings.cache_retry_after_secs)
    store = EntityStoreSQL(sessionmaker)
    notifier = Notifier(
        transport or RedisPubSubTransport(redis_client), EndpointRegistry(cache), cache
    )
    effects = EffectQueue(stage="notify", timeout=settings.side_effect_timeout_secs)
    dispatcher = TransitionDispatcher(
        InvalidationCoordinator(
            cache,
            guest_buckets=settings.availability_guest_buckets,
            timeout=settings.side_effect_timeout_secs,
        ),
        notifier,
        effects,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if db_engine is not None:
            await init_models(db_engine)
        yield
        await effects.stop()
        if db_engine is not None:
            await db_engine.dispose()

    app = FastAPI(title="Tableside", lifespan=lifespan)
    app.state.settings = settings
    app.state.redis = redis_client
    app.state.cache = cache
    app.state.store = store
    app.state.notifier = notifier
    app.state.dispatcher = dispatcher
    app.state.engine = LifecycleEngine(store, dispatcher, settings)
    app.state.read_path = ReadPath(store, cache, settings)
    app.state.reservations = ReservationService(store, dispatcher)

    # added last runs first: the request id must exist before logging reads it
    app.add_middleware(HttpErrorCounterMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    @app.exception_handler(LifecycleError)
    async def lifecycle_error_handler(request: Request, exc: LifecycleError):
        if isinstance(exc, Unexpected) or exc.status_code >= 500:
            error_id = str(uuid.uuid4())
            logger.error(
                exc.message,
                exc_info=exc,
                extra={"status": exc.status_code, "route": request.url.path, "error_id": error_id},
            )
            capture_exception(exc)
            return JSONResponse(
                err("Internal Server Error", error=error_id), status_code=exc.status_code
            )
        logger.info(
            exc.message, extra={"status": exc.status_code, "route": request.url.path}
        )
        return JSONResponse(err(exc.message, **exc.details), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()
        ]
        logger.info(
            "invalid request", extra={"status": 400, "route": request.url.path}
        )
        return JSONResponse(err("Invalid request", error=errors), status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(
            exc.detail,
            extra={
                "status": exc.status_code,
                "route": request.url.path,
                "user": request.headers.get("X-User"),
            },
        )
        return error_response(exc.status_code, str(exc.detail))

    @app.get("/health")
    async def health() -> dict:
        return ok(
            "Service healthy",
            status="ok",
            cache="up" if cache.is_available() else "down",
        )

    app.include_router(metrics_router)
    app.include_router(tables_router)
    app.include_router(orders_router)
    app.include_router(bills_router)
    app.include_router(reservations_router)
    app.include_router(realtime_router)
    return app


_settings = get_settings()
configure_logging(getattr(logging, _settings.log_level.upper(), logging.INFO))
init_sentry(_settings.error_dsn, env=_settings.env)

app = create_app(_settings)
