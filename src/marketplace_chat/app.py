from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from marketplace_chat.api.deps import get_verifier
from marketplace_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from marketplace_chat.api.middleware.timing import RequestTimingMiddleware
from marketplace_chat.api.v1.routers import conversations, health, messages, ws
from marketplace_chat.application.exceptions import (
    AppError,
    NotFoundError,
    PayloadTooLargeError,
    StoreUnavailableError,
    UnauthenticatedError,
    ValidationError,
)
from marketplace_chat.application.ports.notifier import Notifier
from marketplace_chat.config import settings
from marketplace_chat.domain.value_objects.enums import FanoutBackend
from marketplace_chat.infrastructure.bus.redis_pubsub import (
    RedisNotifier,
    RedisPubSubSubscriber,
    local_delivery,
)
from marketplace_chat.infrastructure.db.schema import verify_schema
from marketplace_chat.infrastructure.db.session import engine
from marketplace_chat.infrastructure.db.uow import open_uow
from marketplace_chat.infrastructure.ws.gateway import Gateway
from marketplace_chat.infrastructure.ws.manager import ConnectionManager
from marketplace_chat.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    if settings.VERIFY_SCHEMA_ON_STARTUP:
        await verify_schema(engine)

    subscriber: RedisPubSubSubscriber | None = None
    if app.state.redis is not None:
        subscriber = RedisPubSubSubscriber(
            app.state.redis,
            settings.REDIS_PUBSUB_CHANNEL,
            local_delivery(app.state.manager),
        )
        await subscriber.start()

    yield

    if subscriber is not None:
        await subscriber.stop()
    if app.state.redis is not None:
        await app.state.redis.aclose()
        logger.info("Redis connection pool closed")
    await engine.dispose()


def create_app() -> FastAPI:
    setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    app = FastAPI(
        title="Marketplace Chat Gateway",
        version="0.1.0",
        lifespan=lifespan,
    )

    manager = ConnectionManager()
    notifier: Notifier = manager
    app.state.redis = None
    if settings.FANOUT_BACKEND is FanoutBackend.REDIS:
        app.state.redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
        notifier = RedisNotifier(app.state.redis, settings.REDIS_PUBSUB_CHANNEL)
        logger.info("Fan-out via Redis channel %s", settings.REDIS_PUBSUB_CHANNEL)

    app.state.manager = manager
    app.state.notifier = notifier
    app.state.uow_factory = open_uow
    app.state.gateway = Gateway(
        manager,
        notifier,
        get_verifier(),
        # Resolved per call so tests can swap the factory on app.state.
        lambda: app.state.uow_factory(),
        presence_scope=settings.PRESENCE_SCOPE,
        expose_error_details=settings.expose_error_details,
        store_timeout=settings.STORE_TIMEOUT_SECONDS,
    )

    app.add_middleware(RequestTimingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(conversations.router)
    app.include_router(messages.router)
    app.include_router(ws.router)

    return app


def _error_body(exc: AppError) -> dict[str, object]:
    return {"detail": exc.detail, "code": exc.code}


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content=_error_body(exc))

    @app.exception_handler(PayloadTooLargeError)
    async def _too_large(_req: Request, exc: PayloadTooLargeError) -> JSONResponse:
        return JSONResponse(status_code=413, content=_error_body(exc))

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content=_error_body(exc))

    @app.exception_handler(UnauthenticatedError)
    async def _unauthenticated(_req: Request, exc: UnauthenticatedError) -> JSONResponse:
        return JSONResponse(status_code=401, content=_error_body(exc))

    @app.exception_handler(StoreUnavailableError)
    async def _store_unavailable(_req: Request, exc: StoreUnavailableError) -> JSONResponse:
        content = {**_error_body(exc), "retryable": True}
        if settings.expose_error_details and exc.cause:
            content["details"] = exc.cause
        return JSONResponse(status_code=503, content=content)

    @app.exception_handler(SQLAlchemyError)
    async def _store_error(_req: Request, exc: SQLAlchemyError) -> JSONResponse:
        # Store failures outside a store_boundary, e.g. while closing the session.
        logger.exception("Unhandled store error")
        content: dict[str, object] = {
            "detail": "The service is temporarily unavailable, please retry",
            "code": StoreUnavailableError.code,
            "retryable": True,
        }
        if settings.expose_error_details:
            content["details"] = str(exc)
        return JSONResponse(status_code=503, content=content)
