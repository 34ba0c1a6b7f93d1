from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crm_service.api.middleware.correlation_id import CorrelationIdMiddleware, configure_logging
from crm_service.api.middleware.metrics import RequestTimingMiddleware
from crm_service.api.v1.routers import auth, chat, health, permissions, ws
from crm_service.application.exceptions import (
    AuthenticationError,
    ConflictError,
    DataFetchError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from crm_service.application.ports.bus import MESSAGE_INSERTED
from crm_service.config import settings
from crm_service.infrastructure.bus.redis_pubsub import RedisPubSubSubscriber
from crm_service.infrastructure.bus.serializer import message_from_payload

logger = logging.getLogger(__name__)


async def _on_pubsub_event(event_type: str, data: dict[str, Any]) -> None:
    """Feed a realtime message insert to the local WS connections."""
    if event_type != MESSAGE_INSERTED:
        logger.debug("Ignoring realtime event %s", event_type)
        return

    try:
        message = message_from_payload(data)
    except (KeyError, ValueError):
        logger.warning("Malformed %s payload: %r", event_type, data)
        return

    await ws.get_manager().dispatch_inserted(message)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")

    subscriber = RedisPubSubSubscriber(
        app.state.redis,
        settings.REALTIME_CHANNEL,
        _on_pubsub_event,
    )
    await subscriber.start()
    app.state.pubsub_subscriber = subscriber

    yield

    await subscriber.stop()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="CRM Service",
        version="0.1.0",
        lifespan=lifespan,
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
    app.include_router(auth.router)
    app.include_router(permissions.router)
    app.include_router(chat.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ForbiddenError)
    async def _forbidden(_req: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(ConflictError)
    async def _conflict(_req: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(AuthenticationError)
    async def _unauthenticated(_req: Request, exc: AuthenticationError) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content={"detail": exc.detail},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(DataFetchError)
    async def _unavailable(_req: Request, exc: DataFetchError) -> JSONResponse:
        logger.error("Data store unavailable: %s", exc.detail)
        return JSONResponse(status_code=503, content={"detail": exc.detail})
