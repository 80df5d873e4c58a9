from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import jwt
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from group_sync.api.v1.routers import health, view, ws
from group_sync.application.exceptions import (
    HistoryFetchError,
    MembershipFetchError,
    NotFoundError,
    SendFailedError,
    ValidationError,
)
from group_sync.application.ports.auth import TokenReader
from group_sync.config import settings
from group_sync.infrastructure.auth.token_reader import JwtTokenReader
from group_sync.infrastructure.bus.redis_pubsub import RedisPubSubTransport
from group_sync.infrastructure.bus.serializer import decode_push
from group_sync.infrastructure.http.backend_client import BackendClient, create_http_client
from group_sync.services.messaging_view import MessagingView
from group_sync.services.transport_session import TransportSession

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Mount the messaging view on startup, unmount on shutdown."""
    reader: TokenReader = JwtTokenReader(
        settings.JWT_SECRET,
        settings.JWT_ALGORITHM,
        settings.JWT_USER_ID_CLAIM,
    )
    try:
        principal = reader.read(settings.ACCESS_TOKEN)
    except jwt.InvalidTokenError as exc:
        logger.error("ACCESS_TOKEN is not a usable session token: %s", exc)
        raise

    http = create_http_client(
        settings.BACKEND_API_URL,
        settings.ACCESS_TOKEN,
        settings.HTTP_TIMEOUT_SECONDS,
    )
    backend = BackendClient(http)

    session = TransportSession(
        RedisPubSubTransport(settings.REDIS_URL, username=settings.REDIS_USERNAME),
        settings.ACCESS_TOKEN,
        reconnect_delay=settings.TRANSPORT_RECONNECT_DELAY_SECONDS,
        heartbeat_interval=settings.TRANSPORT_HEARTBEAT_SECONDS,
    )
    app.state.view = MessagingView(
        session,
        backend,
        backend,
        backend,
        principal,
        decode_push,
        topic_template=settings.TOPIC_TEMPLATE,
    )
    logger.info("Messaging view created for user %s", principal.user_id)

    try:
        await app.state.view.mount()
    except MembershipFetchError as exc:
        logger.warning("Initial load failed, waiting for a membership refresh: %s", exc.detail)

    yield

    await app.state.view.unmount()
    await http.aclose()
    logger.info("Messaging view unmounted")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Group Sync View",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(view.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(SendFailedError)
    async def _send_failed(_req: Request, exc: SendFailedError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": exc.detail})

    @app.exception_handler(MembershipFetchError)
    async def _membership(_req: Request, exc: MembershipFetchError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": exc.detail})

    @app.exception_handler(HistoryFetchError)
    async def _history(_req: Request, exc: HistoryFetchError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": exc.detail})
