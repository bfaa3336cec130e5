"""FastAPI application assembly — routes, CORS, health check, dependency wiring."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studio_relay import __version__
from studio_relay.ai.registry import ProviderRegistry
from studio_relay.config.settings import Settings
from studio_relay.errors import RelayError
from studio_relay.server.relay import ChatRelay
from studio_relay.server.schemas import ErrorResponse, HealthResponse
from studio_relay.server.stream_registry import StreamRegistry
from studio_relay.storage.message_store import JsonMessageStore, MessageStore

logger = logging.getLogger(__name__)

# Module-level singletons (set during app creation)
_relay: ChatRelay | None = None
_stream_registry: StreamRegistry | None = None
_provider_registry: ProviderRegistry | None = None
_message_store: MessageStore | None = None


def get_relay() -> ChatRelay:
    assert _relay is not None, "App not initialized"
    return _relay


def get_stream_registry() -> StreamRegistry:
    assert _stream_registry is not None, "App not initialized"
    return _stream_registry


def get_provider_registry() -> ProviderRegistry:
    assert _provider_registry is not None, "App not initialized"
    return _provider_registry


def get_message_store() -> MessageStore:
    assert _message_store is not None, "App not initialized"
    return _message_store


def create_app(
    settings: Settings | None = None,
    message_store: MessageStore | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    *message_store* and *http_client* replace the file-backed store and
    the shared upstream client; an injected client is not closed on
    shutdown.
    """
    global _relay, _stream_registry, _provider_registry, _message_store

    settings = settings or Settings()
    _provider_registry = ProviderRegistry.from_settings(settings.relay)
    _message_store = message_store or JsonMessageStore(Path(settings.storage.messages_file))
    _stream_registry = StreamRegistry()

    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(
        timeout=httpx.Timeout(None, connect=settings.relay.connect_timeout),
    )
    _relay = ChatRelay(
        registry=_provider_registry,
        store=_message_store,
        http_client=client,
        streams=_stream_registry,
        system_prompt=settings.relay.system_prompt,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
        yield
        if _stream_registry:
            _stream_registry.cancel_all()
        if owns_client:
            await client.aclose()

    app = FastAPI(title="Studio Relay", version=__version__, lifespan=lifespan)

    # CORS
    origins = settings.server.cors_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=exc.message).model_dump(),
        )

    # Health check
    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(version=__version__)

    # Register routes
    from studio_relay.server.routes.chat import router as chat_router
    from studio_relay.server.routes.messages import router as messages_router
    from studio_relay.server.routes.models import router as models_router

    app.include_router(chat_router)
    app.include_router(messages_router)
    app.include_router(models_router)

    return app
