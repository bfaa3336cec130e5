"""Chat relay routes — stream an answer, cancel a running stream."""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from studio_relay.errors import RelayError, StreamNotFoundError
from studio_relay.server.relay import FALLBACK_ERROR, ChatRelay
from studio_relay.server.schemas import ChatRequest
from studio_relay.server.sse import SSE_HEADERS, event_stream_generator
from studio_relay.server.stream_registry import StreamRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["chat"])


def _get_relay() -> ChatRelay:
    from studio_relay.server.app import get_relay
    return get_relay()


def _get_streams() -> StreamRegistry:
    from studio_relay.server.app import get_stream_registry
    return get_stream_registry()


@router.post("/chat")
async def chat(req: ChatRequest) -> StreamingResponse:
    relay = _get_relay()
    try:
        stream = await relay.open(req.to_relay_request())
    except RelayError:
        raise
    except Exception as exc:
        logger.exception("Relay failed before streaming")
        raise RelayError(FALLBACK_ERROR) from exc

    return StreamingResponse(
        event_stream_generator(stream),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
        background=BackgroundTask(stream.aclose),
    )


@router.post("/chat/{message_id}/cancel", status_code=200)
async def cancel_chat(message_id: str) -> dict[str, str]:
    if not _get_streams().cancel(message_id):
        raise StreamNotFoundError(message_id)
    return {"status": "ok"}
