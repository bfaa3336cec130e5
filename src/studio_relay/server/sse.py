"""SSE event stream — converts relay events to client-facing frames."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from studio_relay.server.relay import RelayStream

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def event_stream_generator(stream: RelayStream) -> AsyncGenerator[str, None]:
    """Yield one SSE frame per relay event.

    Frames carry only a ``data:`` line; the event kind is the ``type``
    field of the JSON object::

        data: {"type": "chunk", "content": "Hel"}
    """
    events = stream.events()
    try:
        async for event in events:
            yield sse_frame(event)
    finally:
        await events.aclose()


def sse_frame(data: Any) -> str:
    """Format a single SSE frame."""
    json_data = json.dumps(data, default=str, ensure_ascii=False)
    return f"data: {json_data}\n\n"
