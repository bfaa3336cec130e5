"""Anthropic Messages API adapter.

The system prompt is a top-level ``system`` field, ``max_tokens`` is
mandatory, authentication uses ``x-api-key`` plus a pinned
``anthropic-version`` header, and text increments arrive as
``content_block_delta`` events. There is no ``[DONE]`` sentinel; the
stream ends with a ``message_stop`` event.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from studio_relay.ai.providers.base import auth_headers
from studio_relay.ai.types import ChunkEvent, DoneEvent, ErrorEvent

if TYPE_CHECKING:
    from studio_relay.ai.types import ChatTurn, DeltaEvent, ProviderDescriptor

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4096


class AnthropicMessagesProvider:
    """Adapter for ``/v1/messages`` streaming."""

    @property
    def api(self) -> str:
        return "anthropic-messages"

    def build_headers(self, descriptor: ProviderDescriptor, api_key: str) -> dict[str, str]:
        headers = {
            "content-type": "application/json",
            "accept": "text/event-stream",
            "anthropic-version": ANTHROPIC_VERSION,
        }
        headers.update(auth_headers(descriptor.auth_scheme, api_key))
        return headers

    def build_body(
        self,
        descriptor: ProviderDescriptor,
        system_prompt: str | None,
        messages: list[ChatTurn],
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": descriptor.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "max_tokens": descriptor.max_tokens or DEFAULT_MAX_TOKENS,
            "stream": True,
        }
        if system_prompt:
            body["system"] = system_prompt
        return body

    def extract_events(self, payload: Any) -> list[DeltaEvent]:
        event_type = payload.get("type")
        if event_type == "content_block_delta":
            delta = payload["delta"]
            if delta.get("type", "text_delta") != "text_delta":
                return []
            text = delta.get("text")
            if isinstance(text, str) and text:
                return [ChunkEvent(text=text)]
            return []
        if event_type == "message_stop":
            return [DoneEvent()]
        if event_type == "error":
            error = payload.get("error") or {}
            return [ErrorEvent(detail=error.get("message") or "Upstream reported an error")]
        # message_start, content_block_start/stop, message_delta, ping
        return []
