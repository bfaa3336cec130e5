"""OpenAI-compatible Chat Completions adapter.

Serves OpenAI itself and the vendors that copy its wire format
(Moonshot/Kimi, MiniMax, Z.ai/GLM, local gateways). The system prompt
travels as the first message; increments arrive on
``choices[0].delta.content``; the stream ends with ``data: [DONE]``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from studio_relay.ai.providers.base import auth_headers
from studio_relay.ai.types import ChunkEvent, ErrorEvent

if TYPE_CHECKING:
    from studio_relay.ai.types import ChatTurn, DeltaEvent, ProviderDescriptor


class OpenAIChatProvider:
    """Adapter for ``/chat/completions`` style endpoints."""

    @property
    def api(self) -> str:
        return "openai-chat"

    def build_headers(self, descriptor: ProviderDescriptor, api_key: str) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        headers.update(auth_headers(descriptor.auth_scheme, api_key))
        return headers

    def build_body(
        self,
        descriptor: ProviderDescriptor,
        system_prompt: str | None,
        messages: list[ChatTurn],
    ) -> dict[str, Any]:
        payload_messages: list[dict[str, str]] = []
        if system_prompt:
            payload_messages.append({"role": "system", "content": system_prompt})
        payload_messages.extend({"role": m.role, "content": m.content} for m in messages)

        body: dict[str, Any] = {
            "model": descriptor.model,
            "messages": payload_messages,
            "stream": True,
        }
        if descriptor.max_tokens is not None:
            body["max_tokens"] = descriptor.max_tokens
        return body

    def extract_events(self, payload: Any) -> list[DeltaEvent]:
        error = payload.get("error")
        if error:
            detail = error.get("message") if isinstance(error, dict) else str(error)
            return [ErrorEvent(detail=detail or "Upstream reported an error")]

        choices = payload.get("choices") or []
        if not choices:
            return []
        delta = choices[0].get("delta") or {}
        content = delta.get("content")
        if isinstance(content, str) and content:
            return [ChunkEvent(text=content)]
        return []
