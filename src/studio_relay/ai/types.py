"""Core type definitions for the chat relay.

All value objects are frozen dataclasses (immutable), except the
per-request :class:`StreamSession` which the stream pump mutates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Union

# ---------------------------------------------------------------------------
# Literal type aliases
# ---------------------------------------------------------------------------

Grammar = str
"""Chunk grammar identifier: the api of a registered adapter, e.g. ``"openai-chat"``."""

AuthScheme = Literal["bearer", "x-api-key", "api-key"]

Role = Literal["user", "assistant"]

DoneReason = Literal["stop", "eof", "cancelled"]


# ---------------------------------------------------------------------------
# Provider descriptor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static description of one upstream model endpoint.

    ``base_url`` and ``path`` are kept apart so the base can be
    overridden from the environment without touching the route.
    """

    provider_id: str
    model: str
    base_url: str
    path: str
    auth_scheme: AuthScheme
    chunk_grammar: Grammar
    max_context_messages: int = 10
    max_tokens: int | None = None
    api_key_env: str | None = None

    @property
    def endpoint_url(self) -> str:
        return self.base_url.rstrip("/") + self.path


# ---------------------------------------------------------------------------
# Conversation / request values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChatTurn:
    """One prior message of the conversation, as sent upstream."""

    role: Role
    content: str


@dataclass(frozen=True)
class UpstreamRequest:
    """A fully built provider call. Always a streaming request."""

    method: str
    url: str
    headers: dict[str, str]
    body: dict[str, Any]


# ---------------------------------------------------------------------------
# Normalized delta events (discriminated union)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChunkEvent:
    """Incremental answer text. Never empty."""

    text: str
    type: Literal["chunk"] = "chunk"


@dataclass(frozen=True)
class DoneEvent:
    """The answer is complete (or was cut short by a cancel)."""

    reason: DoneReason = "stop"
    type: Literal["done"] = "done"


@dataclass(frozen=True)
class ErrorEvent:
    """The stream ended because of a provider or transport failure."""

    detail: str
    type: Literal["error"] = "error"


DeltaEvent = Union[ChunkEvent, DoneEvent, ErrorEvent]
"""Discriminated union of all normalized streaming events."""


# ---------------------------------------------------------------------------
# Stream session
# ---------------------------------------------------------------------------


@dataclass
class StreamSession:
    """Transient state of one relay request, owned by a single pump."""

    placeholder_id: str
    accumulated_text: str = ""
    cancelled: bool = False
    chunk_count: int = 0
