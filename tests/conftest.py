"""Shared test fixtures for the studio-relay test suite."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from studio_relay.ai.env_api_keys import _ENV_BASE_URL_MAP, _ENV_KEY_MAP
from studio_relay.ai.registry import ProviderRegistry
from studio_relay.ai.types import ProviderDescriptor
from studio_relay.config.loader import _ENV_OVERRIDES
from studio_relay.errors import PersistenceError
from studio_relay.storage.message_store import InMemoryMessageStore, Message

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

UPSTREAM_BASE_URL = "http://upstream.test/v1"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_descriptor(
    provider_id: str = "testco",
    model: str = "test-upstream",
    grammar: str = "openai-chat",
    **overrides: Any,
) -> ProviderDescriptor:
    """Create a ProviderDescriptor pointing at the fake upstream."""
    anthropic = grammar == "anthropic-messages"
    fields: dict[str, Any] = {
        "provider_id": provider_id,
        "model": model,
        "base_url": UPSTREAM_BASE_URL,
        "path": "/v1/messages" if anthropic else "/chat/completions",
        "auth_scheme": "x-api-key" if anthropic else "bearer",
        "chunk_grammar": grammar,
        "api_key_env": "TEST_API_KEY",
    }
    fields.update(overrides)
    return ProviderDescriptor(**fields)


def make_registry(**descriptors: ProviderDescriptor) -> ProviderRegistry:
    """Registry with a ``test-model`` (openai-chat) plus any extra entries."""
    models = {"test-model": make_descriptor()}
    models.update(descriptors)
    return ProviderRegistry(models, aliases={"test": "test-model"})


def openai_frame(text: str, ensure_ascii: bool = True) -> bytes:
    """One OpenAI-style ``data:`` frame carrying *text*.

    With ``ensure_ascii=False`` non-ASCII text goes on the wire as raw UTF-8.
    """
    payload = {"choices": [{"index": 0, "delta": {"content": text}}]}
    return f"data: {json.dumps(payload, ensure_ascii=ensure_ascii)}\n\n".encode()


OPENAI_DONE = b"data: [DONE]\n\n"


def anthropic_frame(event_type: str, **data: Any) -> bytes:
    """One Anthropic-style frame with its ``event:`` line."""
    payload = {"type": event_type, **data}
    return f"event: {event_type}\ndata: {json.dumps(payload)}\n\n".encode()


def anthropic_text(text: str) -> bytes:
    return anthropic_frame("content_block_delta", index=0, delta={"type": "text_delta", "text": text})


def chunk_texts(events: list[Any]) -> list[str]:
    """Texts of the chunk events in *events*, in order."""
    return [e.text for e in events if e.type == "chunk"]


async def byte_source(
    fragments: list[bytes],
    stall: asyncio.Event | None = None,
    fail_with: BaseException | None = None,
) -> AsyncIterator[bytes]:
    """Yield *fragments*, then optionally block on *stall* or raise *fail_with*."""
    for fragment in fragments:
        yield fragment
        await asyncio.sleep(0)
    if fail_with is not None:
        raise fail_with
    if stall is not None:
        await stall.wait()


def parse_sse(body: str) -> list[dict[str, Any]]:
    """Decode a full relay response body into its JSON events."""
    events = []
    for frame in body.split("\n\n"):
        frame = frame.strip()
        if frame.startswith("data:"):
            events.append(json.loads(frame[len("data:"):]))
    return events


# ---------------------------------------------------------------------------
# Fake upstream
# ---------------------------------------------------------------------------

class FakeUpstream:
    """httpx MockTransport handler that records requests and streams canned bytes."""

    def __init__(
        self,
        fragments: list[bytes] | None = None,
        status_code: int = 200,
        error_body: bytes = b'{"error": "boom"}',
        stall: bool = False,
        connect_error: bool = False,
        delay: float | None = None,
    ) -> None:
        self.fragments = fragments if fragments is not None else [openai_frame("Hel"), openai_frame("lo!"), OPENAI_DONE]
        self.status_code = status_code
        self.error_body = error_body
        self.stall_event = asyncio.Event() if stall else None
        self.connect_error = connect_error
        self.delay = delay
        self.requests: list[httpx.Request] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def last_json(self) -> dict[str, Any]:
        return json.loads(self.requests[-1].content)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.connect_error:
            raise httpx.ConnectError("connection refused", request=request)
        if self.delay is not None:
            # Connection accepted, response headers held back.
            await asyncio.sleep(self.delay)
        if self.status_code != 200:
            return httpx.Response(self.status_code, content=self.error_body)
        return httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content=byte_source(list(self.fragments), stall=self.stall_event),
        )

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class FailingMessageStore(InMemoryMessageStore):
    """In-memory store whose writes can be made to fail."""

    def __init__(self, fail_create: bool = False, fail_update: bool = False, fail_create_after: int | None = None) -> None:
        super().__init__()
        self.fail_create = fail_create
        self.fail_update = fail_update
        self.fail_create_after = fail_create_after
        self.creates = 0
        self.updates: list[tuple[str, str]] = []

    async def create_message(self, project_id: str, role: str, content: str, kind: str = "text") -> Message:
        if self.fail_create or (self.fail_create_after is not None and self.creates >= self.fail_create_after):
            raise PersistenceError("disk full")
        self.creates += 1
        return await super().create_message(project_id, role, content, kind)

    async def update_message_content(self, message_id: str, content: str) -> None:
        self.updates.append((message_id, content))
        if self.fail_update:
            raise PersistenceError("disk full")
        await super().update_message_content(message_id, content)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove every credential, base-URL and STUDIO_* variable the relay reads."""
    names = {v for vs in _ENV_KEY_MAP.values() for v in vs}
    names |= {v for vs in _ENV_BASE_URL_MAP.values() for v in vs}
    names |= set(_ENV_OVERRIDES)
    names.add("TEST_API_KEY")
    for name in names:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def api_key(monkeypatch: pytest.MonkeyPatch) -> str:
    """Provide a credential for the ``testco`` test provider."""
    monkeypatch.setenv("TEST_API_KEY", "sk-test")
    return "sk-test"


@pytest.fixture
def store() -> InMemoryMessageStore:
    return InMemoryMessageStore()
