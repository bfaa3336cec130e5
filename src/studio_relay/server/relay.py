"""Relay endpoint orchestration, independent of the web framework.

:meth:`ChatRelay.open` performs every step that can still fail with a
plain HTTP error (validation, model resolution, request building, user
message persistence, upstream dispatch, placeholder creation) and
returns a :class:`RelayStream`. From then on failures are reported
inside the stream.

Order of side effects::

    validate -> resolve -> build (credential check) -> persist user message
    -> dispatch -> status check -> create placeholder -> stream

so a request rejected for bad input or configuration leaves nothing
behind, and a rejected upstream call leaves no placeholder.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from studio_relay.ai.request_builder import build_request
from studio_relay.ai.stream_pump import StreamPump
from studio_relay.errors import UpstreamRequestError, ValidationError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from studio_relay.ai.registry import ProviderRegistry, ResolvedModel
    from studio_relay.ai.types import ChatTurn, DeltaEvent, UpstreamRequest
    from studio_relay.server.stream_registry import StreamRegistry
    from studio_relay.storage.message_store import Message, MessageStore

logger = logging.getLogger(__name__)

FALLBACK_ERROR = "Something went wrong while talking to the assistant. Please try again."
_ERROR_BODY_LIMIT = 500


@dataclass(frozen=True)
class RelayRequest:
    """One client chat request."""

    model: str
    message: str
    project_id: str = "default"
    history: tuple[ChatTurn, ...] = field(default_factory=tuple)
    kind: str = "text"
    timeout: float | None = None


def to_client_event(event: DeltaEvent) -> dict[str, Any]:
    """Map a normalized delta event onto the client-facing JSON object."""
    if event.type == "chunk":
        return {"type": "chunk", "content": event.text}
    if event.type == "done":
        return {"type": "done", "reason": event.reason}
    return {"type": "error", "error": event.detail}


class RelayStream:
    """An opened relay exchange; iterate :meth:`events` exactly once."""

    def __init__(
        self,
        user_message: Message,
        placeholder: Message,
        response: httpx.Response,
        pump: StreamPump,
        streams: StreamRegistry,
        timeout: float | None = None,
    ) -> None:
        self.user_message = user_message
        self.placeholder = placeholder
        self._response = response
        self._pump = pump
        self._streams = streams
        self._timeout = timeout
        self._closed = False

    @property
    def placeholder_id(self) -> str:
        return self.placeholder.id

    @property
    def pump(self) -> StreamPump:
        return self._pump

    def cancel(self) -> None:
        self._pump.cancel()

    async def events(self) -> AsyncGenerator[dict[str, Any], None]:
        """Yield ``user_message``, ``ai_id``, chunks, then one terminal event."""
        deadline: asyncio.TimerHandle | None = None
        if self._timeout is not None:
            deadline = asyncio.get_running_loop().call_later(self._timeout, self._pump.cancel)

        pump_events: AsyncGenerator[DeltaEvent, None] | None = None
        try:
            yield {"type": "user_message", "message": self.user_message.model_dump()}
            yield {"type": "ai_id", "messageId": self.placeholder.id}

            body = None if self._response.is_closed else self._response.aiter_bytes()
            pump_events = self._pump.run(body)
            try:
                async for event in pump_events:
                    yield to_client_event(event)
            except Exception:
                logger.exception("Relay stream %s failed", self.placeholder.id)
                yield {"type": "error", "error": FALLBACK_ERROR}
        finally:
            if deadline is not None:
                deadline.cancel()
            # A closed consumer leaves the pump suspended mid-stream; closing
            # it here saves the partial answer.
            if pump_events is not None:
                await pump_events.aclose()
            await self.aclose()

    async def aclose(self) -> None:
        """Release the upstream connection and forget the cancel token. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._streams.unregister(self.placeholder.id)
        await self._response.aclose()


class ChatRelay:
    """Wires the provider registry, message store and HTTP client together."""

    def __init__(
        self,
        registry: ProviderRegistry,
        store: MessageStore,
        http_client: httpx.AsyncClient,
        streams: StreamRegistry,
        system_prompt: str | None = None,
    ) -> None:
        self._registry = registry
        self._store = store
        self._http = http_client
        self._streams = streams
        self._system_prompt = system_prompt

    async def open(self, request: RelayRequest) -> RelayStream:
        """Run every pre-stream step and return the stream to forward.

        Raises
        ------
        ValidationError
            Empty model or message.
        ConfigurationError
            Unknown model or missing credential.
        PersistenceError
            The user message or placeholder could not be written.
        UpstreamRequestError
            The provider could not be reached, did not answer before the
            request deadline, or answered with a non-2xx status.
        """
        loop = asyncio.get_running_loop()
        deadline = None if request.timeout is None else loop.time() + request.timeout
        if not request.model.strip():
            raise ValidationError("Model required")
        if not request.message.strip():
            raise ValidationError("Message required")

        resolved = self._registry.resolve(request.model)
        upstream = build_request(resolved, self._system_prompt, request.history, request.message)

        user_message = await self._store.create_message(
            request.project_id, "user", request.message, request.kind,
        )
        logger.debug("Stored user message %s for project %s", user_message.id, request.project_id)

        response = await self._dispatch(resolved, upstream, _time_left(loop, deadline))
        try:
            placeholder = await self._store.create_message(request.project_id, "assistant", "", "text")
        except BaseException:
            await response.aclose()
            raise

        token = self._streams.register(placeholder.id)
        pump = StreamPump(
            resolved.adapter.extract_events,
            self._store,
            placeholder.id,
            cancel=token,
        )
        logger.info(
            "Relaying %s to %s (%s) as %s",
            user_message.id,
            resolved.name,
            resolved.descriptor.provider_id,
            placeholder.id,
        )
        return RelayStream(user_message, placeholder, response, pump, self._streams, _time_left(loop, deadline))

    async def _dispatch(
        self,
        resolved: ResolvedModel,
        upstream: UpstreamRequest,
        timeout: float | None = None,
    ) -> httpx.Response:
        provider_id = resolved.descriptor.provider_id
        http_request = self._http.build_request(
            upstream.method,
            upstream.url,
            headers=upstream.headers,
            json=upstream.body,
        )
        try:
            response = await asyncio.wait_for(self._http.send(http_request, stream=True), timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("Upstream %s did not answer within %.3gs", provider_id, timeout)
            raise UpstreamRequestError(
                provider_id,
                f"Provider {provider_id} did not respond within {timeout:g}s",
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Upstream %s unreachable: %s", provider_id, exc)
            raise UpstreamRequestError(provider_id, f"Provider {provider_id} unreachable: {exc}") from exc

        if not response.is_success:
            detail = await _read_error_body(response)
            logger.warning("Upstream %s returned %d: %s", provider_id, response.status_code, detail)
            raise UpstreamRequestError(
                provider_id,
                f"Provider error: {response.status_code}",
                status=response.status_code,
            )
        return response


def _time_left(loop: asyncio.AbstractEventLoop, deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return max(0.0, deadline - loop.time())


async def _read_error_body(response: httpx.Response) -> str:
    try:
        raw = await response.aread()
    except httpx.HTTPError:
        return ""
    finally:
        await response.aclose()
    return raw[:_ERROR_BODY_LIMIT].decode("utf-8", errors="replace")
