"""Async client for a running relay server.

Mirrors the browser side of the protocol: post a chat request, read the
``data:`` frames back as they arrive, and cancel a running answer by the
``messageId`` announced in its ``ai_id`` event.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx

from studio_relay.ai.chunk_parser import DATA_PREFIX, split_frames

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

DEFAULT_BASE_URL = "http://127.0.0.1:8080"


class RelayClientError(Exception):
    """The server rejected a request before streaming started."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


def _decode_frame(frame: bytes) -> dict[str, Any] | None:
    text = frame.decode("utf-8")
    for line in text.split("\n"):
        if line.startswith(DATA_PREFIX):
            return json.loads(line[len(DATA_PREFIX):].strip())
    return None


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict):
        return str(data.get("error") or data.get("detail") or data)
    return str(data)


class RelayClient:
    """Thin wrapper over the relay's REST + SSE API.

    Pass *http_client* to share a connection pool (or a mock transport);
    otherwise the client owns one and closes it in :meth:`aclose`.
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, http_client: httpx.AsyncClient | None = None) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=httpx.Timeout(None, connect=10.0))

    async def __aenter__(self) -> RelayClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def chat(
        self,
        model: str,
        message: str,
        project_id: str = "default",
        context: list[dict[str, str]] | None = None,
        kind: str = "text",
        timeout: float | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Send one message and yield the server's events in order.

        Raises :class:`RelayClientError` when the server answers with an
        error status instead of a stream.
        """
        payload: dict[str, Any] = {
            "projectId": project_id,
            "model": model,
            "message": message,
            "context": context or [],
            "type": kind,
        }
        if timeout is not None:
            payload["timeout"] = timeout

        async with self._http.stream("POST", f"{self._base_url}/api/ai/chat", json=payload) as response:
            if not response.is_success:
                await response.aread()
                raise RelayClientError(response.status_code, _error_message(response))

            buffer = b""
            async for fragment in response.aiter_bytes():
                frames, buffer = split_frames(buffer + fragment)
                for frame in frames:
                    event = _decode_frame(frame)
                    if event is not None:
                        yield event
            if buffer.strip():
                event = _decode_frame(buffer)
                if event is not None:
                    yield event

    async def cancel(self, message_id: str) -> bool:
        """Ask the server to stop the stream filling *message_id*.

        Returns ``False`` when the stream already finished.
        """
        response = await self._http.post(f"{self._base_url}/api/ai/chat/{message_id}/cancel")
        if response.status_code == 404:
            return False
        if not response.is_success:
            raise RelayClientError(response.status_code, _error_message(response))
        return True

    async def list_messages(self, project_id: str) -> list[dict[str, Any]]:
        response = await self._http.get(f"{self._base_url}/api/chat", params={"projectId": project_id})
        if not response.is_success:
            raise RelayClientError(response.status_code, _error_message(response))
        return response.json()["messages"]

    async def list_models(self) -> list[dict[str, Any]]:
        response = await self._http.get(f"{self._base_url}/api/models")
        if not response.is_success:
            raise RelayClientError(response.status_code, _error_message(response))
        return response.json()
