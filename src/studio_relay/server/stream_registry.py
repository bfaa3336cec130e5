"""In-process registry of in-flight relay streams -- placeholder id to cancel token."""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


class StreamRegistry:
    """Maps the ``ai_id`` handed to a client onto its stream's cancellation token.

    Each token belongs to exactly one stream pump; the registry only lets
    another request (the cancel endpoint) reach it.
    """

    def __init__(self) -> None:
        self._tokens: dict[str, asyncio.Event] = {}

    def register(self, placeholder_id: str, token: asyncio.Event | None = None) -> asyncio.Event:
        """Track a new stream and return its token."""
        if placeholder_id in self._tokens:
            raise RuntimeError(f"Stream already registered: {placeholder_id}")
        token = token if token is not None else asyncio.Event()
        self._tokens[placeholder_id] = token
        return token

    def get(self, placeholder_id: str) -> asyncio.Event | None:
        return self._tokens.get(placeholder_id)

    def cancel(self, placeholder_id: str) -> bool:
        """Signal the stream to stop. Returns False if no such stream is running."""
        token = self._tokens.get(placeholder_id)
        if token is None:
            return False
        logger.info("Cancel requested for stream %s", placeholder_id)
        token.set()
        return True

    def unregister(self, placeholder_id: str) -> None:
        self._tokens.pop(placeholder_id, None)

    def list_streams(self) -> list[str]:
        """Return the placeholder ids of all running streams."""
        return list(self._tokens)

    def cancel_all(self) -> None:
        for placeholder_id in list(self._tokens):
            self.cancel(placeholder_id)
