"""Stream pump -- drives one upstream response body to a terminal state.

States::

    IDLE -> STREAMING -> COMPLETED | FAILED | CANCELLED

The pump reads fragments, feeds them through its own
:class:`~studio_relay.ai.chunk_parser.ChunkParser`, forwards every chunk
immediately and accumulates the answer text. The placeholder message is
written once, on the terminal transition: always on ``COMPLETED``, and
on ``FAILED``/``CANCELLED`` only when some text arrived.

Cancellation comes from two directions:

* the cancel token (an :class:`asyncio.Event`) passed in by the caller,
  raced against every upstream read so a stalled provider cannot delay it;
* the consuming task being cancelled or the generator being closed
  (client disconnect), in which case the partial answer is still written
  before the exception propagates.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import TYPE_CHECKING

import httpx

from studio_relay.ai.chunk_parser import ChunkParser
from studio_relay.ai.types import DoneEvent, ErrorEvent, StreamSession
from studio_relay.errors import PersistenceError, UpstreamStreamError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterable, AsyncIterator

    from studio_relay.ai.chunk_parser import Extractor
    from studio_relay.ai.types import DeltaEvent
    from studio_relay.storage.message_store import MessageStore

logger = logging.getLogger(__name__)


class PumpState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({PumpState.COMPLETED, PumpState.FAILED, PumpState.CANCELLED})

_CANCELLED = object()


async def _next_fragment(reader: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await reader.__anext__()
    except StopAsyncIteration:
        return None


class StreamPump:
    """One-shot state machine for a single relay request.

    Parameters
    ----------
    extract:
        Payload extractor of the provider adapter serving this stream.
    store:
        Message store holding the placeholder record.
    placeholder_id:
        Id of the empty assistant message to fill in.
    cancel:
        Cancellation token shared with the relay endpoint. Setting it
        stops the upstream read and finalizes the stream as cancelled.
    """

    def __init__(
        self,
        extract: Extractor,
        store: MessageStore,
        placeholder_id: str,
        cancel: asyncio.Event | None = None,
    ) -> None:
        self._parser = ChunkParser(extract)
        self._store = store
        self._cancel = cancel if cancel is not None else asyncio.Event()
        self._session = StreamSession(placeholder_id=placeholder_id)
        self._state = PumpState.IDLE
        self._checkpoints = 0

    @property
    def state(self) -> PumpState:
        return self._state

    @property
    def finished(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def session(self) -> StreamSession:
        return self._session

    @property
    def checkpoint_count(self) -> int:
        """Number of writes made to the placeholder (0 or 1)."""
        return self._checkpoints

    def cancel(self) -> None:
        self._cancel.set()

    async def run(self, body: AsyncIterable[bytes] | None) -> AsyncGenerator[DeltaEvent, None]:
        """Consume *body* and yield chunk events followed by one terminal event.

        *body* is ``None`` when the upstream produced no readable body; the
        pump then fails without entering the read loop.
        """
        if self._state is not PumpState.IDLE:
            raise RuntimeError(f"StreamPump already ran (state={self._state.value})")

        if body is None:
            logger.warning("Upstream response for %s has no body", self._session.placeholder_id)
            yield await self._finish(PumpState.FAILED, ErrorEvent(detail="Upstream response has no body"))
            return

        self._state = PumpState.STREAMING
        reader = body.__aiter__()
        terminal: DeltaEvent | None = None
        try:
            while terminal is None:
                if self._cancel.is_set():
                    terminal = await self._finish_cancelled()
                    break

                fragment = await self._read(reader)
                if fragment is _CANCELLED:
                    continue

                at_eof = fragment is None
                events = self._parser.flush() if at_eof else self._parser.feed(fragment)  # type: ignore[arg-type]
                for event in events:
                    if self._cancel.is_set():
                        break
                    if event.type == "chunk":
                        self._session.accumulated_text += event.text
                        self._session.chunk_count += 1
                        yield event
                    elif event.type == "done":
                        terminal = await self._finish(PumpState.COMPLETED, event)
                        break
                    else:
                        logger.info("Upstream reported an error: %s", event.detail)
                        terminal = await self._finish(PumpState.FAILED, event)
                        break

                if terminal is None and at_eof and not self._cancel.is_set():
                    logger.debug("Upstream closed without a completion frame")
                    terminal = await self._finish(PumpState.COMPLETED, DoneEvent(reason="eof"))
        except (asyncio.CancelledError, GeneratorExit):
            if self._state is PumpState.STREAMING:
                self._state = PumpState.CANCELLED
                self._session.cancelled = True
                logger.info(
                    "Stream %s abandoned after %d chunks",
                    self._session.placeholder_id,
                    self._session.chunk_count,
                )
                try:
                    await asyncio.shield(self._checkpoint(partial=True))
                except PersistenceError:
                    logger.exception("Failed to save partial answer for %s", self._session.placeholder_id)
            raise
        except (httpx.HTTPError, OSError) as exc:
            error = UpstreamStreamError(f"Upstream stream failed: {exc}")
            logger.warning("%s (placeholder %s)", error.message, self._session.placeholder_id)
            terminal = await self._finish(PumpState.FAILED, ErrorEvent(detail=error.message))

        yield terminal

    async def _read(self, reader: AsyncIterator[bytes]) -> bytes | None | object:
        """Return the next fragment, ``None`` at EOF or ``_CANCELLED``."""
        read_task = asyncio.ensure_future(_next_fragment(reader))
        cancel_task = asyncio.ensure_future(self._cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {read_task, cancel_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (read_task, cancel_task):
                if not task.done():
                    task.cancel()

        if read_task in done:
            return read_task.result()

        # Reap the abandoned read; its outcome no longer matters.
        await asyncio.gather(read_task, return_exceptions=True)
        return _CANCELLED

    async def _finish_cancelled(self) -> DeltaEvent:
        self._session.cancelled = True
        logger.info(
            "Stream %s cancelled after %d chunks",
            self._session.placeholder_id,
            self._session.chunk_count,
        )
        return await self._finish(PumpState.CANCELLED, DoneEvent(reason="cancelled"))

    async def _finish(self, state: PumpState, event: DeltaEvent) -> DeltaEvent:
        """Enter terminal *state*, checkpoint, and return the terminal event to emit."""
        self._state = state
        try:
            await self._checkpoint(partial=state is not PumpState.COMPLETED)
        except PersistenceError as exc:
            logger.exception("Failed to save answer for %s", self._session.placeholder_id)
            if event.type == "error":
                return event
            return ErrorEvent(detail=f"Failed to save response: {exc.message}")
        return event

    async def _checkpoint(self, partial: bool) -> None:
        text = self._session.accumulated_text
        if partial and not text:
            return
        await self._store.update_message_content(self._session.placeholder_id, text)
        self._checkpoints += 1
