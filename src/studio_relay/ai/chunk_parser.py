"""Incremental parser for upstream server-sent-event streams.

Upstream bytes arrive in fragments that ignore frame boundaries. The
parser appends each fragment to a carry-over buffer, splits on the blank
line delimiter, parses every complete frame and keeps the trailing
partial frame for the next call. A frame is only decoded once its
delimiter has been seen, so a JSON document cut in half by the network
is never handed to ``json.loads``.

Frames are decoded as UTF-8 after splitting; a multi-byte character cut
across two fragments is therefore reassembled before decoding.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from studio_relay.ai.types import DeltaEvent, DoneEvent

logger = logging.getLogger(__name__)

FRAME_DELIMITER = b"\n\n"
DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

Extractor = Callable[[Any], list[DeltaEvent]]
"""Provider-specific payload extractor (see ``ProviderAdapter.extract_events``)."""


def split_frames(buffer: bytes) -> tuple[list[bytes], bytes]:
    """Split *buffer* into complete frames and the unterminated remainder.

    ``\\r\\n`` line endings are normalised first. A lone ``\\r`` at the
    end of the buffer stays in the remainder and is normalised once its
    ``\\n`` arrives.
    """
    normalized = buffer.replace(b"\r\n", b"\n")
    *frames, remainder = normalized.split(FRAME_DELIMITER)
    return frames, remainder


def _data_payloads(text: str) -> list[str]:
    payloads: list[str] = []
    for line in text.split("\n"):
        if line.startswith(DATA_PREFIX):
            payloads.append(line[len(DATA_PREFIX):].strip())
    return payloads


def parse_frame(frame: bytes, extract: Extractor) -> list[DeltaEvent]:
    """Parse one complete frame into delta events.

    Never raises on bad input: undecodable bytes, invalid JSON and
    payloads the extractor does not understand all yield no events. A
    frame that signals completion yields exactly one :class:`DoneEvent`
    and nothing else.
    """
    try:
        text = frame.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Skipping undecodable frame (%d bytes)", len(frame))
        return []

    payloads = _data_payloads(text)
    if DONE_SENTINEL in payloads:
        return [DoneEvent()]

    events: list[DeltaEvent] = []
    for payload in payloads:
        if not payload:
            continue
        try:
            data = json.loads(payload)
            extracted = extract(data)
        except (ValueError, KeyError, IndexError, TypeError, AttributeError):
            logger.debug("Skipping unparseable payload: %.200s", payload)
            continue
        events.extend(extracted)

    for event in events:
        if event.type == "done":
            return [event]
    return [e for e in events if e.type != "chunk" or e.text]


def parse_buffer(buffer: bytes, extract: Extractor) -> tuple[list[DeltaEvent], bytes]:
    """Parse every complete frame in *buffer*.

    Returns the events in order and the bytes of the trailing partial
    frame, which the caller must prepend to the next fragment.
    """
    frames, remainder = split_frames(buffer)
    events: list[DeltaEvent] = []
    for frame in frames:
        events.extend(parse_frame(frame, extract))
    return events, remainder


class ChunkParser:
    """Stateful wrapper around :func:`parse_buffer` that owns its carry-over.

    One instance belongs to one upstream stream; nothing is shared
    between concurrent requests.
    """

    def __init__(self, extract: Extractor) -> None:
        self._extract = extract
        self._carry = b""

    @property
    def remainder(self) -> bytes:
        """Bytes of the partial frame waiting for its delimiter."""
        return self._carry

    def feed(self, fragment: bytes) -> list[DeltaEvent]:
        """Add *fragment* and return the events of every frame it completed."""
        events, self._carry = parse_buffer(self._carry + fragment, self._extract)
        return events

    def flush(self) -> list[DeltaEvent]:
        """Parse the unterminated trailing frame once, at end of stream."""
        trailing, self._carry = self._carry, b""
        if not trailing.strip():
            return []
        logger.debug("Parsing %d trailing bytes left without a delimiter", len(trailing))
        return parse_frame(trailing, self._extract)
