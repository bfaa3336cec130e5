"""Conversation message persistence.

The relay only depends on the :class:`MessageStore` protocol. Two
implementations ship with the package: a JSON file keyed by project id,
which survives restarts, and an in-memory store for tests and
throwaway servers. Both report every failure as
:class:`~studio_relay.errors.PersistenceError`.
"""

from __future__ import annotations

import json
import time
import uuid
from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from studio_relay.errors import PersistenceError

if TYPE_CHECKING:
    from pathlib import Path

MessageKind = Literal["text", "file"]


class Message(BaseModel):
    """A stored conversation message."""

    id: str
    project_id: str
    role: Literal["user", "assistant"]
    content: str
    kind: MessageKind = "text"
    created_at: float


def _new_message(project_id: str, role: str, content: str, kind: str) -> Message:
    return Message(
        id=f"msg-{uuid.uuid4().hex[:12]}",
        project_id=project_id,
        role=role,  # type: ignore[arg-type]
        content=content,
        kind=kind,  # type: ignore[arg-type]
        created_at=time.time(),
    )


@runtime_checkable
class MessageStore(Protocol):
    """Contract the relay consumes. Writes for one record are serialized by the store."""

    async def create_message(
        self,
        project_id: str,
        role: str,
        content: str,
        kind: str = "text",
    ) -> Message:
        ...

    async def update_message_content(self, message_id: str, content: str) -> None:
        ...

    async def list_messages(self, project_id: str) -> list[Message]:
        """Return the project's messages ordered by creation time, oldest first."""
        ...


class InMemoryMessageStore:
    """Process-local message store."""

    def __init__(self) -> None:
        self._messages: dict[str, Message] = {}

    async def create_message(
        self,
        project_id: str,
        role: str,
        content: str,
        kind: str = "text",
    ) -> Message:
        try:
            message = _new_message(project_id, role, content, kind)
        except PydanticValidationError as e:
            raise PersistenceError(f"Invalid message: {e}") from e
        self._messages[message.id] = message
        return message.model_copy()

    async def update_message_content(self, message_id: str, content: str) -> None:
        message = self._messages.get(message_id)
        if message is None:
            raise PersistenceError(f"Message not found: {message_id}")
        self._messages[message_id] = message.model_copy(update={"content": content})

    async def get_message(self, message_id: str) -> Message | None:
        message = self._messages.get(message_id)
        return message.model_copy() if message else None

    async def list_messages(self, project_id: str) -> list[Message]:
        messages = [m for m in self._messages.values() if m.project_id == project_id]
        return sorted(messages, key=lambda m: m.created_at)


class JsonMessageStore:
    """Messages persisted to one JSON document: ``{project_id: [message, ...]}``.

    Each operation reads and rewrites the whole file without yielding to
    the event loop in between, so operations never interleave.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, list[dict]]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read message store {self._path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Message store {self._path} is not a JSON object")
        return data

    def _write(self, data: dict[str, list[dict]]) -> None:
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            tmp_path.replace(self._path)
        except OSError as e:
            raise PersistenceError(f"Cannot write message store {self._path}: {e}") from e

    async def create_message(
        self,
        project_id: str,
        role: str,
        content: str,
        kind: str = "text",
    ) -> Message:
        try:
            message = _new_message(project_id, role, content, kind)
        except PydanticValidationError as e:
            raise PersistenceError(f"Invalid message: {e}") from e
        data = self._read()
        data.setdefault(project_id, []).append(message.model_dump())
        self._write(data)
        return message

    async def update_message_content(self, message_id: str, content: str) -> None:
        data = self._read()
        for messages in data.values():
            for entry in messages:
                if entry.get("id") == message_id:
                    entry["content"] = content
                    self._write(data)
                    return
        raise PersistenceError(f"Message not found: {message_id}")

    async def get_message(self, message_id: str) -> Message | None:
        for messages in self._read().values():
            for entry in messages:
                if entry.get("id") == message_id:
                    return Message.model_validate(entry)
        return None

    async def list_messages(self, project_id: str) -> list[Message]:
        entries = self._read().get(project_id, [])
        try:
            messages = [Message.model_validate(entry) for entry in entries]
        except PydanticValidationError as e:
            raise PersistenceError(f"Corrupt message in {self._path}: {e}") from e
        return sorted(messages, key=lambda m: m.created_at)
