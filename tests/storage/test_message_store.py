"""Tests for studio_relay.storage.message_store."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from studio_relay.errors import PersistenceError
from studio_relay.storage.message_store import InMemoryMessageStore, JsonMessageStore, MessageStore

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(params=["memory", "json"])
def any_store(request: pytest.FixtureRequest, tmp_path: Path) -> MessageStore:
    if request.param == "memory":
        return InMemoryMessageStore()
    return JsonMessageStore(tmp_path / "data" / "messages.json")


class TestMessageStoreContract:
    async def test_satisfies_protocol(self, any_store: MessageStore) -> None:
        assert isinstance(any_store, MessageStore)

    async def test_create_and_list(self, any_store: MessageStore) -> None:
        user = await any_store.create_message("p1", "user", "Hi")
        placeholder = await any_store.create_message("p1", "assistant", "")

        assert user.id != placeholder.id
        assert user.id.startswith("msg-")
        assert placeholder.content == ""
        messages = await any_store.list_messages("p1")
        assert [m.id for m in messages] == [user.id, placeholder.id]

    async def test_projects_isolated(self, any_store: MessageStore) -> None:
        await any_store.create_message("p1", "user", "a")
        await any_store.create_message("p2", "user", "b")
        assert [m.content for m in await any_store.list_messages("p2")] == ["b"]
        assert await any_store.list_messages("p3") == []

    async def test_update_content(self, any_store: MessageStore) -> None:
        placeholder = await any_store.create_message("p1", "assistant", "")
        await any_store.update_message_content(placeholder.id, "Hello!")
        messages = await any_store.list_messages("p1")
        assert messages[0].content == "Hello!"

    async def test_update_unknown(self, any_store: MessageStore) -> None:
        with pytest.raises(PersistenceError, match="not found"):
            await any_store.update_message_content("msg-missing", "x")

    async def test_invalid_role(self, any_store: MessageStore) -> None:
        with pytest.raises(PersistenceError):
            await any_store.create_message("p1", "system", "x")

    async def test_file_kind(self, any_store: MessageStore) -> None:
        message = await any_store.create_message("p1", "user", "/uploads/a.pdf", kind="file")
        assert message.kind == "file"


class TestInMemoryMessageStore:
    async def test_returned_copies_are_detached(self) -> None:
        store = InMemoryMessageStore()
        message = await store.create_message("p1", "assistant", "")
        await store.update_message_content(message.id, "filled")
        assert message.content == ""
        assert (await store.get_message(message.id)).content == "filled"  # type: ignore[union-attr]

    async def test_get_unknown(self) -> None:
        assert await InMemoryMessageStore().get_message("nope") is None


class TestJsonMessageStore:
    async def test_persists_across_instances(self, tmp_path: Path) -> None:
        path = tmp_path / "messages.json"
        message = await JsonMessageStore(path).create_message("p1", "user", "Hi")

        reopened = JsonMessageStore(path)
        assert [m.id for m in await reopened.list_messages("p1")] == [message.id]
        assert (await reopened.get_message(message.id)).content == "Hi"  # type: ignore[union-attr]

    async def test_file_layout(self, tmp_path: Path) -> None:
        path = tmp_path / "messages.json"
        await JsonMessageStore(path).create_message("p1", "user", "Hi")

        data = json.loads(path.read_text())
        assert list(data) == ["p1"]
        assert data["p1"][0]["content"] == "Hi"
        assert not path.with_suffix(".json.tmp").exists()

    async def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        store = JsonMessageStore(tmp_path / "none.json")
        assert await store.list_messages("p1") == []
        assert await store.get_message("x") is None

    async def test_corrupt_file(self, tmp_path: Path) -> None:
        path = tmp_path / "messages.json"
        path.write_text("{not json")
        with pytest.raises(PersistenceError, match="Cannot read"):
            await JsonMessageStore(path).list_messages("p1")

    async def test_non_object_file(self, tmp_path: Path) -> None:
        path = tmp_path / "messages.json"
        path.write_text("[]")
        with pytest.raises(PersistenceError, match="not a JSON object"):
            await JsonMessageStore(path).create_message("p1", "user", "x")

    async def test_unwritable_location(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = JsonMessageStore(blocker / "messages.json")
        with pytest.raises(PersistenceError, match="Cannot write"):
            await store.create_message("p1", "user", "x")
