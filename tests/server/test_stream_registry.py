"""Tests for studio_relay.server.stream_registry."""

from __future__ import annotations

import asyncio

import pytest

from studio_relay.server.stream_registry import StreamRegistry


class TestStreamRegistry:
    def test_register_returns_token(self) -> None:
        registry = StreamRegistry()
        token = registry.register("msg-1")
        assert registry.get("msg-1") is token
        assert not token.is_set()

    def test_register_existing_token(self) -> None:
        registry = StreamRegistry()
        token = asyncio.Event()
        assert registry.register("msg-1", token) is token

    def test_duplicate_rejected(self) -> None:
        registry = StreamRegistry()
        registry.register("msg-1")
        with pytest.raises(RuntimeError, match="already registered"):
            registry.register("msg-1")

    def test_cancel_sets_token(self) -> None:
        registry = StreamRegistry()
        token = registry.register("msg-1")
        assert registry.cancel("msg-1") is True
        assert token.is_set()

    def test_cancel_unknown(self) -> None:
        assert StreamRegistry().cancel("nope") is False

    def test_cancel_only_targets_one_stream(self) -> None:
        registry = StreamRegistry()
        t1 = registry.register("msg-1")
        t2 = registry.register("msg-2")
        registry.cancel("msg-1")
        assert t1.is_set()
        assert not t2.is_set()

    def test_unregister(self) -> None:
        registry = StreamRegistry()
        registry.register("msg-1")
        registry.unregister("msg-1")
        registry.unregister("msg-1")
        assert registry.get("msg-1") is None
        assert registry.list_streams() == []

    def test_cancel_all(self) -> None:
        registry = StreamRegistry()
        tokens = [registry.register(f"msg-{i}") for i in range(3)]
        registry.cancel_all()
        assert all(t.is_set() for t in tokens)
        assert registry.list_streams() == ["msg-0", "msg-1", "msg-2"]
