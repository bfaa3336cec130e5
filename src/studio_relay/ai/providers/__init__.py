from __future__ import annotations

from studio_relay.ai.api_registry import get_api_provider, register_api_provider
from studio_relay.ai.providers.anthropic_messages import AnthropicMessagesProvider
from studio_relay.ai.providers.openai_chat import OpenAIChatProvider

BUILTIN_PROVIDERS = [
    OpenAIChatProvider,
    AnthropicMessagesProvider,
]


def register_builtin_providers() -> None:
    """Register the built-in adapters whose grammar is not taken yet."""
    for factory in BUILTIN_PROVIDERS:
        adapter = factory()
        if get_api_provider(adapter.api) is None:
            register_api_provider(adapter)
