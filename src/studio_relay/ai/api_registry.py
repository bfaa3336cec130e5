"""Adapter registry keyed by chunk grammar.

Descriptors name a grammar; the provider registry looks the adapter up
here exactly once, when it binds descriptors at startup.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from studio_relay.errors import ConfigurationError

if TYPE_CHECKING:
    from studio_relay.ai.providers.base import ProviderAdapter

_adapters: dict[str, ProviderAdapter] = {}


def register_api_provider(provider: ProviderAdapter) -> None:
    """Register an adapter under its ``api`` grammar, replacing any previous one."""
    _adapters[provider.api] = provider


def get_api_provider(api: str) -> ProviderAdapter | None:
    """Return the adapter registered under *api*, or ``None``."""
    return _adapters.get(api)


def require_api_provider(api: str) -> ProviderAdapter:
    """Return the adapter for *api* or raise :class:`ConfigurationError`."""
    adapter = _adapters.get(api)
    if adapter is None:
        known = ", ".join(sorted(_adapters)) or "none"
        raise ConfigurationError(f"No adapter for chunk grammar {api!r} (registered: {known})")
    return adapter


def get_api_providers() -> list[ProviderAdapter]:
    """Return every registered adapter (insertion order)."""
    return list(_adapters.values())


def clear_api_providers() -> None:
    """Remove every registered adapter."""
    _adapters.clear()
