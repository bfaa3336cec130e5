"""Provider registry -- logical model names to bound provider descriptors.

Merges the built-in catalog, user-configured models and aliases. Every
name resolves to exactly one descriptor or raises
:class:`~studio_relay.errors.UnknownModelError`; there is no default
provider to fall back to.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from studio_relay.ai.api_registry import require_api_provider
from studio_relay.ai.env_api_keys import get_env_base_url
from studio_relay.ai.providers import register_builtin_providers
from studio_relay.ai.types import ProviderDescriptor
from studio_relay.errors import ConfigurationError, UnknownModelError

if TYPE_CHECKING:
    from studio_relay.ai.providers.base import ProviderAdapter
    from studio_relay.config.settings import RelayConfig

logger = logging.getLogger(__name__)

_OPENAI_PATH = "/chat/completions"

BUILTIN_MODELS: dict[str, ProviderDescriptor] = {
    "kimi-k2.5": ProviderDescriptor(
        provider_id="moonshot",
        model="kimi-k2.5",
        base_url="https://api.moonshot.ai/v1",
        path=_OPENAI_PATH,
        auth_scheme="bearer",
        chunk_grammar="openai-chat",
    ),
    "MiniMax-M2.5-Lightning": ProviderDescriptor(
        provider_id="minimax",
        model="MiniMax-M2.5-Lightning",
        base_url="https://api.minimax.io/v1",
        path=_OPENAI_PATH,
        auth_scheme="bearer",
        chunk_grammar="openai-chat",
    ),
    "glm-5": ProviderDescriptor(
        provider_id="zai",
        model="glm-5",
        base_url="https://api.z.ai/api/paas/v4",
        path=_OPENAI_PATH,
        auth_scheme="bearer",
        chunk_grammar="openai-chat",
    ),
    "claude-sonnet-4-5": ProviderDescriptor(
        provider_id="anthropic",
        model="claude-sonnet-4-5-20250929",
        base_url="https://api.anthropic.com",
        path="/v1/messages",
        auth_scheme="x-api-key",
        chunk_grammar="anthropic-messages",
        max_tokens=4096,
    ),
    "claude-opus-4-6": ProviderDescriptor(
        provider_id="anthropic",
        model="claude-opus-4-6",
        base_url="https://api.anthropic.com",
        path="/v1/messages",
        auth_scheme="x-api-key",
        chunk_grammar="anthropic-messages",
        max_tokens=4096,
    ),
    "gpt-4o": ProviderDescriptor(
        provider_id="openai",
        model="gpt-4o",
        base_url="https://api.openai.com/v1",
        path=_OPENAI_PATH,
        auth_scheme="bearer",
        chunk_grammar="openai-chat",
    ),
}

BUILTIN_ALIASES: dict[str, str] = {
    "kimi": "kimi-k2.5",
    "m25": "MiniMax-M2.5-Lightning",
    "glm5": "glm-5",
    "sonnet": "claude-sonnet-4-5",
    "opus": "claude-opus-4-6",
}


@dataclass(frozen=True)
class ResolvedModel:
    """A descriptor together with the adapter that speaks its grammar."""

    name: str
    descriptor: ProviderDescriptor
    adapter: ProviderAdapter


class ProviderRegistry:
    """Immutable name -> descriptor mapping, bound to adapters at construction."""

    def __init__(
        self,
        models: dict[str, ProviderDescriptor],
        aliases: dict[str, str] | None = None,
    ) -> None:
        register_builtin_providers()
        self._models: dict[str, ResolvedModel] = {
            name: ResolvedModel(
                name=name,
                descriptor=descriptor,
                adapter=require_api_provider(descriptor.chunk_grammar),
            )
            for name, descriptor in models.items()
        }
        self._aliases: dict[str, str] = {}
        for alias, target in (aliases or {}).items():
            if target not in self._models:
                raise ConfigurationError(f"Alias {alias!r} points at unknown model {target!r}")
            if alias in self._models:
                raise ConfigurationError(f"Alias {alias!r} shadows a model of the same name")
            self._aliases[alias] = target

    @classmethod
    def from_settings(cls, relay: RelayConfig | None = None) -> ProviderRegistry:
        """Build the registry from the built-in catalog plus user configuration.

        Environment base-URL overrides apply to built-in entries only;
        user-configured models carry their own ``base_url``.
        """
        models: dict[str, ProviderDescriptor] = {}
        for name, descriptor in BUILTIN_MODELS.items():
            base_url = get_env_base_url(descriptor.provider_id)
            if base_url:
                descriptor = dataclasses.replace(descriptor, base_url=base_url)
            models[name] = descriptor

        aliases = dict(BUILTIN_ALIASES)
        if relay is not None:
            for custom in relay.models:
                if custom.name in models:
                    logger.info("Configured model %r overrides the built-in entry", custom.name)
                models[custom.name] = custom.to_descriptor()
            aliases.update(relay.aliases)
        return cls(models, aliases)

    def resolve(self, name: str) -> ResolvedModel:
        """Return the bound descriptor for *name* or raise :class:`UnknownModelError`."""
        canonical = self._aliases.get(name, name)
        resolved = self._models.get(canonical)
        if resolved is None:
            raise UnknownModelError(name)
        return resolved

    def names(self) -> list[str]:
        """Return canonical model names (insertion order)."""
        return list(self._models)

    def aliases_for(self, name: str) -> list[str]:
        return [alias for alias, target in self._aliases.items() if target == name]

    def list_models(self) -> list[ResolvedModel]:
        return list(self._models.values())
