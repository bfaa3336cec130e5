"""Settings Pydantic models for studio-relay configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from studio_relay.ai.types import ProviderDescriptor

DEFAULT_SYSTEM_PROMPT = "You are Betsy, a helpful AI assistant for Master Studio."


class ServerConfig(BaseModel):
    """REST server configuration."""

    host: str = "127.0.0.1"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    model_config = {"extra": "ignore"}


class CustomModelConfig(BaseModel):
    """User-defined model entry; becomes a provider descriptor."""

    name: str
    provider: str
    model: str
    base_url: str
    path: str = "/chat/completions"
    api: str = "openai-chat"
    auth: Literal["bearer", "x-api-key", "api-key"] = "bearer"
    api_key_env: str | None = None
    max_context_messages: int = Field(default=10, ge=0)
    max_tokens: int | None = None

    model_config = {"extra": "ignore"}

    def to_descriptor(self) -> ProviderDescriptor:
        return ProviderDescriptor(
            provider_id=self.provider,
            model=self.model,
            base_url=self.base_url,
            path=self.path,
            auth_scheme=self.auth,
            chunk_grammar=self.api,
            max_context_messages=self.max_context_messages,
            max_tokens=self.max_tokens,
            api_key_env=self.api_key_env,
        )


class RelayConfig(BaseModel):
    """Chat relay behaviour and model catalog additions."""

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    connect_timeout: float = 10.0
    aliases: dict[str, str] = Field(default_factory=dict)
    models: list[CustomModelConfig] = Field(default_factory=list)

    model_config = {"extra": "ignore"}


class StorageConfig(BaseModel):
    """Message store location."""

    messages_file: str = ".data/messages.json"

    model_config = {"extra": "ignore"}


class Settings(BaseModel):
    """Top-level settings model — the single source of truth for configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    relay: RelayConfig = Field(default_factory=RelayConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    verbose: bool = False

    model_config = {"extra": "ignore"}
