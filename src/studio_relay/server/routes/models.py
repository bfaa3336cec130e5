"""Model listing route."""

from __future__ import annotations

from fastapi import APIRouter

from studio_relay.ai.registry import ProviderRegistry
from studio_relay.server.schemas import ModelInfo

router = APIRouter(prefix="/api/models", tags=["models"])


def _get_provider_registry() -> ProviderRegistry:
    from studio_relay.server.app import get_provider_registry
    return get_provider_registry()


@router.get("", response_model=list[ModelInfo])
async def list_models() -> list[ModelInfo]:
    registry = _get_provider_registry()
    return [
        ModelInfo(
            name=m.name,
            provider=m.descriptor.provider_id,
            model=m.descriptor.model,
            grammar=m.descriptor.chunk_grammar,
            aliases=registry.aliases_for(m.name),
        )
        for m in registry.list_models()
    ]
