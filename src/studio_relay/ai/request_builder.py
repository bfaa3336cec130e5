"""Build the upstream streaming request for a resolved model."""

from __future__ import annotations

from typing import TYPE_CHECKING

from studio_relay.ai.env_api_keys import credential_env_vars, get_env_api_key
from studio_relay.ai.types import ChatTurn, UpstreamRequest
from studio_relay.errors import MissingCredentialError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from studio_relay.ai.registry import ResolvedModel


def truncate_history(history: Sequence[ChatTurn], limit: int) -> list[ChatTurn]:
    """Keep the *limit* most recent turns, dropping the oldest first."""
    if limit <= 0:
        return []
    return list(history[-limit:])


def build_request(
    resolved: ResolvedModel,
    system_prompt: str | None,
    history: Sequence[ChatTurn],
    new_message: str,
    api_key: str | None = None,
) -> UpstreamRequest:
    """Return the streaming request for *resolved*.

    The new user message is appended after truncation, so it is never
    the turn that gets dropped. Raises :class:`MissingCredentialError`
    without touching the network when no credential is available.
    """
    descriptor = resolved.descriptor
    key = api_key or get_env_api_key(descriptor.provider_id, descriptor.api_key_env)
    if not key:
        raise MissingCredentialError(
            descriptor.provider_id,
            credential_env_vars(descriptor.provider_id, descriptor.api_key_env),
        )

    messages = truncate_history(history, descriptor.max_context_messages)
    messages.append(ChatTurn(role="user", content=new_message))

    return UpstreamRequest(
        method="POST",
        url=descriptor.endpoint_url,
        headers=resolved.adapter.build_headers(descriptor, key),
        body=resolved.adapter.build_body(descriptor, system_prompt, messages),
    )
