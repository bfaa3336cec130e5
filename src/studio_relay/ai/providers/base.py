"""Provider adapter protocol definition.

An adapter is the per-grammar half of a provider: it knows the header
shape, the request-body envelope and how to pull incremental text out
of one decoded stream payload. Adapters are bound to descriptors once,
when the provider registry is built, so callers never branch on a
provider name.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from studio_relay.ai.types import AuthScheme, ChatTurn, DeltaEvent, ProviderDescriptor


@runtime_checkable
class ProviderAdapter(Protocol):
    """Protocol that every provider adapter must satisfy.

    An adapter is keyed by its :pyattr:`api` identifier, which is the
    ``chunk_grammar`` of the descriptors it serves (e.g.
    ``"openai-chat"``).
    """

    @property
    def api(self) -> str:
        """Return the grammar identifier this adapter handles."""
        ...

    def build_headers(self, descriptor: ProviderDescriptor, api_key: str) -> dict[str, str]:
        """Return the HTTP headers for a call to *descriptor*."""
        ...

    def build_body(
        self,
        descriptor: ProviderDescriptor,
        system_prompt: str | None,
        messages: list[ChatTurn],
    ) -> dict[str, Any]:
        """Return the JSON body of a streaming completion request.

        Parameters
        ----------
        descriptor:
            The resolved provider descriptor (upstream model id, token budget).
        system_prompt:
            Optional system instruction; placement is provider specific.
        messages:
            Already truncated history followed by the new user message.
        """
        ...

    def extract_events(self, payload: Any) -> list[DeltaEvent]:
        """Translate one decoded ``data:`` payload into delta events.

        May raise ``KeyError``/``TypeError``/``IndexError`` on payloads of
        an unexpected shape; the chunk parser treats those as noise.
        """
        ...


def auth_headers(scheme: AuthScheme, api_key: str) -> dict[str, str]:
    """Return the credential header for *scheme*."""
    if scheme == "bearer":
        return {"Authorization": f"Bearer {api_key}"}
    if scheme == "x-api-key":
        return {"x-api-key": api_key}
    if scheme == "api-key":
        return {"api-key": api_key}
    raise ValueError(f"Unsupported auth scheme: {scheme!r}")
