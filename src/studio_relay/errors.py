"""Error hierarchy for the chat relay.

Every error knows the HTTP status the relay endpoint answers with when
it is raised before streaming starts. Errors raised after the first
outbound frame never reach the HTTP layer; they become in-stream
``error`` events instead.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base for all relay errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(RelayError):
    """Missing or malformed client input. Nothing has been written."""

    status_code = 400


class ConfigurationError(RelayError):
    """The relay cannot build an upstream call. No network call was attempted."""

    status_code = 500


class UnknownModelError(ConfigurationError):
    """A model name that resolves to no provider descriptor."""

    status_code = 400

    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(f"Unknown model: {model!r}")


class MissingCredentialError(ConfigurationError):
    """The selected provider has no credential in the environment."""

    def __init__(self, provider_id: str, env_vars: list[str]) -> None:
        self.provider_id = provider_id
        self.env_vars = env_vars
        hint = " or ".join(env_vars) if env_vars else "an API key"
        super().__init__(f"No credential for provider {provider_id!r}: set {hint}")


class StreamNotFoundError(RelayError):
    """No running stream is registered under the given message id."""

    status_code = 404

    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        super().__init__(f"Stream not found: {message_id}")


class PersistenceError(RelayError):
    """A message-store read or write failed."""

    status_code = 500


class UpstreamRequestError(RelayError):
    """The provider call failed before any byte was streamed."""

    status_code = 502

    def __init__(self, provider_id: str, message: str, status: int | None = None) -> None:
        self.provider_id = provider_id
        self.status = status
        super().__init__(message)


class UpstreamStreamError(RelayError):
    """The provider connection broke after streaming had started."""

    status_code = 502
