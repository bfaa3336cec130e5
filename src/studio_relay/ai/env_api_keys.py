from __future__ import annotations

import os

# Provider id -> ordered list of environment variable names to probe.
# The first non-empty value wins.
_ENV_KEY_MAP: dict[str, list[str]] = {
    "moonshot": ["MOONSHOT_API_KEY", "KIMI_API_KEY"],
    "minimax": ["MINIMAX_API_KEY"],
    "zai": ["ZAI_API_KEY", "GLM_API_KEY"],
    "anthropic": ["ANTHROPIC_API_KEY"],
    "openai": ["OPENAI_API_KEY"],
    "gateway": ["OPENCLAW_TOKEN", "GATEWAY_TOKEN"],
}

# Provider id -> environment variables that override the catalog base URL.
_ENV_BASE_URL_MAP: dict[str, list[str]] = {
    "moonshot": ["MOONSHOT_BASE_URL", "KIMI_BASE_URL"],
    "minimax": ["MINIMAX_BASE_URL"],
    "zai": ["ZAI_BASE_URL"],
    "anthropic": ["ANTHROPIC_BASE_URL"],
    "openai": ["OPENAI_BASE_URL"],
    "gateway": ["OPENCLAW_URL", "GATEWAY_URL"],
}


def _first_set(names: list[str]) -> str | None:
    for var in names:
        val = os.environ.get(var)
        if val:
            return val
    return None


def credential_env_vars(provider: str, explicit: str | None = None) -> list[str]:
    """Return the variables probed for *provider*'s credential, in order."""
    names = list(_ENV_KEY_MAP.get(provider, []))
    if explicit:
        names.insert(0, explicit)
    return names


def get_env_api_key(provider: str, explicit: str | None = None) -> str | None:
    """Return the first non-empty API key found in the environment for *provider*.

    *explicit* names a variable that is probed before the built-in ones.
    Returns ``None`` when the provider is unknown or no matching variable
    is set.
    """
    return _first_set(credential_env_vars(provider, explicit))


def get_env_base_url(provider: str) -> str | None:
    """Return a base-URL override for *provider* from the environment, if any."""
    return _first_set(_ENV_BASE_URL_MAP.get(provider, []))
