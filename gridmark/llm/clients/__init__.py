"""Vision backend implementations and factory."""

from __future__ import annotations

from gridmark.config import LLMConfig
from gridmark.errors import ConfigError
from gridmark.llm.base import VisionBackend
from gridmark.llm.clients.anthropic import AnthropicVisionClient
from gridmark.llm.clients.openai import OpenAIVisionClient
from gridmark.types import Provider
from gridmark.utils.rate_limiter import AsyncRateLimiter

__all__ = ["AnthropicVisionClient", "OpenAIVisionClient", "create_backend"]


def create_backend(config: LLMConfig | None = None, api_key: str | None = None) -> VisionBackend:
    """Build the backend named by ``config.provider``.

    Raises:
        ConfigError: Unknown provider, empty model name, or missing API key.
    """
    config = config or LLMConfig()
    try:
        provider = Provider(config.provider)
    except ValueError:
        raise ConfigError(f"Unsupported LLM provider: {config.provider!r}") from None

    if config.model is not None and not config.model.strip():
        raise ConfigError("Model name must not be empty")

    kwargs = {
        "api_key": api_key,
        "max_tokens": config.max_tokens,
        "rate_limiter": AsyncRateLimiter(config.requests_per_minute),
    }
    if config.model:
        kwargs["model"] = config.model
    if config.api_key_env_var:
        kwargs["api_key_env_var"] = config.api_key_env_var

    if provider is Provider.openai:
        return OpenAIVisionClient(**kwargs)
    return AnthropicVisionClient(**kwargs)
