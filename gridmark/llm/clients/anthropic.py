"""Anthropic Messages API vision backend."""

from __future__ import annotations

import base64
import logging
import os
from typing import Any

from gridmark.errors import BackendError, ConfigError
from gridmark.types import LLMResponse, TokenUsage
from gridmark.utils.rate_limiter import AsyncRateLimiter

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-3-7-sonnet-latest"
DEFAULT_API_KEY_ENV_VAR = "ANTHROPIC_API_KEY"

PAIR_NOTE = (
    "The first image is the original scene, and the second image shows the grid overlay."
)


class AnthropicVisionClient:
    """Vision backend using ``anthropic.AsyncAnthropic``.

    Authentication (in order of precedence):
        1. Explicit ``api_key`` parameter
        2. Environment variable named by ``api_key_env_var`` (default ANTHROPIC_API_KEY)

    Satisfies the ``VisionBackend`` protocol.
    """

    provider = "anthropic"
    temperature_range = (0.2, 0.8)

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 4096,
        api_key_env_var: str = DEFAULT_API_KEY_ENV_VAR,
        rate_limiter: AsyncRateLimiter | None = None,
    ) -> None:
        if not model:
            raise ConfigError("Anthropic model name must not be empty")
        self._model = model
        self._max_tokens = max_tokens
        self._rate_limiter = rate_limiter
        self._client: Any = None

        self._api_key = api_key or os.environ.get(api_key_env_var)
        if not self._api_key:
            raise ConfigError(
                f"No Anthropic API key provided. Set the {api_key_env_var} env var "
                f"or pass api_key explicitly."
            )

    @property
    def model(self) -> str:
        return self._model

    # ------------------------------------------------------------------

    async def analyze_single(
        self,
        image: bytes,
        prompt: str,
        *,
        temperature: float,
        system: str | None = None,
    ) -> LLMResponse:
        content = [
            {"type": "text", "text": prompt},
            _image_block(image),
        ]
        return await self._create(content, temperature, system)

    async def analyze_pair(
        self,
        image_a: bytes,
        image_b: bytes,
        prompt: str,
        *,
        temperature: float,
        system: str | None = None,
    ) -> LLMResponse:
        text = (
            f"Analyze these images: {prompt}\n\n{PAIR_NOTE}\n\n"
            "Remember to respond with ONLY valid JSON."
        )
        content = [
            {"type": "text", "text": text},
            _image_block(image_a),
            _image_block(image_b),
        ]
        return await self._create(content, temperature, system)

    # ------------------------------------------------------------------

    async def _create(
        self, content: list[dict[str, Any]], temperature: float, system: str | None
    ) -> LLMResponse:
        client = self._get_client()
        if self._rate_limiter is not None and not await self._rate_limiter.acquire():
            raise BackendError(self.provider, "Rate limiter timeout", retryable=True)

        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": content}],
        }
        if system:
            kwargs["system"] = system

        logger.debug("Anthropic request: model=%s temp=%s", self._model, temperature)
        try:
            response = await client.messages.create(**kwargs)
        except Exception as exc:
            raise BackendError("anthropic", str(exc), retryable=_is_retryable(exc)) from exc

        text = next(
            (block.text for block in response.content if getattr(block, "type", "") == "text"),
            "",
        )
        usage = response.usage
        return LLMResponse(
            text=text,
            usage=TokenUsage(
                input_tokens=getattr(usage, "input_tokens", 0) or 0,
                output_tokens=getattr(usage, "output_tokens", 0) or 0,
            ),
        )

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                import anthropic
            except ImportError as exc:
                raise ImportError(
                    "anthropic is required for the Anthropic backend. "
                    "Install it with: pip install anthropic"
                ) from exc
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _image_block(png: bytes) -> dict[str, Any]:
    return {
        "type": "image",
        "source": {
            "type": "base64",
            "media_type": "image/png",
            "data": base64.b64encode(png).decode("ascii"),
        },
    }


def _is_retryable(exc: Exception) -> bool:
    msg = str(exc).lower()
    return any(kw in msg for kw in ("rate limit", "429", "overloaded", "529", "503", "timeout"))
