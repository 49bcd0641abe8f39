"""OpenAI Chat Completions vision backend."""

from __future__ import annotations

import base64
import logging
import os
from typing import Any

from gridmark.errors import BackendError, ConfigError
from gridmark.types import LLMResponse, TokenUsage
from gridmark.utils.rate_limiter import AsyncRateLimiter

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"
DEFAULT_API_KEY_ENV_VAR = "OPENAI_API_KEY"


class OpenAIVisionClient:
    """Vision backend using ``openai.AsyncOpenAI`` chat completions.

    Responses are requested in JSON mode. Images are sent as base64 PNG
    data URLs.

    Satisfies the ``VisionBackend`` protocol.
    """

    provider = "openai"
    temperature_range = (0.4, 1.0)

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 4096,
        api_key_env_var: str = DEFAULT_API_KEY_ENV_VAR,
        rate_limiter: AsyncRateLimiter | None = None,
    ) -> None:
        if not model:
            raise ConfigError("OpenAI model name must not be empty")
        self._model = model
        self._max_tokens = max_tokens
        self._rate_limiter = rate_limiter
        self._client: Any = None

        self._api_key = api_key or os.environ.get(api_key_env_var)
        if not self._api_key:
            raise ConfigError(
                f"No OpenAI API key provided. Set the {api_key_env_var} env var "
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
        return await self._create([image], prompt, temperature, system)

    async def analyze_pair(
        self,
        image_a: bytes,
        image_b: bytes,
        prompt: str,
        *,
        temperature: float,
        system: str | None = None,
    ) -> LLMResponse:
        return await self._create([image_a, image_b], prompt, temperature, system)

    # ------------------------------------------------------------------

    async def _create(
        self,
        images: list[bytes],
        prompt: str,
        temperature: float,
        system: str | None,
    ) -> LLMResponse:
        client = self._get_client()
        if self._rate_limiter is not None and not await self._rate_limiter.acquire():
            raise BackendError(self.provider, "Rate limiter timeout", retryable=True)

        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({
            "role": "user",
            "content": [{"type": "text", "text": prompt}]
            + [
                {"type": "image_url", "image_url": {"url": _data_url(png)}}
                for png in images
            ],
        })

        logger.debug("OpenAI request: model=%s temp=%s", self._model, temperature)
        try:
            response = await client.chat.completions.create(
                model=self._model,
                messages=messages,
                response_format={"type": "json_object"},
                temperature=temperature,
                max_tokens=self._max_tokens,
            )
        except Exception as exc:
            raise BackendError("openai", str(exc), retryable=_is_retryable(exc)) from exc

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""
        usage = response.usage
        return LLMResponse(
            text=text,
            usage=TokenUsage(
                input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            ),
        )

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                import openai
            except ImportError as exc:
                raise ImportError(
                    "openai is required for the OpenAI backend. "
                    "Install it with: pip install 'openai>=1.0'"
                ) from exc
            self._client = openai.AsyncOpenAI(api_key=self._api_key)
        return self._client


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _data_url(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


def _is_retryable(exc: Exception) -> bool:
    msg = str(exc).lower()
    return any(kw in msg for kw in ("rate limit", "429", "500", "503", "timeout"))
