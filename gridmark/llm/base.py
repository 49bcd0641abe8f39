"""Protocol for LLM vision backends."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from gridmark.types import LLMResponse


@runtime_checkable
class VisionBackend(Protocol):
    """Protocol for vision-capable chat models.

    Implementations: OpenAIVisionClient, AnthropicVisionClient.

    Backends take PNG bytes and return the raw response text plus token
    usage. They do not validate the response content.
    """

    @property
    def model(self) -> str:
        """Model identifier, used for pricing lookups."""
        ...

    @property
    def provider(self) -> str:
        ...

    @property
    def temperature_range(self) -> tuple[float, float]:
        """(low, high) temperatures spread across consensus passes."""
        ...

    async def analyze_single(
        self,
        image: bytes,
        prompt: str,
        *,
        temperature: float,
        system: str | None = None,
    ) -> LLMResponse:
        """Send one image and a prompt.

        Raises:
            BackendError: On any transport/API failure.
        """
        ...

    async def analyze_pair(
        self,
        image_a: bytes,
        image_b: bytes,
        prompt: str,
        *,
        temperature: float,
        system: str | None = None,
    ) -> LLMResponse:
        """Send two images (original, grid overlay) and a prompt.

        Raises:
            BackendError: On any transport/API failure.
        """
        ...
