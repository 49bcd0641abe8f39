"""Static price table (USD per million tokens)."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelPrice:
    input: float
    output: float


MODEL_PRICING: dict[str, ModelPrice] = {
    "gpt-4o": ModelPrice(input=2.5, output=10.0),
    "gpt-4o-mini": ModelPrice(input=0.15, output=0.6),
    "gpt-4.1": ModelPrice(input=2.0, output=8.0),
    "gpt-4.1-mini": ModelPrice(input=0.4, output=1.6),
    "claude-3-7-sonnet-latest": ModelPrice(input=3.0, output=15.0),
    "claude-3-5-sonnet-latest": ModelPrice(input=3.0, output=15.0),
}


def compute_cost(
    model: str,
    input_tokens: int,
    output_tokens: int,
    pricing: Mapping[str, ModelPrice] = MODEL_PRICING,
) -> float:
    """Cost in USD; 0.0 (with a warning) for models missing from ``pricing``."""
    price = pricing.get(model)
    if price is None:
        logger.warning("No pricing found for model: %s", model)
        return 0.0
    return input_tokens * price.input / 1_000_000 + output_tokens * price.output / 1_000_000
