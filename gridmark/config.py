"""Configuration models for gridmark.

Pydantic v2 models with sensible defaults; works without a config file.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from gridmark.types import MAX_GRID_SIZE, AnnotationType


class GridConfig(BaseModel):
    """Configuration for grid sizing and grid overlay appearance."""

    rows: int | None = Field(None, ge=1, le=MAX_GRID_SIZE, description="Fixed row count (auto when None)")
    cols: int | None = Field(None, ge=1, le=MAX_GRID_SIZE, description="Fixed column count (auto when None)")
    min_cell_size: int = Field(150, ge=1, description="Target cell size in px on a 1000px reference image")
    max_cells: int = Field(MAX_GRID_SIZE, ge=1, le=MAX_GRID_SIZE, description="Max cells per axis")
    visible: bool = Field(True, description="Draw grid lines")
    cell_labels: bool = Field(True, description="Draw A1-style labels in every cell")


class LLMConfig(BaseModel):
    """Configuration for the vision backend."""

    provider: str = Field("anthropic", description="Backend: 'anthropic' or 'openai'")
    model: str | None = Field(None, description="Model identifier (provider default when None)")
    api_key_env_var: str | None = Field(
        None, description="Env var holding the API key (ANTHROPIC_API_KEY / OPENAI_API_KEY when None)"
    )
    max_tokens: int = Field(4096, ge=1, description="Max output tokens per call")
    requests_per_minute: float = Field(0.0, ge=0, description="API rate limit (0=unlimited)")


class AnalysisConfig(BaseModel):
    """Configuration for the consensus and verification passes."""

    num_passes: int = Field(4, ge=1, description="Independent initial passes (2+ is meaningful)")
    contiguous_regions: bool = Field(
        False, description="Require touching cells to share a region during verification"
    )
    verification_temperature: float = Field(0.7, ge=0, le=2, description="Temperature for the verification pass")
    tolerate_pass_errors: bool = Field(
        False,
        description=(
            "Treat a backend failure in a single consensus pass as an empty "
            "contribution instead of failing the analysis."
        ),
    )


class RenderConfig(BaseModel):
    """Configuration for rendering annotated output images."""

    annotations: list[AnnotationType] = Field(
        default_factory=lambda: [AnnotationType.highlight, AnnotationType.circle],
        description="Annotations drawn on the final image",
    )
    highlight_opacity: float = Field(0.2, gt=0, le=1, description="Opacity added per cell occurrence")
    save_verification: bool = Field(False, description="Write the vote-weighted verification image")


class GridmarkConfig(BaseModel):
    """Top-level configuration for gridmark."""

    grid: GridConfig = Field(default_factory=GridConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> GridmarkConfig:
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.model_validate(data)

    @classmethod
    def default(cls) -> GridmarkConfig:
        """Return configuration with all defaults."""
        return cls()
