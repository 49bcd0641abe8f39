"""Core data types for gridmark.

Every stage of the pipeline produces/consumes these types:
- Grid geometry (GridSpec, GridDimensions)
- Backend responses and token accounting (TokenUsage, LLMResponse, TokenLedger)
- Analysis output (Region, TokenSummary, AnalysisResult)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from gridmark.errors import AddressError, ConfigError

# Spreadsheet-style label such as "A1" (row letter, 1-based column number).
CellId = str

# Cell -> number of distinct passes that reported it.
VoteTally = dict[CellId, int]

# Single-letter row labels cap the grid at 26x26.
MAX_GRID_SIZE = 26


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AnnotationType(str, enum.Enum):
    """Annotation styles the renderer can draw for a region."""

    highlight = "highlight"
    circle = "circle"
    arrow = "arrow"


class Provider(str, enum.Enum):
    """Supported vision backend families."""

    anthropic = "anthropic"
    openai = "openai"


# ---------------------------------------------------------------------------
# Grid geometry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GridSpec:
    """Number of grid rows and columns used for one analysis."""

    rows: int
    cols: int

    def __post_init__(self) -> None:
        if not (0 < self.rows <= MAX_GRID_SIZE and 0 < self.cols <= MAX_GRID_SIZE):
            raise ConfigError(
                f"Grid must be between 1x1 and {MAX_GRID_SIZE}x{MAX_GRID_SIZE}, "
                f"got {self.rows}x{self.cols}"
            )

    def contains(self, cell: CellId) -> bool:
        """True if ``cell`` is a well-formed label inside this grid."""
        from gridmark.grid.addressing import parse_cell_id

        try:
            row, col = parse_cell_id(cell)
        except AddressError:
            return False
        return row < self.rows and col <= self.cols

    @property
    def num_cells(self) -> int:
        return self.rows * self.cols


@dataclass(frozen=True)
class GridDimensions:
    """Pixel geometry of a grid laid over an image."""

    width: int
    height: int
    cell_width: float
    cell_height: float


# ---------------------------------------------------------------------------
# Backend responses and token accounting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported by one backend call."""

    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class LLMResponse:
    """Raw text returned by a vision backend plus its token usage."""

    text: str
    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass
class TokenLedger:
    """Running token totals for a single analysis invocation."""

    input: int = 0
    output: int = 0

    def add(self, usage: TokenUsage | None) -> None:
        if usage is None:
            return
        self.input += usage.input_tokens
        self.output += usage.output_tokens

    @property
    def total(self) -> int:
        return self.input + self.output


# ---------------------------------------------------------------------------
# Analysis output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Region:
    """A titled group of cells. Repeated cells encode retained votes."""

    title: str
    description: str = ""
    details: str = ""
    cells: tuple[CellId, ...] = ()

    @property
    def unique_cells(self) -> list[CellId]:
        """Cells with repetitions removed, first-seen order."""
        return list(dict.fromkeys(self.cells))

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "details": self.details,
            "cells": list(self.cells),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Region:
        return cls(
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            details=str(data.get("details") or ""),
            cells=tuple(data.get("cells") or ()),
        )


@dataclass(frozen=True)
class TokenSummary:
    """Token totals and cost attached to a finished analysis."""

    input: int
    output: int
    total: int
    cost: float
    model_name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "input": self.input,
            "output": self.output,
            "total": self.total,
            "cost": self.cost,
            "model_name": self.model_name,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Terminal artifact of one analysis invocation."""

    regions: tuple[Region, ...]
    summary: str
    tokens: TokenSummary

    @property
    def cells(self) -> list[CellId]:
        """All region cells, flattened (repetitions kept)."""
        return [cell for region in self.regions for cell in region.cells]

    def to_dict(self) -> dict[str, Any]:
        return {
            "regions": [r.to_dict() for r in self.regions],
            "summary": self.summary,
            "tokens": self.tokens.to_dict(),
        }
