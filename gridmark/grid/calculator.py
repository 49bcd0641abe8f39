"""Derive grid rows/columns from image dimensions."""

from __future__ import annotations

import math

from gridmark.config import GridConfig
from gridmark.errors import ConfigError
from gridmark.types import GridDimensions, GridSpec

# Cell sizes are expressed relative to a 1000px reference image
REFERENCE_SIZE = 1000


class GridCalculator:
    """Compute a ``GridSpec`` for an image.

    Fixed ``rows``/``cols`` from the config are used as-is. Otherwise the
    grid is sized so that cells are about ``min_cell_size`` pixels on a
    1000px image, scaled down for smaller images (which therefore get
    relatively more cells), and capped at ``max_cells`` per axis.
    """

    def __init__(self, config: GridConfig | None = None) -> None:
        self.config = config or GridConfig()

    def calculate(self, width: int, height: int) -> tuple[GridSpec, GridDimensions]:
        if width <= 0 or height <= 0:
            raise ConfigError(f"Invalid image dimensions: {width}x{height}")

        if self.config.rows and self.config.cols:
            spec = GridSpec(rows=self.config.rows, cols=self.config.cols)
        else:
            scale = min(width, height) / REFERENCE_SIZE
            cell_size = self.config.min_cell_size * min(scale, 1.0)
            cols = min(math.floor(width / cell_size), self.config.max_cells)
            rows = min(math.floor(height / cell_size), self.config.max_cells)
            spec = GridSpec(
                rows=self.config.rows or max(rows, 1),
                cols=self.config.cols or max(cols, 1),
            )

        dims = GridDimensions(
            width=width,
            height=height,
            cell_width=width / spec.cols,
            cell_height=height / spec.rows,
        )
        return spec, dims
