"""Pillow renderer: grid overlay plus region annotations, encoded as PNG."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from PIL import Image, ImageDraw, ImageFont

from gridmark.config import GridConfig
from gridmark.grid.addressing import cell_id
from gridmark.grid.svg import label_font_size
from gridmark.image.highlighter import RegionHighlighter
from gridmark.types import AnnotationType, GridDimensions, GridSpec, Region
from gridmark.utils.image import (
    ImageInput,
    get_image_dimensions,
    pil_to_png_bytes,
    to_pil,
)

logger = logging.getLogger(__name__)

GRID_LINE_COLOR = (0, 0, 0, 77)  # black at 0.3 opacity
GRID_LINE_WIDTH = 2
LABEL_FILL = (0, 0, 0, 230)
LABEL_STROKE = (255, 215, 0, 230)  # gold


class ImageProcessor:
    """Draw grids and region annotations onto images.

    Satisfies the ``Renderer`` protocol from ``gridmark.image.base``.
    """

    def __init__(
        self,
        grid_config: GridConfig | None = None,
        highlight_opacity: float = 0.2,
        seed: int | None = None,
    ) -> None:
        self.grid_config = grid_config or GridConfig()
        self.highlighter = RegionHighlighter(opacity=highlight_opacity, seed=seed)

    def get_dimensions(self, image: ImageInput) -> tuple[int, int]:
        return get_image_dimensions(image)

    def transform_image(
        self,
        image: ImageInput,
        grid: GridSpec,
        *,
        add_grid: bool = True,
        regions: Sequence[Region] | None = None,
        annotations: Sequence[AnnotationType] | None = None,
    ) -> bytes:
        """Render the image with an optional grid and region annotations.

        Args:
            image: Any supported image input.
            grid: Grid rows/columns.
            add_grid: Draw grid lines and cell labels.
            regions: Regions to annotate; nothing is drawn for None or [].
            annotations: Annotation styles (default: highlight only).

        Returns:
            PNG-encoded bytes.
        """
        base = to_pil(image)
        width, height = base.size
        dims = GridDimensions(
            width=width,
            height=height,
            cell_width=width / grid.cols,
            cell_height=height / grid.rows,
        )

        if add_grid:
            base = Image.alpha_composite(base, self._grid_layer(grid, dims))

        if regions:
            if annotations is None:
                annotations = [AnnotationType.highlight]
            overlay = self.highlighter.render(dims, regions, annotations)
            base = Image.alpha_composite(base, overlay)

        return pil_to_png_bytes(base.convert("RGB"))

    async def render_overlay(
        self,
        image: ImageInput,
        grid: GridSpec,
        regions: Sequence[Region] | None = None,
        annotations: Sequence[AnnotationType] | None = None,
    ) -> bytes:
        """Grid overlay (plus optional annotations), rendered off the event loop."""
        return await asyncio.to_thread(
            self.transform_image,
            image,
            grid,
            add_grid=True,
            regions=regions,
            annotations=annotations,
        )

    # ------------------------------------------------------------------

    def _grid_layer(self, grid: GridSpec, dims: GridDimensions) -> Image.Image:
        layer = Image.new("RGBA", (dims.width, dims.height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)

        if self.grid_config.visible:
            for i in range(grid.cols + 1):
                x = i * dims.cell_width
                draw.line([(x, 0), (x, dims.height)], fill=GRID_LINE_COLOR, width=GRID_LINE_WIDTH)
            for i in range(grid.rows + 1):
                y = i * dims.cell_height
                draw.line([(0, y), (dims.width, y)], fill=GRID_LINE_COLOR, width=GRID_LINE_WIDTH)

        if self.grid_config.cell_labels:
            font_size = label_font_size(dims.cell_width, dims.cell_height)
            font = ImageFont.load_default(size=font_size)
            stroke_width = max(1, round(font_size / 6))
            for row in range(grid.rows):
                for col in range(grid.cols):
                    draw.text(
                        (
                            col * dims.cell_width + dims.cell_width / 2,
                            row * dims.cell_height + dims.cell_height / 2,
                        ),
                        cell_id(row, col + 1),
                        fill=LABEL_FILL,
                        font=font,
                        anchor="mm",
                        stroke_width=stroke_width,
                        stroke_fill=LABEL_STROKE,
                    )

        logger.debug("Drew %dx%d grid on %dx%d image", grid.rows, grid.cols, dims.width, dims.height)
        return layer
