"""Compose region annotations and titles into a single RGBA overlay."""

from __future__ import annotations

import math
import random
from collections.abc import Sequence

from PIL import Image, ImageColor, ImageDraw, ImageFont

from gridmark.grid.addressing import parse_cell_id
from gridmark.image.annotations import (
    RED,
    AnnotationContext,
    draw_arrow,
    draw_circle,
    draw_highlight,
    region_index,
)
from gridmark.types import AnnotationType, GridDimensions, Region

BASE_COLORS = [
    "#FFB3BA",  # light pink
    "#BAFFC9",  # light green
    "#BAE1FF",  # light blue
    "#FFFFBA",  # light yellow
    "#E8BAFF",  # light purple
    "#FFD9BA",  # light orange
    "#B3FFE5",  # light mint
    "#FFB3E6",  # light magenta
    "#B3ECFF",  # light cyan
    "#DEFFB3",  # light lime
]

TITLE_FONT_SIZE = 24
TITLE_PADDING = 20


class RegionHighlighter:
    """Draw highlight/circle/arrow annotations and region titles."""

    def __init__(self, opacity: float = 0.2, seed: int | None = None) -> None:
        self.opacity = opacity
        self._rng = random.Random(seed)

    def region_color(self, index: int) -> tuple[int, int, int]:
        """Base palette first, then random pastels for extra regions."""
        if index < len(BASE_COLORS):
            return ImageColor.getrgb(BASE_COLORS[index])[:3]
        hue = self._rng.randrange(360)
        saturation = 70 + self._rng.random() * 10
        lightness = 75 + self._rng.random() * 10
        return ImageColor.getrgb(f"hsl({hue}, {saturation:.0f}%, {lightness:.0f}%)")[:3]

    def render(
        self,
        dims: GridDimensions,
        regions: Sequence[Region],
        annotations: Sequence[AnnotationType],
    ) -> Image.Image:
        """Return an RGBA overlay the size of the image."""
        size = (dims.width, dims.height)
        overlay = Image.new("RGBA", size, (0, 0, 0, 0))
        annotation_set = set(annotations)
        arrow_starts: dict[int, tuple[float, float]] = {}

        contexts = [
            self._context(region, index, dims) for index, region in enumerate(regions)
        ]

        # Highlights first so outlines and arrows stay visible on top
        if AnnotationType.highlight in annotation_set:
            for ctx in contexts:
                overlay = self._composite(overlay, lambda d, c=ctx: draw_highlight(d, c))

        for annotation in annotations:
            if annotation == AnnotationType.circle:
                for ctx in contexts:
                    overlay = self._composite(
                        overlay, lambda d, c=ctx: draw_circle(d, c, self._rng)
                    )
            elif annotation == AnnotationType.arrow:
                for i, ctx in enumerate(contexts):
                    layer = Image.new("RGBA", size, (0, 0, 0, 0))
                    start = draw_arrow(ImageDraw.Draw(layer), ctx)
                    if start is not None:
                        arrow_starts[i] = start
                    overlay = Image.alpha_composite(overlay, layer)

        draw = ImageDraw.Draw(overlay)
        for i, ctx in enumerate(contexts):
            if ctx.cells and ctx.region.title:
                self._draw_title(draw, ctx, arrow_starts.get(i))
        return overlay

    # ------------------------------------------------------------------

    def _context(self, region: Region, index: int, dims: GridDimensions) -> AnnotationContext:
        cells = []
        for cell in region.cells:
            row, col = parse_cell_id(cell)
            cells.append(((col - 1) * dims.cell_width, row * dims.cell_height))
        return AnnotationContext(
            region=region,
            cells=cells,
            cell_width=dims.cell_width,
            cell_height=dims.cell_height,
            fill=self.region_color(index),
            opacity=self.opacity,
            image_width=dims.width,
            image_height=dims.height,
        )

    @staticmethod
    def _composite(overlay: Image.Image, draw_fn) -> Image.Image:
        layer = Image.new("RGBA", overlay.size, (0, 0, 0, 0))
        draw_fn(ImageDraw.Draw(layer))
        return Image.alpha_composite(overlay, layer)

    def _draw_title(
        self,
        draw: ImageDraw.ImageDraw,
        ctx: AnnotationContext,
        arrow_start: tuple[float, float] | None,
    ) -> None:
        xs = [x for x, _ in ctx.cells]
        ys = [y for _, y in ctx.cells]
        center_x = sum(xs) / len(xs) + ctx.cell_width / 2
        center_y = sum(ys) / len(ys) + ctx.cell_height / 2
        text_x, text_y = center_x, center_y

        if arrow_start is not None:
            # Just above the arrow start, nudged sideways per region
            text_x, text_y = arrow_start[0], arrow_start[1] - 20
            offset = (region_index(ctx.region) % 3) * 15
            dx = center_x - text_x
            dy = center_y - text_y
            length = math.hypot(dx, dy)
            if length > 0:
                text_x += -dy / length * offset
                text_y += dx / length * offset

        # Keep the title inside the image
        text_width = len(ctx.region.title) * 14
        text_x = max(
            text_width / 2 + TITLE_PADDING,
            min(ctx.image_width - text_width / 2 - TITLE_PADDING, text_x),
        )
        text_y = max(TITLE_PADDING + 10, min(ctx.image_height - TITLE_PADDING, text_y))

        draw.text(
            (text_x, text_y),
            ctx.region.title,
            fill=(*RED, 255),
            font=ImageFont.load_default(size=TITLE_FONT_SIZE),
            anchor="mm",
            stroke_width=2,
            stroke_fill=(255, 255, 255, 255),
        )


