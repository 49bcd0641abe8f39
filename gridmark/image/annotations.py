"""Annotation primitives drawn onto transparent RGBA layers.

Each renderer receives an ``AnnotationContext`` with the pixel position of
every cell occurrence in a region and draws into a layer the size of the
image. Layers are alpha-composited by ``RegionHighlighter``.
"""

from __future__ import annotations

import math
import random
import re
from collections import Counter
from dataclasses import dataclass

from PIL import ImageDraw

from gridmark.types import Region

RED = (255, 0, 0)


@dataclass
class AnnotationContext:
    """Everything a renderer needs to draw one region."""

    region: Region
    cells: list[tuple[float, float]]  # top-left corner of each cell occurrence
    cell_width: float
    cell_height: float
    fill: tuple[int, int, int]
    opacity: float
    image_width: int
    image_height: int

    def bounds(self) -> tuple[float, float, float, float]:
        """(min_x, min_y, max_x, max_y) of the region's cells."""
        xs = [x for x, _ in self.cells]
        ys = [y for _, y in self.cells]
        return (
            min(xs),
            min(ys),
            max(xs) + self.cell_width,
            max(ys) + self.cell_height,
        )


def region_index(region: Region) -> int:
    """Stable per-region integer used to spread arrows and titles apart.

    Uses the first number in the title, else the sum of its character codes.
    """
    if not region.title:
        return 0
    match = re.search(r"\d+", region.title)
    if match:
        return int(match.group(0))
    return sum(ord(ch) for ch in region.title)


# ---------------------------------------------------------------------------
# Highlight
# ---------------------------------------------------------------------------


def draw_highlight(draw: ImageDraw.ImageDraw, ctx: AnnotationContext) -> None:
    """Fill each cell; every repetition adds another ``opacity`` layer.

    Stacking n layers of opacity p gives alpha 1 - (1 - p)^n, so cells with
    more votes come out darker.
    """
    counts = Counter(ctx.cells)
    for (x, y), n in counts.items():
        alpha = 1.0 - (1.0 - ctx.opacity) ** n
        draw.rectangle(
            [x, y, x + ctx.cell_width, y + ctx.cell_height],
            fill=(*ctx.fill, round(255 * alpha)),
        )


# ---------------------------------------------------------------------------
# Circle
# ---------------------------------------------------------------------------


def draw_circle(
    draw: ImageDraw.ImageDraw,
    ctx: AnnotationContext,
    rng: random.Random | None = None,
) -> None:
    """Hand-drawn looking ellipse around the region's bounding box."""
    if not ctx.cells:
        return
    rng = rng or random.Random()

    min_x, min_y, max_x, max_y = ctx.bounds()
    center_x = (min_x + max_x) / 2
    center_y = (min_y + max_y) / 2
    radius_x = (max_x - min_x) / 2 * 1.1
    radius_y = (max_y - min_y) / 2 * 1.15  # slightly taller

    steps = 36
    num_strokes = 2 + rng.randrange(3)
    for _ in range(num_strokes):
        offset_x = (rng.random() - 0.5) * 5
        offset_y = (rng.random() - 0.5) * 5
        scale_x = 1 + (rng.random() - 0.5) * 0.1
        scale_y = 1 + (rng.random() - 0.5) * 0.1

        points = []
        for i in range(steps + 1):
            angle = i / steps * 2 * math.pi
            # More wobble at the sides than top/bottom
            wobble_x = rng.random() * 6 - 3
            wobble_y = rng.random() * 4 - 2
            points.append((
                center_x + offset_x + (radius_x * scale_x + wobble_x) * math.cos(angle),
                center_y + offset_y + (radius_y * scale_y + wobble_y) * math.sin(angle),
            ))
        draw.line(points, fill=(*RED, 128), width=3, joint="curve")


# ---------------------------------------------------------------------------
# Arrow
# ---------------------------------------------------------------------------


def draw_arrow(
    draw: ImageDraw.ImageDraw, ctx: AnnotationContext
) -> tuple[float, float] | None:
    """Arrow pointing at the region centre.

    Returns:
        The arrow's start point (used to place the region title), or None
        for an empty region.
    """
    if not ctx.cells:
        return None

    min_x, min_y, max_x, max_y = ctx.bounds()
    center_x = (min_x + max_x) / 2
    center_y = (min_y + max_y) / 2

    # Length scales with region size, between one base length and 2x the region
    region_size = math.sqrt((max_x - min_x) * (max_y - min_y))
    base_length = max(ctx.cell_width, ctx.cell_height) * 2
    arrow_length = min(max(base_length, region_size * 0.75), region_size * 2)
    arrow_width = max(ctx.cell_width, ctx.cell_height) / 8
    head_length = arrow_width * 2
    head_width = arrow_width * 1.5

    # 45 degrees, varied by -30..+90 degrees per region
    variation = (region_index(ctx.region) % 5) * (math.pi / 6) - math.pi / 6
    angle = math.pi / 4 + variation

    start_x = center_x - math.cos(angle) * arrow_length
    start_y = center_y + math.sin(angle) * arrow_length

    # Arrows may leave the image, but by no more than three cells
    max_out = max(ctx.cell_width, ctx.cell_height) * 3
    start_x = max(-max_out, min(ctx.image_width + max_out, start_x))
    start_y = max(-max_out, min(ctx.image_height + max_out, start_y))

    head_base_x = center_x - head_length * math.cos(angle)
    head_base_y = center_y + head_length * math.sin(angle)
    perp_x = head_width * math.sin(angle)
    perp_y = head_width * math.cos(angle)

    colour = (*RED, 204)
    draw.line(
        [(start_x, start_y), (center_x, center_y)],
        fill=colour,
        width=max(1, round(arrow_width)),
    )
    draw.polygon(
        [
            (center_x, center_y),
            (head_base_x + perp_x, head_base_y + perp_y),
            (head_base_x - perp_x, head_base_y - perp_y),
        ],
        fill=colour,
    )
    return start_x, start_y
