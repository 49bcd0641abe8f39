"""SVG grid markup for embedding a grid over an image in HTML."""

from __future__ import annotations

from gridmark.grid.addressing import cell_id
from gridmark.types import GridDimensions, GridSpec


def label_font_size(cell_width: float, cell_height: float) -> float:
    """22% of the smaller cell side, clamped to 5-20px for readability."""
    return min(max(min(cell_width, cell_height) * 0.22, 5.0), 20.0)


def _grid_line(x1: float, y1: float, x2: float, y2: float, opacity: float = 0.3) -> str:
    return (
        f'<line x1="{x1}" y1="{y1}" x2="{x2}" y2="{y2}" '
        f'stroke="black" stroke-width="2" opacity="{opacity}"/>'
    )


def _cell_label(x: float, y: float, dims: GridDimensions, label: str, html: bool) -> str:
    fill = "rgba(0,0,0,0.8)" if html else "black"
    font_size = label_font_size(dims.cell_width, dims.cell_height)
    stroke_width = max(1.0, font_size / 6)
    return (
        f'<text x="{x + dims.cell_width / 2}" y="{y + dims.cell_height / 2}" '
        f'text-anchor="middle" dominant-baseline="central" fill="{fill}" '
        f'font-size="{font_size}px" font-weight="bold" stroke="gold" '
        f'stroke-width="{stroke_width}" stroke-linejoin="round" '
        f'paint-order="stroke" opacity="0.9">{label}</text>'
    )


def generate_svg_grid(
    spec: GridSpec,
    dims: GridDimensions,
    *,
    html: bool = False,
    visible: bool = True,
    cell_labels: bool = True,
) -> str:
    """Return an ``<svg>`` element with grid lines and cell labels.

    With ``html=True`` the element is absolutely positioned so it can sit
    on top of an ``<img>`` inside a relatively positioned container.
    """
    parts: list[str] = []
    if visible:
        for i in range(spec.cols + 1):
            x = i * dims.cell_width
            parts.append(_grid_line(x, 0, x, dims.height))
        for i in range(spec.rows + 1):
            y = i * dims.cell_height
            parts.append(_grid_line(0, y, dims.width, y))
    if cell_labels:
        for row in range(spec.rows):
            for col in range(spec.cols):
                parts.append(_cell_label(
                    col * dims.cell_width,
                    row * dims.cell_height,
                    dims,
                    cell_id(row, col + 1),
                    html,
                ))

    style = ' style="position: absolute; top: 0; left: 0;"' if html else ""
    return (
        f'<svg width="{dims.width}" height="{dims.height}"{style}>'
        '<rect width="100%" height="100%" fill="none"/>'
        + "".join(parts)
        + "</svg>"
    )
