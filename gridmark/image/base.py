"""Protocol for grid/annotation renderers."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from gridmark.types import AnnotationType, GridSpec, Region
from gridmark.utils.image import ImageInput


@runtime_checkable
class Renderer(Protocol):
    """Protocol for rendering grid overlays and region annotations.

    Implementations: ImageProcessor (Pillow).
    """

    async def render_overlay(
        self,
        image: ImageInput,
        grid: GridSpec,
        regions: Sequence[Region] | None = None,
        annotations: Sequence[AnnotationType] | None = None,
    ) -> bytes:
        """Render the image with a grid and optional region annotations.

        Args:
            image: Original image.
            grid: Grid rows/columns.
            regions: Regions to annotate (None for grid only).
            annotations: Annotation styles for the regions.

        Returns:
            PNG-encoded bytes.
        """
        ...
