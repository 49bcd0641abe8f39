"""High-level entry point: image path + prompt in, annotated analysis out."""

from __future__ import annotations

import html
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from gridmark.config import GridmarkConfig
from gridmark.grid.calculator import GridCalculator
from gridmark.grid.svg import generate_svg_grid
from gridmark.image.processor import ImageProcessor
from gridmark.llm.analyzer import ImageAnalyzer
from gridmark.llm.base import VisionBackend
from gridmark.llm.clients import create_backend
from gridmark.types import (
    AnalysisResult,
    AnnotationType,
    GridDimensions,
    GridSpec,
    Region,
    TokenSummary,
)
from gridmark.utils.image import ImageInput

logger = logging.getLogger(__name__)


class Analysis:
    """An ``AnalysisResult`` bound to its image and grid, with render helpers."""

    def __init__(
        self,
        result: AnalysisResult,
        image: ImageInput,
        grid: GridSpec,
        processor: ImageProcessor,
        annotations: Sequence[AnnotationType] | None = None,
    ) -> None:
        self.result = result
        self.image = image
        self.grid = grid
        self._processor = processor
        self._annotations = list(annotations) if annotations is not None else None

    @property
    def regions(self) -> tuple[Region, ...]:
        return self.result.regions

    @property
    def summary(self) -> str:
        return self.result.summary

    @property
    def tokens(self) -> TokenSummary:
        return self.result.tokens

    def render(self) -> bytes:
        """Annotated PNG without the grid."""
        annotations = self._annotations
        if annotations is None:
            annotations = [AnnotationType.highlight, AnnotationType.circle]
        return self._processor.transform_image(
            self.image,
            self.grid,
            add_grid=False,
            regions=self.regions,
            annotations=annotations,
        )

    def render_verification(self) -> bytes:
        """Grid overlay plus vote-weighted highlight of the final regions."""
        return self._processor.transform_image(
            self.image,
            self.grid,
            add_grid=True,
            regions=self.regions,
            annotations=[AnnotationType.highlight],
        )

    def to_dict(self) -> dict[str, Any]:
        return self.result.to_dict()


class Gridmark:
    """Grid-based visual analysis of images with a vision LLM.

    The backend is created from ``config.llm`` on first use, so grid and
    HTML helpers work without credentials.
    """

    def __init__(
        self,
        config: GridmarkConfig | None = None,
        backend: VisionBackend | None = None,
        processor: ImageProcessor | None = None,
    ) -> None:
        self.config = config or GridmarkConfig.default()
        self._backend = backend
        self.calculator = GridCalculator(self.config.grid)
        self.processor = processor or ImageProcessor(
            grid_config=self.config.grid,
            highlight_opacity=self.config.render.highlight_opacity,
        )

    @property
    def backend(self) -> VisionBackend:
        if self._backend is None:
            self._backend = create_backend(self.config.llm)
        return self._backend

    def grid_for(self, image: ImageInput) -> tuple[GridSpec, GridDimensions]:
        width, height = self.processor.get_dimensions(image)
        return self.calculator.calculate(width, height)

    async def analyze(
        self,
        image: ImageInput,
        prompt: str,
        *,
        contiguous_regions: bool | None = None,
        verification_path: Path | None = None,
    ) -> Analysis:
        """Run the full pipeline on one image.

        Args:
            image: Image path or any other supported input.
            prompt: Feature description.
            contiguous_regions: Overrides ``config.analysis.contiguous_regions``.
            verification_path: Where to save the vote-weighted highlight PNG.
        """
        spec, _ = self.grid_for(image)
        logger.info("Using %dx%d grid", spec.rows, spec.cols)
        if contiguous_regions is None:
            contiguous_regions = self.config.analysis.contiguous_regions

        analyzer = ImageAnalyzer(
            self.backend,
            self.processor,
            spec,
            config=self.config.analysis,
        )
        result = await analyzer.analyze(
            image,
            prompt,
            contiguous_regions=contiguous_regions,
            verification_path=verification_path,
        )
        return Analysis(
            result,
            image,
            spec,
            self.processor,
            annotations=self.config.render.annotations,
        )

    def generate_html(self, image_path: str | Path) -> str:
        """HTML snippet showing the image with an SVG grid on top."""
        spec, dims = self.grid_for(image_path)
        svg = generate_svg_grid(
            spec,
            dims,
            html=True,
            visible=self.config.grid.visible,
            cell_labels=self.config.grid.cell_labels,
        )
        src = html.escape(str(image_path), quote=True)
        return (
            '<div style="position: relative; display: inline-block;">\n'
            f'  <img src="{src}" style="display: block;" />\n'
            f"  {svg}\n"
            "</div>"
        )

    def generate_simple_highlight(
        self, image: ImageInput, regions: Sequence[Region]
    ) -> bytes:
        """Highlight ``regions`` on the image, without a grid."""
        spec, _ = self.grid_for(image)
        return self.processor.transform_image(
            image, spec, add_grid=False, regions=regions
        )
