"""Analysis orchestration: grid overlay, consensus, highlight, verification.

Stages run strictly in order and share one ``TokenLedger`` per call:

    1. render the grid overlay
    2. N concurrent consensus passes -> vote-weighted cells
    3. render the vote-weighted highlight (optionally saved for inspection)
    4. a single verification pass -> titled regions and a summary
    5. price the accumulated tokens
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path

from gridmark.config import AnalysisConfig
from gridmark.grid.addressing import cell_sort_key
from gridmark.image.base import Renderer
from gridmark.llm.base import VisionBackend
from gridmark.llm.consensus import ConsensusAnalyzer
from gridmark.llm.pricing import MODEL_PRICING, ModelPrice, compute_cost
from gridmark.llm.refiner import RegionRefiner
from gridmark.types import (
    AnalysisResult,
    AnnotationType,
    CellId,
    GridSpec,
    Region,
    TokenLedger,
    TokenSummary,
)
from gridmark.utils.image import ImageInput, to_png_bytes

logger = logging.getLogger(__name__)


class ImageAnalyzer:
    """Run the consensus-and-verification pipeline for one grid."""

    def __init__(
        self,
        backend: VisionBackend,
        renderer: Renderer,
        grid: GridSpec,
        config: AnalysisConfig | None = None,
        pricing: Mapping[str, ModelPrice] = MODEL_PRICING,
    ) -> None:
        self.backend = backend
        self.renderer = renderer
        self.grid = grid
        self.config = config or AnalysisConfig()
        self.pricing = pricing
        self.consensus = ConsensusAnalyzer(
            backend,
            num_passes=self.config.num_passes,
            tolerate_pass_errors=self.config.tolerate_pass_errors,
        )
        self.refiner = RegionRefiner(backend, temperature=self.config.verification_temperature)

    async def analyze(
        self,
        image: ImageInput,
        prompt: str,
        *,
        contiguous_regions: bool = False,
        verification_path: Path | None = None,
    ) -> AnalysisResult:
        """Analyze ``image`` for the feature described by ``prompt``.

        Args:
            image: Original image (any supported input).
            prompt: Feature description, e.g. "Find rust spots".
            contiguous_regions: Ask the verifier to merge touching cells.
            verification_path: Where to write the vote-weighted highlight PNG.

        Returns:
            Regions, summary and token/cost metadata.
        """
        ledger = TokenLedger()
        original_png = await asyncio.to_thread(to_png_bytes, image)

        logger.info("Generating grid overlay image...")
        grid_png = await self.renderer.render_overlay(image, self.grid)

        logger.info("First pass: identifying cells...")
        cells = await self.consensus.run(original_png, grid_png, prompt, self.grid, ledger)

        highlight_png = await self.renderer.render_overlay(
            image,
            self.grid,
            regions=[Region("", "Initial pass", "Pending verification", tuple(cells))],
            annotations=[AnnotationType.highlight],
        )
        if verification_path is not None:
            await asyncio.to_thread(Path(verification_path).write_bytes, highlight_png)
            logger.info("Highlighted image saved to: %s", verification_path)

        refined = await self.refiner.refine(
            highlight_png, prompt, cells, ledger, contiguous=contiguous_regions
        )
        _log_cell_changes(cells, refined.regions)

        cost = compute_cost(self.backend.model, ledger.input, ledger.output, self.pricing)
        return AnalysisResult(
            regions=tuple(refined.regions),
            summary=refined.summary,
            tokens=TokenSummary(
                input=ledger.input,
                output=ledger.output,
                total=ledger.total,
                cost=cost,
                model_name=self.backend.model,
            ),
        )


def _log_cell_changes(initial: list[CellId], regions: list[Region]) -> None:
    logger.info("Initial cells: %s", ", ".join(initial))
    for region in regions:
        logger.info("- %s: %s", region.title, ", ".join(region.cells))

    initial_set = set(initial)
    verified_set = {cell for region in regions for cell in region.cells}
    if len(initial_set) != len(verified_set):
        logger.info("Cell count changed: %d -> %d", len(initial_set), len(verified_set))

    added = sorted(verified_set - initial_set, key=cell_sort_key)
    removed = sorted(initial_set - verified_set, key=cell_sort_key)
    if added:
        logger.info("Added cells: %s", ", ".join(added))
    if removed:
        logger.info("Removed cells: %s", ", ".join(removed))
