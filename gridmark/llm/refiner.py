"""Verification pass: prune voted cells and group them into regions."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from itertools import combinations

from gridmark.errors import ParseError
from gridmark.grid.addressing import are_adjacent, connected_components, parse_cell_id
from gridmark.llm.base import VisionBackend
from gridmark.llm.consensus import extract_json_text
from gridmark.llm.prompts import build_verification_prompt
from gridmark.types import CellId, Region, TokenLedger

logger = logging.getLogger(__name__)


@dataclass
class RefinementResult:
    """Regions and summary returned by the verification pass."""

    regions: list[Region]
    summary: str
    removed_cells: list[CellId] = field(default_factory=list)
    removal_explanation: str = ""


def parse_refinement(text: str) -> RefinementResult:
    """Parse the verification response.

    Raises:
        ParseError: Not JSON, not an object, or no ``regions`` list.
        AddressError: A region lists a malformed cell id.
    """
    try:
        data = json.loads(extract_json_text(text))
    except json.JSONDecodeError as exc:
        raise ParseError(f"Failed to parse analysis response: {exc}", text) from exc
    if not isinstance(data, dict):
        raise ParseError("Analysis response is not a JSON object", text)
    raw_regions = data.get("regions")
    if not isinstance(raw_regions, list):
        raise ParseError("Analysis response has no 'regions' array", text)

    regions: list[Region] = []
    for raw in raw_regions:
        if not isinstance(raw, dict):
            raise ParseError(f"Region entry is not an object: {raw!r}", text)
        cells = raw.get("cells") or []
        if not isinstance(cells, list):
            raise ParseError(f"Region 'cells' is not a list: {cells!r}", text)
        for cell in cells:
            parse_cell_id(cell)
        regions.append(Region.from_dict(raw))

    removed = data.get("removedCells")
    removed_cells: list[CellId] = []
    explanation = ""
    if isinstance(removed, dict):
        removed_cells = [c for c in removed.get("cells") or [] if isinstance(c, str)]
        explanation = str(removed.get("explanation") or "")

    return RefinementResult(
        regions=regions,
        summary=str(data.get("summary") or ""),
        removed_cells=removed_cells,
        removal_explanation=explanation,
    )


def contiguity_violations(regions: Sequence[Region]) -> list[tuple[str, str]]:
    """Titles of region pairs that touch (8-connectivity) but were kept apart."""
    owners: dict[CellId, list[int]] = {}
    for index, region in enumerate(regions):
        for cell in region.unique_cells:
            owners.setdefault(cell, []).append(index)

    touching: set[tuple[int, int]] = set()
    for component in connected_components(owners):
        members = sorted({i for cell in component for i in owners[cell]})
        for a, b in combinations(members, 2):
            cells_b = regions[b].unique_cells
            if any(are_adjacent(ca, cb) for ca in regions[a].unique_cells for cb in cells_b):
                touching.add((a, b))

    return [(regions[a].title, regions[b].title) for a, b in sorted(touching)]


class RegionRefiner:
    """Single verification call over the vote-weighted highlight image."""

    def __init__(self, backend: VisionBackend, temperature: float = 0.7) -> None:
        self.backend = backend
        self.temperature = temperature

    async def refine(
        self,
        highlight_png: bytes,
        prompt: str,
        cells: Sequence[CellId],
        ledger: TokenLedger,
        contiguous: bool = False,
    ) -> RefinementResult:
        verification_prompt = build_verification_prompt(prompt, cells, contiguous)
        logger.info("Contiguous regions mode: %s", contiguous)

        response = await self.backend.analyze_single(
            highlight_png,
            verification_prompt,
            temperature=self.temperature,
        )
        ledger.add(response.usage)
        result = parse_refinement(response.text)

        if result.removed_cells:
            logger.info(
                "Verifier removed %s: %s",
                ", ".join(result.removed_cells),
                result.removal_explanation,
            )
        if contiguous:
            for title_a, title_b in contiguity_violations(result.regions):
                logger.warning(
                    "Regions %r and %r touch but were not merged", title_a, title_b
                )
        return result
