"""Multi-pass consensus over grid cells.

N independent passes run concurrently over the same (original, grid) image
pair, each at a different temperature, with the first pass nudged towards
recall and the last towards precision. A cell survives only if at least
``MIN_VOTES`` distinct passes report it, and is then repeated once per vote
so downstream rendering and verification can see its confidence.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections import Counter
from collections.abc import Iterable

from gridmark.errors import BackendError, ParseError
from gridmark.grid.addressing import cell_sort_key
from gridmark.llm.base import VisionBackend
from gridmark.llm.prompts import (
    CONSERVATIVE_SUFFIX,
    INITIAL_ANALYSIS_PROMPT,
    LIBERAL_SUFFIX,
)
from gridmark.types import CellId, GridSpec, TokenLedger, VoteTally

logger = logging.getLogger(__name__)

# Minimum number of distinct passes that must report a cell
MIN_VOTES = 2

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


# ---------------------------------------------------------------------------
# Vote aggregation
# ---------------------------------------------------------------------------


def tally_votes(pass_results: Iterable[Iterable[CellId]]) -> VoteTally:
    """Count, per cell, the number of distinct passes that reported it."""
    counts: Counter[CellId] = Counter()
    for cells in pass_results:
        counts.update(set(cells))
    return {cell: n for cell, n in counts.items() if n >= MIN_VOTES}


def expand_votes(tally: VoteTally) -> list[CellId]:
    """Repeat each cell once per vote, in (row, col) order."""
    return [
        cell
        for cell in sorted(tally, key=cell_sort_key)
        for _ in range(tally[cell])
    ]


def aggregate_votes(pass_results: Iterable[Iterable[CellId]]) -> list[CellId]:
    """Vote-weighted cell list from a collection of passes.

    Each pass counts once per cell no matter how often it repeats it. Cells
    with fewer than ``MIN_VOTES`` votes are dropped.

    >>> aggregate_votes([["A10", "A2", "A1"], ["A1", "A10", "A2"], ["C3"]])
    ['A1', 'A1', 'A2', 'A2', 'A10', 'A10']
    """
    return expand_votes(tally_votes(pass_results))


# ---------------------------------------------------------------------------
# Pass setup
# ---------------------------------------------------------------------------


def temperature_schedule(n: int, low: float, high: float) -> list[float]:
    """Evenly spaced temperatures from ``low`` to ``high`` inclusive."""
    if n < 1:
        raise ValueError(f"Number of passes must be >= 1, got {n}")
    if n == 1:
        return [round((low + high) / 2, 6)]
    step = (high - low) / (n - 1)
    return [round(low + i * step, 6) for i in range(n)]


def biased_prompt(prompt: str, index: int, n: int) -> str:
    """Append the liberal (first pass) or conservative (last pass) instruction."""
    if index == 0:
        return prompt + LIBERAL_SUFFIX
    if index == n - 1:
        return prompt + CONSERVATIVE_SUFFIX
    return prompt


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def extract_json_text(text: str) -> str:
    """Strip a surrounding markdown code fence, if any."""
    stripped = text.strip()
    match = _FENCE_PATTERN.match(stripped)
    return match.group(1) if match else stripped


def parse_cells(text: str, grid: GridSpec) -> list[CellId]:
    """Parse a ``{"cells": [...]}`` response.

    Entries that are not valid cell ids inside ``grid`` are dropped with a
    warning.

    Raises:
        ParseError: The text is not JSON or lacks a ``cells`` list.
    """
    try:
        data = json.loads(extract_json_text(text))
    except json.JSONDecodeError as exc:
        raise ParseError(f"Response is not valid JSON: {exc}", text) from exc
    if not isinstance(data, dict) or not isinstance(data.get("cells"), list):
        raise ParseError("Response has no 'cells' array", text)

    cells: list[CellId] = []
    for entry in data["cells"]:
        if isinstance(entry, str) and grid.contains(entry):
            cells.append(entry)
        else:
            logger.warning("Dropping invalid cell %r (grid %dx%d)", entry, grid.rows, grid.cols)
    return cells


# ---------------------------------------------------------------------------
# Consensus analyzer
# ---------------------------------------------------------------------------


class ConsensusAnalyzer:
    """Run the concurrent initial passes and aggregate their votes."""

    def __init__(
        self,
        backend: VisionBackend,
        num_passes: int = 4,
        tolerate_pass_errors: bool = False,
    ) -> None:
        if num_passes < 1:
            raise ValueError(f"num_passes must be >= 1, got {num_passes}")
        self.backend = backend
        self.num_passes = num_passes
        self.tolerate_pass_errors = tolerate_pass_errors

    async def run(
        self,
        original_png: bytes,
        grid_png: bytes,
        prompt: str,
        grid: GridSpec,
        ledger: TokenLedger,
    ) -> list[CellId]:
        """Return the vote-weighted cell list for ``prompt``.

        Raises:
            BackendError: A pass failed and ``tolerate_pass_errors`` is off.
                All passes are allowed to settle first.
        """
        low, high = self.backend.temperature_range
        temperatures = temperature_schedule(self.num_passes, low, high)
        logger.info("Performing %d parallel analyses...", len(temperatures))

        outcomes = await asyncio.gather(
            *(
                self._run_pass(
                    original_png,
                    grid_png,
                    biased_prompt(prompt, i, self.num_passes),
                    temp,
                    grid,
                    ledger,
                )
                for i, temp in enumerate(temperatures)
            ),
            return_exceptions=True,
        )

        pass_results: list[list[CellId]] = []
        first_error: BackendError | None = None
        for temp, outcome in zip(temperatures, outcomes):
            if isinstance(outcome, BackendError):
                if self.tolerate_pass_errors:
                    logger.warning("Pass at temperature %s failed: %s", temp, outcome)
                    pass_results.append([])
                elif first_error is None:
                    first_error = outcome
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                pass_results.append(outcome)

        if first_error is not None:
            raise first_error

        cells = aggregate_votes(pass_results)
        logger.info("All cells with repetitions: %s", cells)
        return cells

    async def _run_pass(
        self,
        original_png: bytes,
        grid_png: bytes,
        prompt: str,
        temperature: float,
        grid: GridSpec,
        ledger: TokenLedger,
    ) -> list[CellId]:
        response = await self.backend.analyze_pair(
            original_png,
            grid_png,
            prompt,
            temperature=temperature,
            system=INITIAL_ANALYSIS_PROMPT,
        )
        # Usage counts even when the content turns out to be unusable
        ledger.add(response.usage)
        logger.debug("Temperature %s response: %s", temperature, response.text)
        try:
            return parse_cells(response.text, grid)
        except ParseError as exc:
            logger.warning("Failed to parse response (temp %s): %s", temperature, exc)
            return []
