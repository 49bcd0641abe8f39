"""Prompt text for the consensus and verification passes."""

from __future__ import annotations

import json
from collections.abc import Sequence

from gridmark.types import CellId

INITIAL_ANALYSIS_PROMPT = """\
You are analyzing a pair of images - the original image and the same image
with a grid overlay. The grid uses spreadsheet-style coordinates (A1, B2, etc).

Your ONLY task is to identify which grid cells contain the requested features.

CRITICAL RULES:
1. ONLY use grid cells that are VISIBLE in the image
2. NEVER reference cells outside the visible grid
3. If a feature extends beyond the grid, ONLY include the visible portions
4. Each cell MUST be carefully verified to contain the requested feature
5. Be conservative - only include cells with clear evidence
6. Double-check that each cell coordinate exists in the visible grid
7. List cells in a logical order (left-to-right, top-to-bottom)
8. Each cell must be in the format "A1", "B2", etc. (letter then number)

IMPORTANT: You MUST respond with ONLY this exact JSON format:
{
  "cells": ["A1", "B2", "C3", "D4"]
}

DO NOT include any other fields or nested structures. ONLY a simple object
with a "cells" array."""

LIBERAL_SUFFIX = (
    " Be liberal in your assessment - include any cell that appears to contain "
    "the requested feature, even if you're not completely certain."
)

CONSERVATIVE_SUFFIX = (
    " Be extremely conservative in your assessment - only include cells where "
    "you are certain the requested feature is present."
)

CONTIGUITY_RULES = """\
- Any cells that share edges or corners MUST be in the same region
- ANY cells that share edges or corners MUST be grouped into ONE SINGLE region
- This is a hard constraint: do NOT split connected cells into different regions
- Even if cells appear to be different parts (like handle vs head), if they touch, they MUST be in the same region
- Check carefully for diagonal connections between cells"""

_VERIFICATION_TEMPLATE = """\
The user requested: "{prompt}"

The image has been overlaid with a grid using spreadsheet-style coordinates (A1, B2, etc).
The cells may have varying opacity levels: darker cells indicate higher confidence
that the requested feature is present in that cell (opacity increases with the number of
independent detections).

These cells were identified (repeated cells indicate multiple votes):
{cells}

Your tasks:
1. REMOVAL: Review each identified cell, being especially skeptical of lighter
   (lower confidence) cells. Remove any identified cells that don't clearly contain the
   requested feature. Do NOT add any new cells.
2. GROUPING: Organize the remaining identified cells into logical regions{grouping}

CRITICAL RULES:
- Do NOT add any new cells
- Be very skeptical of low-confidence (lighter) cells
- Keep high-confidence (darker) cells unless clearly incorrect
- For each valid cell, include it the same number of times as in the input list
{contiguity}
Respond with ONLY valid JSON in exactly this format:
{{
  "regions": [
    {{
      "title": "descriptive title",
      "description": "what appears in this region",
      "cells": ["A1", "A1", "A1", "B2", "B2"]
    }}
  ],
  "removedCells": {{
    "cells": ["C3", "D4"],
    "explanation": "Brief explanation for why these cells were removed"
  }},
  "summary": "overall analysis"
}}
Keep vote counts by repeating cells in "cells". List each removed cell once."""


def build_verification_prompt(
    prompt: str, cells: Sequence[CellId], contiguous: bool = False
) -> str:
    """Verification prompt embedding the user prompt and the voted cells.

    ``cells`` is serialized with repetitions intact. The contiguity rules are
    included only when ``contiguous`` is true.
    """
    return _VERIFICATION_TEMPLATE.format(
        prompt=prompt,
        cells=json.dumps(list(cells)),
        grouping=(
            " where each region is visually separated from other regions"
            if contiguous
            else "."
        ),
        contiguity=f"{CONTIGUITY_RULES}\n" if contiguous else "",
    )
