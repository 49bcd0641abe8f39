"""Grid-cell accuracy against ground truth.

Ground truth is either a list of cells (``{"cells": [...]}`` JSON files) or
normalized bounding boxes converted to cells with
``bounding_box_to_grid_cells``. All metrics compare unique cell sets, so
vote repetitions in predictions do not matter.
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from gridmark.grid.addressing import cell_id, cell_sort_key, parse_cell_id
from gridmark.types import CellId, GridSpec


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in normalized image coordinates (0-1)."""

    xmin: float
    ymin: float
    xmax: float
    ymax: float


@dataclass
class AccuracyMetrics:
    """Cell-level precision/recall/F1/IoU for one image or a whole set."""

    precision: float
    recall: float
    f1: float
    iou: float
    truth_cells: int
    predicted_cells: int
    matching_cells: int
    found: list[CellId] = field(default_factory=list)
    missed: list[CellId] = field(default_factory=list)
    extra: list[CellId] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "precision": self.precision,
            "recall": self.recall,
            "f1": self.f1,
            "iou": self.iou,
            "truth_cells": self.truth_cells,
            "predicted_cells": self.predicted_cells,
            "matching_cells": self.matching_cells,
        }


def bounding_box_to_grid_cells(
    box: BoundingBox,
    grid: GridSpec,
    threshold: float = 0.1,
) -> tuple[set[CellId], dict[CellId, float]]:
    """Cells covered by ``box`` for at least ``threshold`` of their area.

    Returns:
        (cells, overlaps) where ``overlaps`` maps each included cell to the
        covered fraction of its area.
    """
    cell_w = 1 / grid.cols
    cell_h = 1 / grid.rows
    start_col = max(0, math.floor(box.xmin * grid.cols))
    end_col = min(grid.cols - 1, math.floor(box.xmax * grid.cols))
    start_row = max(0, math.floor(box.ymin * grid.rows))
    end_row = min(grid.rows - 1, math.floor(box.ymax * grid.rows))

    cells: set[CellId] = set()
    overlaps: dict[CellId, float] = {}
    for row in range(start_row, end_row + 1):
        for col in range(start_col, end_col + 1):
            overlap_x = min(box.xmax, (col + 1) * cell_w) - max(box.xmin, col * cell_w)
            overlap_y = min(box.ymax, (row + 1) * cell_h) - max(box.ymin, row * cell_h)
            if overlap_x <= 0 or overlap_y <= 0:
                continue
            fraction = overlap_x * overlap_y / (cell_w * cell_h)
            if fraction >= threshold:
                cid = cell_id(row, col + 1)
                cells.add(cid)
                overlaps[cid] = fraction
    return cells, overlaps


def _metrics(matching: int, predicted: int, truth: int, union: int) -> tuple[float, float, float, float]:
    precision = matching / predicted if predicted else 0.0
    recall = matching / truth if truth else 0.0
    f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
    iou = matching / union if union else 0.0
    return precision, recall, f1, iou


def calculate_accuracy(
    predicted_cells: Iterable[CellId], truth_cells: Iterable[CellId]
) -> AccuracyMetrics:
    """Compare predicted cells against ground-truth cells."""
    predicted = set(predicted_cells)
    truth = set(truth_cells)
    matching = predicted & truth
    precision, recall, f1, iou = _metrics(
        len(matching), len(predicted), len(truth), len(predicted | truth)
    )
    return AccuracyMetrics(
        precision=precision,
        recall=recall,
        f1=f1,
        iou=iou,
        truth_cells=len(truth),
        predicted_cells=len(predicted),
        matching_cells=len(matching),
        found=sorted(matching, key=cell_sort_key),
        missed=sorted(truth - predicted, key=cell_sort_key),
        extra=sorted(predicted - truth, key=cell_sort_key),
    )


def overall_accuracy(
    pairs: Sequence[tuple[Iterable[CellId], Iterable[CellId]]],
) -> AccuracyMetrics:
    """Pool ``(predicted, truth)`` pairs from several images into one score.

    Cells are compared within each image; counts are summed across images.
    """
    per_image = [calculate_accuracy(pred, truth) for pred, truth in pairs]
    matching = sum(m.matching_cells for m in per_image)
    predicted = sum(m.predicted_cells for m in per_image)
    truth = sum(m.truth_cells for m in per_image)
    union = predicted + truth - matching
    precision, recall, f1, iou = _metrics(matching, predicted, truth, union)
    return AccuracyMetrics(
        precision=precision,
        recall=recall,
        f1=f1,
        iou=iou,
        truth_cells=truth,
        predicted_cells=predicted,
        matching_cells=matching,
        found=[c for m in per_image for c in m.found],
        missed=[c for m in per_image for c in m.missed],
        extra=[c for m in per_image for c in m.extra],
    )


def load_truth_cells(path: Path) -> list[CellId]:
    """Load ``{"cells": [...]}`` ground truth, validating every cell id."""
    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, dict) or not isinstance(data.get("cells"), list):
        raise ValueError(f"Truth file {path} must contain a 'cells' list")
    for cell in data["cells"]:
        parse_cell_id(cell)
    return list(data["cells"])


def format_accuracy(metrics: AccuracyMetrics) -> list[str]:
    return [
        f"Found cells: {', '.join(metrics.found)}",
        f"Missed cells: {', '.join(metrics.missed)}",
        f"Extra cells: {', '.join(metrics.extra)}",
        f"Recall: {metrics.recall:.1%} (percent of actual features found)",
        f"Precision: {metrics.precision:.1%} (percent of our predictions correct)",
        f"F1: {metrics.f1:.1%}",
        f"IoU: {metrics.iou:.1%}",
    ]
