"""Spreadsheet-style cell addressing ("A1" = top-left cell).

The row is a single letter (A = row 0) and the column a 1-based number,
so grids are capped at 26x26; multi-letter rows are not supported.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from gridmark.errors import AddressError
from gridmark.types import MAX_GRID_SIZE, CellId

_CELL_PATTERN = re.compile(r"^([A-Z])(\d+)$")


def cell_id(row: int, col: int) -> CellId:
    """Build a label from a 0-based row and a 1-based column."""
    if not 0 <= row < MAX_GRID_SIZE:
        raise AddressError(f"Row {row} out of range 0-{MAX_GRID_SIZE - 1}")
    if not 1 <= col <= MAX_GRID_SIZE:
        raise AddressError(f"Column {col} out of range 1-{MAX_GRID_SIZE}")
    return f"{chr(ord('A') + row)}{col}"


def parse_cell_id(cell: CellId) -> tuple[int, int]:
    """Parse a label into ``(row, col)`` with a 0-based row and 1-based column."""
    if not isinstance(cell, str):
        raise AddressError(f"Cell id must be a string, got {type(cell).__name__}")
    match = _CELL_PATTERN.match(cell)
    if match is None:
        raise AddressError(f"Malformed cell id: {cell!r}")
    row = ord(match.group(1)) - ord("A")
    col = int(match.group(2))
    if not 1 <= col <= MAX_GRID_SIZE:
        raise AddressError(f"Column out of range in cell id: {cell!r}")
    return row, col


def cell_sort_key(cell: CellId) -> tuple[int, int]:
    """Numeric-aware sort key, so "A9" sorts before "A10"."""
    return parse_cell_id(cell)


def are_adjacent(a: CellId, b: CellId) -> bool:
    """True if two distinct cells share an edge or a corner."""
    row_a, col_a = parse_cell_id(a)
    row_b, col_b = parse_cell_id(b)
    if (row_a, col_a) == (row_b, col_b):
        return False
    return abs(row_a - row_b) <= 1 and abs(col_a - col_b) <= 1


def connected_components(cells: Iterable[CellId]) -> list[list[CellId]]:
    """Group cells into 8-connected components.

    Duplicates are ignored. Components and the cells within them are
    returned in ``cell_sort_key`` order.
    """
    remaining = sorted(set(cells), key=cell_sort_key)
    positions = {parse_cell_id(c): c for c in remaining}
    seen: set[CellId] = set()
    components: list[list[CellId]] = []

    for start in remaining:
        if start in seen:
            continue
        component: list[CellId] = []
        stack = [start]
        seen.add(start)
        while stack:
            current = stack.pop()
            component.append(current)
            row, col = parse_cell_id(current)
            for dr in (-1, 0, 1):
                for dc in (-1, 0, 1):
                    neighbour = positions.get((row + dr, col + dc))
                    if neighbour is not None and neighbour not in seen:
                        seen.add(neighbour)
                        stack.append(neighbour)
        components.append(sorted(component, key=cell_sort_key))

    return components
