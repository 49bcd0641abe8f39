"""Tests for gridmark.grid.addressing."""

from __future__ import annotations

import pytest

from gridmark.errors import AddressError
from gridmark.grid.addressing import (
    are_adjacent,
    cell_id,
    cell_sort_key,
    connected_components,
    parse_cell_id,
)


class TestCellId:
    def test_corners(self):
        assert cell_id(0, 1) == "A1"
        assert cell_id(25, 26) == "Z26"

    def test_row_out_of_range(self):
        with pytest.raises(AddressError):
            cell_id(26, 1)
        with pytest.raises(AddressError):
            cell_id(-1, 1)

    def test_col_out_of_range(self):
        with pytest.raises(AddressError):
            cell_id(0, 0)
        with pytest.raises(AddressError):
            cell_id(0, 27)


class TestParseCellId:
    def test_parse(self):
        assert parse_cell_id("B3") == (1, 3)
        assert parse_cell_id("Z26") == (25, 26)

    def test_inverse_of_cell_id(self):
        for row, col in [(0, 1), (4, 12), (25, 26)]:
            assert parse_cell_id(cell_id(row, col)) == (row, col)

    @pytest.mark.parametrize("bad", ["", "3B", "B", "b3", "BB3", "B3x", "B0", "A27", " A1"])
    def test_malformed(self, bad):
        with pytest.raises(AddressError):
            parse_cell_id(bad)

    def test_not_a_string(self):
        with pytest.raises(AddressError):
            parse_cell_id(12)  # type: ignore[arg-type]

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            parse_cell_id("??")


class TestOrdering:
    def test_numeric_aware(self):
        assert sorted(["A10", "A2", "A1", "B1"], key=cell_sort_key) == ["A1", "A2", "A10", "B1"]


class TestAdjacency:
    def test_edge_and_corner(self):
        assert are_adjacent("B2", "B3")
        assert are_adjacent("B2", "C2")
        assert are_adjacent("B2", "C3")
        assert are_adjacent("B2", "A1")

    def test_not_adjacent(self):
        assert not are_adjacent("A1", "A3")
        assert not are_adjacent("A1", "C1")

    def test_same_cell_is_not_adjacent(self):
        assert not are_adjacent("B2", "B2")


class TestConnectedComponents:
    def test_diagonal_chain_is_one_component(self):
        assert connected_components(["A1", "B2", "C3"]) == [["A1", "B2", "C3"]]

    def test_separate_components(self):
        comps = connected_components(["A1", "A2", "D4", "D5", "A1"])
        assert comps == [["A1", "A2"], ["D4", "D5"]]

    def test_empty(self):
        assert connected_components([]) == []
