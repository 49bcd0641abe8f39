"""Tests for gridmark.llm.refiner and the verification prompt."""

from __future__ import annotations

import asyncio
import json
import logging

import pytest

from gridmark.errors import AddressError, ParseError
from gridmark.llm.prompts import CONTIGUITY_RULES, build_verification_prompt
from gridmark.llm.refiner import (
    RegionRefiner,
    contiguity_violations,
    parse_refinement,
)
from gridmark.types import Region, TokenLedger
from tests.conftest import FakeBackend


def _refinement(*regions: dict, summary: str = "ok", removed=None) -> str:
    data = {"regions": list(regions), "summary": summary}
    if removed is not None:
        data["removedCells"] = removed
    return json.dumps(data)


class TestVerificationPrompt:
    def test_embeds_prompt_and_votes(self):
        text = build_verification_prompt("Find rust", ["B2", "B2", "C3", "C3"])
        assert 'The user requested: "Find rust"' in text
        assert '["B2", "B2", "C3", "C3"]' in text
        assert "Do NOT add any new cells" in text

    def test_contiguity_rules_included(self):
        text = build_verification_prompt("Find rust", ["B2"], contiguous=True)
        assert CONTIGUITY_RULES in text
        assert "visually separated" in text

    def test_contiguity_rules_omitted(self):
        text = build_verification_prompt("Find rust", ["B2"], contiguous=False)
        assert "share edges or corners" not in text
        assert "visually separated" not in text

    def test_braces_in_prompt(self):
        text = build_verification_prompt("Find {braces}", [])
        assert '"Find {braces}"' in text
        assert "[]" in text


class TestParseRefinement:
    def test_full_response(self):
        text = _refinement(
            {"title": "Rust", "description": "rusty patch", "cells": ["B2", "B2"]},
            summary="found rust",
            removed={"cells": ["D4"], "explanation": "shadow"},
        )
        result = parse_refinement(text)
        assert result.regions == [Region("Rust", "rusty patch", "", ("B2", "B2"))]
        assert result.summary == "found rust"
        assert result.removed_cells == ["D4"]
        assert result.removal_explanation == "shadow"

    def test_fenced(self):
        result = parse_refinement("```json\n" + _refinement() + "\n```")
        assert result.regions == []

    @pytest.mark.parametrize("text", ["garbage", "[]", '{"summary": "x"}', '{"regions": {}}'])
    def test_wrong_shape(self, text):
        with pytest.raises(ParseError):
            parse_refinement(text)

    def test_invalid_cell(self):
        with pytest.raises(AddressError):
            parse_refinement(_refinement({"title": "Bad", "cells": ["B2", "??"]}))


class TestContiguityViolations:
    def test_touching_regions(self):
        regions = [
            Region("Head", cells=("A1", "A2")),
            Region("Handle", cells=("B3",)),
            Region("Far", cells=("E5",)),
        ]
        assert contiguity_violations(regions) == [("Head", "Handle")]

    def test_separated(self):
        assert contiguity_violations([Region("a", cells=("A1",)), Region("b", cells=("C3",))]) == []

    def test_chain_reports_only_direct_neighbours(self):
        regions = [
            Region("Top", cells=("A1",)),
            Region("Middle", cells=("B2", "B2")),
            Region("Bottom", cells=("C3",)),
        ]
        # One component, but Top and Bottom never touch
        assert contiguity_violations(regions) == [("Top", "Middle"), ("Middle", "Bottom")]


class TestRegionRefiner:
    def test_refine(self):
        backend = FakeBackend(single_responses=[
            _refinement({"title": "Rust", "cells": ["B2"]}, summary="found rust"),
        ])
        ledger = TokenLedger()
        refiner = RegionRefiner(backend, temperature=0.7)
        result = asyncio.run(refiner.refine(b"png", "Find rust", ["B2", "B2"], ledger))
        assert result.regions[0].cells == ("B2",)
        assert ledger.total == 110
        call = backend.single_calls[0]
        assert call["temperature"] == 0.7
        assert CONTIGUITY_RULES not in call["prompt"]

    def test_contiguous_flag_passed(self):
        backend = FakeBackend(single_responses=[_refinement()])
        refiner = RegionRefiner(backend)
        asyncio.run(refiner.refine(b"png", "Find rust", [], TokenLedger(), contiguous=True))
        assert CONTIGUITY_RULES in backend.single_calls[0]["prompt"]

    def test_logs_violations(self, caplog):
        backend = FakeBackend(single_responses=[
            _refinement({"title": "a", "cells": ["A1"]}, {"title": "b", "cells": ["B2"]}),
        ])
        refiner = RegionRefiner(backend)
        with caplog.at_level(logging.WARNING, logger="gridmark.llm.refiner"):
            result = asyncio.run(
                refiner.refine(b"png", "x", ["A1", "B2"], TokenLedger(), contiguous=True)
            )
        # Regions are reported but left as the model grouped them
        assert len(result.regions) == 2
        assert "touch" in caplog.text

    def test_parse_error_is_fatal(self):
        backend = FakeBackend(single_responses=["not json"])
        refiner = RegionRefiner(backend)
        ledger = TokenLedger()
        with pytest.raises(ParseError):
            asyncio.run(refiner.refine(b"png", "x", [], ledger))
        assert ledger.total == 110
