"""Shared test fixtures for gridmark."""

from __future__ import annotations

import io
import json
from collections.abc import Sequence
from pathlib import Path

import pytest
from PIL import Image

from gridmark.errors import BackendError
from gridmark.types import AnnotationType, GridSpec, LLMResponse, Region, TokenUsage


class FakeBackend:
    """Scripted ``VisionBackend``: returns queued pair/single responses in order.

    Queue entries are either a response text, an ``LLMResponse`` or an
    exception instance to raise.
    """

    provider = "fake"

    def __init__(
        self,
        pair_responses: Sequence[object] = (),
        single_responses: Sequence[object] = (),
        model: str = "gpt-4o",
        temperature_range: tuple[float, float] = (0.2, 0.8),
        usage: TokenUsage = TokenUsage(100, 10),
    ) -> None:
        self.model = model
        self.temperature_range = temperature_range
        self._pair = list(pair_responses)
        self._single = list(single_responses)
        self._usage = usage
        self.pair_calls: list[dict] = []
        self.single_calls: list[dict] = []

    def _next(self, queue: list[object]) -> LLMResponse:
        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, LLMResponse):
            return item
        return LLMResponse(text=str(item), usage=self._usage)

    async def analyze_pair(self, image_a, image_b, prompt, *, temperature, system=None):
        self.pair_calls.append({"prompt": prompt, "temperature": temperature, "system": system})
        return self._next(self._pair)

    async def analyze_single(self, image, prompt, *, temperature, system=None):
        self.single_calls.append({"prompt": prompt, "temperature": temperature, "system": system})
        return self._next(self._single)


class FakeRenderer:
    """Records render calls and returns a marker PNG payload."""

    def __init__(self) -> None:
        self.calls: list[dict] = []

    async def render_overlay(
        self,
        image,
        grid: GridSpec,
        regions: Sequence[Region] | None = None,
        annotations: Sequence[AnnotationType] | None = None,
    ) -> bytes:
        self.calls.append({"grid": grid, "regions": regions, "annotations": annotations})
        return f"png-{len(self.calls)}".encode()


def cells_json(*cells: str) -> str:
    return json.dumps({"cells": list(cells)})


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def grid_4x4() -> GridSpec:
    return GridSpec(rows=4, cols=4)


@pytest.fixture
def sample_image() -> Image.Image:
    """A 200x160 solid RGB image."""
    return Image.new("RGB", (200, 160), (120, 140, 160))


@pytest.fixture
def sample_png_bytes(sample_image) -> bytes:
    buf = io.BytesIO()
    sample_image.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def sample_image_path(tmp_path, sample_image) -> Path:
    path = tmp_path / "scene.png"
    sample_image.save(path)
    return path


@pytest.fixture
def backend_error() -> BackendError:
    return BackendError("fake", "503 service unavailable", retryable=True)
