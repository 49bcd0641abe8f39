"""Tests for gridmark.utils.image and gridmark.utils.prompt."""

from __future__ import annotations

import io
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from gridmark.utils.image import (
    find_image_files,
    get_image_dimensions,
    to_pil,
    to_png_bytes,
)
from gridmark.utils.prompt import resolve_prompt


class TestToPil:
    def test_from_path(self, sample_image_path):
        img = to_pil(sample_image_path)
        assert img.mode == "RGBA"
        assert img.size == (200, 160)

    def test_from_bytes(self, sample_png_bytes):
        assert to_pil(sample_png_bytes).size == (200, 160)

    def test_from_bgr_array(self):
        arr = np.zeros((10, 20, 3), dtype=np.uint8)
        arr[:, :, 0] = 255  # blue channel in BGR
        img = to_pil(arr)
        assert img.size == (20, 10)
        assert img.getpixel((0, 0)) == (0, 0, 255, 255)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            to_pil(tmp_path / "nope.png")

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            to_pil(42)  # type: ignore[arg-type]


class TestPngBytes:
    def test_encodes_png(self, sample_image):
        data = to_png_bytes(sample_image)
        assert data[:8] == b"\x89PNG\r\n\x1a\n"
        assert Image.open(io.BytesIO(data)).mode == "RGB"


class TestGetImageDimensions:
    def test_dimensions(self, sample_image_path, sample_png_bytes):
        assert get_image_dimensions(sample_image_path) == (200, 160)
        assert get_image_dimensions(sample_png_bytes) == (200, 160)
        assert get_image_dimensions(np.zeros((40, 50, 3), dtype=np.uint8)) == (50, 40)


class TestFindImageFiles:
    def test_finds_images(self, tmp_path):
        (tmp_path / "b.png").write_bytes(b"x")
        (tmp_path / "a.JPG").write_bytes(b"x")
        (tmp_path / "notes.txt").write_text("x")
        files = find_image_files(tmp_path)
        assert [f.name for f in files] == ["a.JPG", "b.png"]

    def test_missing_dir(self, tmp_path):
        assert find_image_files(tmp_path / "missing") == []


class TestResolvePrompt:
    def test_default(self, tmp_path):
        assert resolve_prompt(tmp_path / "car.jpg", "Find dents") == "Find dents"

    def test_directory_prompt(self, tmp_path):
        (tmp_path / "prompt.txt").write_text("Find rust\n")
        assert resolve_prompt(tmp_path / "car.jpg", "Find dents") == "Find rust"

    def test_image_prompt_wins(self, tmp_path):
        (tmp_path / "prompt.txt").write_text("Find rust")
        (tmp_path / "car.prompt.txt").write_text("  Find scratches  ")
        assert resolve_prompt(Path(tmp_path / "car.jpg"), "Find dents") == "Find scratches"

    def test_empty_file_ignored(self, tmp_path):
        (tmp_path / "car.prompt.txt").write_text("   ")
        assert resolve_prompt(tmp_path / "car.jpg", "Find dents") == "Find dents"
