"""Image I/O helpers."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

# Anything the renderer and facade accept as an image
ImageInput = Union[bytes, Path, str, Image.Image, np.ndarray]


# ---------------------------------------------------------------------------
# Image I/O
# ---------------------------------------------------------------------------

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tiff", ".tif", ".webp"}


def to_pil(image: ImageInput) -> Image.Image:
    """Load any supported image input as an RGBA PIL image.

    Args:
        image: Encoded bytes, a file path, a PIL image, or a BGR numpy array
            (as OpenCV reads it).

    Returns:
        RGBA ``PIL.Image.Image``.
    """
    if isinstance(image, Image.Image):
        pil = image
    elif isinstance(image, np.ndarray):
        if image.ndim == 3 and image.shape[2] == 3:
            # BGR → RGB
            pil = Image.fromarray(image[:, :, ::-1])
        else:
            pil = Image.fromarray(image)
    elif isinstance(image, (bytes, bytearray)):
        pil = Image.open(io.BytesIO(image))
        pil.load()
    elif isinstance(image, (str, Path)):
        path = Path(image)
        if not path.is_file():
            raise FileNotFoundError(f"Cannot load image: {path}")
        with Image.open(path) as img:
            img.load()
            pil = img.copy()
    else:
        raise TypeError(f"Unsupported image input: {type(image).__name__}")
    return pil.convert("RGBA")


def pil_to_png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def to_png_bytes(image: ImageInput) -> bytes:
    """Encode any supported image input as PNG bytes (RGB)."""
    return pil_to_png_bytes(to_pil(image).convert("RGB"))


def get_image_dimensions(image: ImageInput) -> tuple[int, int]:
    """Get (width, height) of an image; header-only for paths and bytes."""
    if isinstance(image, (str, Path)):
        with Image.open(image) as img:
            return img.size
    if isinstance(image, (bytes, bytearray)):
        with Image.open(io.BytesIO(image)) as img:
            return img.size
    if isinstance(image, np.ndarray):
        return int(image.shape[1]), int(image.shape[0])
    return to_pil(image).size


# ---------------------------------------------------------------------------
# File discovery
# ---------------------------------------------------------------------------


def find_image_files(directory: Path) -> list[Path]:
    """Find all image files in a directory (non-recursive), sorted by name."""
    if not directory.is_dir():
        return []
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
    )
