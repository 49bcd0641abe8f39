"""Per-image prompt resolution."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DIRECTORY_PROMPT_FILE = "prompt.txt"


def resolve_prompt(image_path: Path, default: str) -> str:
    """Pick the prompt for an image.

    Precedence:
        1. ``<stem>.prompt.txt`` next to the image
        2. ``prompt.txt`` in the image's directory
        3. ``default``
    """
    image_path = Path(image_path)
    candidates = [
        (image_path.with_name(f"{image_path.stem}.prompt.txt"), "image"),
        (image_path.parent / DIRECTORY_PROMPT_FILE, "directory"),
    ]
    for path, kind in candidates:
        if path.is_file():
            text = path.read_text(encoding="utf-8").strip()
            if text:
                logger.info("Using %s prompt: %r", kind, text)
                return text
    logger.info("Using default prompt: %r", default)
    return default
