"""Pillow rendering of grid overlays and region annotations."""

from gridmark.image.base import Renderer
from gridmark.image.processor import ImageProcessor

__all__ = ["ImageProcessor", "Renderer"]
