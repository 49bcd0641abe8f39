"""Gridmark: grid-cell image analysis with multi-pass LLM consensus."""

__version__ = "0.1.0"

from gridmark.core import Analysis, Gridmark
from gridmark.types import AnalysisResult, AnnotationType, GridSpec, Region

__all__ = ["Analysis", "AnalysisResult", "AnnotationType", "GridSpec", "Gridmark", "Region", "__version__"]
