"""Exceptions raised by the imaging pipeline."""

from __future__ import annotations


class ImageAnalysisError(ValueError):
    """Base class for failures that terminate a single image analysis."""


class DecodeError(ImageAnalysisError):
    """The input could not be turned into a valid pixel buffer."""


class UnsupportedImageError(ImageAnalysisError):
    """The image decoded but its dimensions cannot be analyzed."""
