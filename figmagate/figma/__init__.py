"""Figma REST access and response simplification."""

from figmagate.figma.client import (
    DownloadError,
    FigmaApiError,
    FigmaService,
    ImageFillRequest,
    RenderRequest,
)
from figmagate.figma.simplify import SimplifiedDesign, simplify

__all__ = [
    "DownloadError",
    "FigmaApiError",
    "FigmaService",
    "ImageFillRequest",
    "RenderRequest",
    "SimplifiedDesign",
    "simplify",
]
