"""
Image and video generation.

Provides:
- GenerationProvider: common interface for FAL, Runware and Runway
- get_provider: picks the implementation from configuration
- MediaGenerator: pipeline-facing facade (resolve source, upscale, transform, animate, format)
"""

from .base import (
    GenerationFailed,
    GenerationProvider,
    GenerationRejected,
    GenerationResult,
    MediaKind,
)
from .fal import FalProvider
from .media import MediaGenerator
from .registry import PROVIDERS, get_provider
from .runware import RunwareProvider
from .runway import RunwayProvider

__all__ = [
    "FalProvider",
    "GenerationFailed",
    "GenerationProvider",
    "GenerationRejected",
    "GenerationResult",
    "MediaGenerator",
    "MediaKind",
    "PROVIDERS",
    "RunwareProvider",
    "RunwayProvider",
    "get_provider",
]
