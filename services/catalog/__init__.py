"""
AI model catalog, per-user model preferences and cost estimates.
"""

from .models import (
    DEFAULT_IMAGE_MODEL,
    DEFAULT_VIDEO_MODEL,
    SEED_MODELS,
    CatalogModel,
    estimate_cost,
    unit_cost,
)
from .store import CATEGORIES, CatalogStore, ModelNotFound

__all__ = [
    "CATEGORIES",
    "CatalogModel",
    "CatalogStore",
    "DEFAULT_IMAGE_MODEL",
    "DEFAULT_VIDEO_MODEL",
    "ModelNotFound",
    "SEED_MODELS",
    "estimate_cost",
    "unit_cost",
]
