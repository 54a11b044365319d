"""
Object storage for uploads and generated media.

Usage:
    from services.storage import LocalObjectStore

    store = LocalObjectStore()
    key = await store.upload(data, "selfie.jpg")
"""

from .object_store import (
    CONTENT_TYPES,
    LocalObjectStore,
    ObjectStore,
    content_type_for,
    is_external_url,
    sanitize_filename,
)

__all__ = [
    "CONTENT_TYPES",
    "LocalObjectStore",
    "ObjectStore",
    "content_type_for",
    "is_external_url",
    "sanitize_filename",
]
