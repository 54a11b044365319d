"""
Object storage for uploaded photos and generated assets.

Keys look like ``{folder_prefix}uploads/{epoch_ms}-{filename}``. The local
backend stores them under STORAGE_ROOT and, when STORAGE_PUBLIC_URL is set,
hands out time-limited signed URLs served by the API's /media route.
"""

import hashlib
import hmac
import logging
import re
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import quote, unquote, urlparse

import aiofiles
import aiofiles.os

from core.config import Config, get_config

logger = logging.getLogger(__name__)


CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
}


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")


def sanitize_filename(filename: str) -> str:
    name = Path(filename or "").name
    name = re.sub(r"[^A-Za-z0-9._-]+", "-", name).lstrip(".-")
    return name[:100] or "upload"


def is_external_url(value: str) -> bool:
    return value.startswith(("http://", "https://", "data:"))


class ObjectStore(ABC):
    """Minimal blob store used by uploads, the media generator and job deletion."""

    @abstractmethod
    async def upload(self, data: bytes, filename: str, content_type: Optional[str] = None) -> str:
        """Store bytes and return the new key."""

    @abstractmethod
    async def read(self, key: str) -> bytes:
        ...

    @abstractmethod
    async def delete(self, key_or_url: str) -> bool:
        """Delete an object; returns False when it is not ours or already gone."""

    @abstractmethod
    def url_for(self, key: str) -> Optional[str]:
        """A URL third parties can fetch, or None if the store is not public."""


class LocalObjectStore(ObjectStore):
    """Filesystem-backed store with HMAC-signed download URLs."""

    def __init__(self, config: Optional[Config] = None, clock=time.time):
        config = config or get_config()
        self.root = Path(config.storage.root).resolve()
        self.prefix = config.storage.folder_prefix
        self.public_url = config.storage.public_url.rstrip("/")
        self.ttl = config.storage.signed_url_ttl
        self._secret = config.auth.jwt_secret_key.encode()
        self._clock = clock

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Storage key escapes root: {key}")
        return path

    def new_key(self, filename: str) -> str:
        return f"{self.prefix}uploads/{int(self._clock() * 1000)}-{sanitize_filename(filename)}"

    async def upload(self, data: bytes, filename: str, content_type: Optional[str] = None) -> str:
        key = self.new_key(filename)
        path = self._path(key)
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)
        logger.info(f"Stored {key} ({len(data) / 1024:.0f} KB)")
        return key

    async def read(self, key: str) -> bytes:
        async with aiofiles.open(self._path(key), "rb") as f:
            return await f.read()

    def key_for(self, key_or_url: str) -> Optional[str]:
        """Map a key or one of our own signed URLs back to a key."""
        if not is_external_url(key_or_url):
            return key_or_url
        if self.public_url and key_or_url.startswith(self.public_url + "/"):
            path = urlparse(key_or_url).path
            base_path = urlparse(self.public_url).path.rstrip("/")
            return unquote(path[len(base_path) + 1:])
        return None

    async def delete(self, key_or_url: str) -> bool:
        key = self.key_for(key_or_url)
        if key is None:
            logger.debug(f"Not a stored object, skipping delete: {key_or_url[:80]}")
            return False
        try:
            await aiofiles.os.remove(self._path(key))
        except FileNotFoundError:
            return False
        logger.info(f"Deleted {key}")
        return True

    def _signature(self, key: str, expires: int) -> str:
        message = f"{key}:{expires}".encode()
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def url_for(self, key: str) -> Optional[str]:
        if not self.public_url:
            return None
        # Expiry is aligned to ttl windows so repeated reads yield the same URL
        expires = (int(self._clock()) // self.ttl + 2) * self.ttl
        return (
            f"{self.public_url}/{quote(key)}"
            f"?expires={expires}&signature={self._signature(key, expires)}"
        )

    def verify(self, key: str, expires: str, signature: str) -> bool:
        """Check a signed URL's query parameters."""
        try:
            expires_at = int(expires)
        except (TypeError, ValueError):
            return False
        if expires_at < self._clock():
            return False
        return hmac.compare_digest(self._signature(key, expires_at), signature or "")

    def path_for(self, key: str) -> Path:
        return self._path(key)
