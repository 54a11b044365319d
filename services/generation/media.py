"""
Media Generator

Facade over the single configured provider. It resolves internal storage
keys to fetchable URLs, optionally upscales before transforming, and exposes
the three pipeline steps. Nothing is persisted here.

Usage:
    media = MediaGenerator(get_provider(), storage)

    image = await media.generate_transformed_image(job["original_image_url"], "anime style")
    video = await media.generate_animated_video(image.url, "slow zoom in")
    final_url = await media.format_for_instagram(video.url)
"""

import logging
from typing import Optional

from core.config import Config, get_config
from services.storage import ObjectStore, content_type_for, is_external_url

from .base import GenerationFailed, GenerationProvider, GenerationResult, MediaKind

logger = logging.getLogger(__name__)


class MediaGenerator:
    def __init__(
        self,
        provider: GenerationProvider,
        storage: Optional[ObjectStore] = None,
        config: Optional[Config] = None,
    ):
        self.provider = provider
        self.storage = storage
        self.config = config or get_config()

    @property
    def provider_name(self) -> str:
        return self.provider.name

    async def resolve_source(self, source: str) -> str:
        """
        Turn a storage key into something the vendor can fetch.

        Public URLs pass through. Keys become signed URLs when the store is
        publicly reachable; otherwise the bytes are handed to the provider.
        """
        if is_external_url(source):
            return source
        if self.storage is None:
            raise GenerationFailed(
                f"Cannot resolve storage key without an object store: {source}",
                error_code="UNRESOLVABLE_SOURCE",
                provider=self.provider.name,
            )

        url = self.storage.url_for(source)
        if url:
            return url

        try:
            data = await self.storage.read(source)
        except FileNotFoundError:
            raise GenerationFailed(
                f"Source image not found in storage: {source}",
                error_code="SOURCE_MISSING",
                provider=self.provider.name,
            ) from None
        return await self.provider.host_image(data, content_type_for(source))

    async def generate_transformed_image(self, source: str, prompt: str) -> GenerationResult:
        """TRANSFORM stage: (optional upscale) + image-to-image."""
        image_url = await self.resolve_source(source)
        upscale_cost = 0.0

        if self.config.generation.enable_upscale:
            upscaled = await self.provider.upscale_image(image_url)
            logger.info(f"Upscaled source via {upscaled.provider}/{upscaled.model}")
            image_url = upscaled.url
            upscale_cost = upscaled.cost

        result = await self.provider.transform_image(image_url, prompt)
        result.cost = round(result.cost + upscale_cost, 5)
        return result

    async def generate_animated_video(
        self,
        image_url: str,
        prompt: str,
        duration_seconds: Optional[int] = None,
    ) -> GenerationResult:
        """ANIMATE stage: image-to-video."""
        duration = duration_seconds or self.config.generation.video_duration
        source = await self.resolve_source(image_url)
        return await self.provider.generate_video(source, prompt, duration)

    async def format_for_instagram(self, video_url: str) -> str:
        """FORMAT stage. Providers already render 9:16, so the URL is returned as is."""
        return video_url

    def estimate_image_cost(self) -> float:
        """TRANSFORM stage cost, including the upscale call when enabled."""
        cost = self.provider.estimate_cost(MediaKind.IMAGE)
        if self.config.generation.enable_upscale:
            cost += self.provider.estimate_upscale_cost()
        return round(cost, 5)

    def estimate_video_cost(self, duration_seconds: Optional[int] = None) -> float:
        duration = duration_seconds or self.config.generation.video_duration
        return self.provider.estimate_cost(MediaKind.VIDEO, duration)

    def estimate_job_cost(self, duration_seconds: Optional[int] = None) -> float:
        return round(self.estimate_image_cost() + self.estimate_video_cost(duration_seconds), 5)
