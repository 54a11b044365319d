"""
Video variations of an existing job.

A variation re-animates the job's transformed image with its video prompt.
Batches are all-or-nothing: every video is generated first and the rows are
written in one transaction only if all of them succeeded.
"""

import asyncio
import logging
from typing import Optional
from uuid import UUID

from core.config import Config, get_config
from services.generation import MediaGenerator

from .store import JobStore

logger = logging.getLogger(__name__)


class JobNotFound(LookupError):
    """The job does not exist or belongs to someone else."""


class JobIncomplete(ValueError):
    """The job has no transformed image / video prompt to derive from."""


def clamp_variation_count(count, maximum: int = 4, default: int = 2) -> int:
    try:
        value = int(count) if count is not None else default
    except (TypeError, ValueError):
        value = default
    return max(1, min(maximum, value))


class VariationService:
    def __init__(
        self,
        store: JobStore,
        media: MediaGenerator,
        config: Optional[Config] = None,
    ):
        self.store = store
        self.media = media
        self.config = config or get_config()

    async def _source_job(self, user_id: UUID, job_id: UUID) -> dict:
        job = await self.store.get_job_for_user(job_id, user_id)
        if job is None:
            raise JobNotFound("Job not found")
        if not job.get("transformed_image_url") or not job.get("video_prompt"):
            raise JobIncomplete("Cannot regenerate: Original job incomplete")
        return job

    async def _render(self, job: dict) -> dict:
        video = await self.media.generate_animated_video(
            job["transformed_image_url"],
            job["video_prompt"],
            self.config.generation.video_duration,
        )
        return {
            "video_url": video.url,
            "thumbnail_url": job["transformed_image_url"],
            "cost": self.config.generation.variation_cost,
        }

    async def regenerate(self, user_id: UUID, job_id: UUID) -> dict:
        """Create one new variation."""
        variations = await self.generate_variations(user_id, job_id, count=1)
        return variations[0]

    async def generate_variations(self, user_id: UUID, job_id: UUID, count=2) -> list[dict]:
        """
        Render ``count`` (1..4) variations in parallel.

        Raises:
            JobNotFound: Job missing or not owned by the user
            JobIncomplete: Job lacks a transformed image or video prompt
            GenerationFailed: Any render failed (nothing is persisted)
        """
        job = await self._source_job(user_id, job_id)
        count = clamp_variation_count(count, maximum=self.config.generation.max_variations)

        logger.info(f"Generating {count} variations for job {job_id}")
        rendered = await asyncio.gather(*[self._render(job) for _ in range(count)])

        return await self.store.create_variations(job_id, list(rendered))
