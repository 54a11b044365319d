"""
Job Pipeline - runs one content job through TRANSFORM -> ANIMATE -> FORMAT.

Each stage writes its checkpoint before and after the provider call, so a
job that is picked up again after a worker crash continues from the last
stage whose artifact is stored instead of starting over.

Usage:
    pipeline = JobPipeline(store, media)
    final = await pipeline.run(job, worker_id="worker-1")
"""

import logging
from typing import Optional

from core.config import Config, get_config
from services.generation import MediaGenerator

from .state import (
    ANIMATED,
    ANIMATING,
    FORMATTING,
    STARTED,
    TRANSFORMED,
    Checkpoint,
    JobStage,
    resume_stage,
)
from .store import JobStore

logger = logging.getLogger(__name__)


class LeaseLost(Exception):
    """The job row refused our checkpoint (lease taken over, job deleted or finished)."""


class JobPipeline:
    def __init__(
        self,
        store: JobStore,
        media: MediaGenerator,
        config: Optional[Config] = None,
    ):
        self.store = store
        self.media = media
        self.config = config or get_config()

    async def _checkpoint(
        self,
        job_id,
        checkpoint: Checkpoint,
        worker_id: Optional[str],
        **artifacts,
    ) -> dict:
        row = await self.store.advance(job_id, checkpoint, worker_id=worker_id, **artifacts)
        if row is None:
            raise LeaseLost(f"Job {job_id} rejected checkpoint {checkpoint.stage.value}/{checkpoint.progress}")
        return row

    async def run(self, job: dict, worker_id: Optional[str] = None) -> Optional[dict]:
        """
        Process a job to completion or failure.

        Returns the final job row, or None if the job was taken away from
        this worker mid-run.
        """
        job_id = job["id"]
        duration = self.config.generation.video_duration
        stage = resume_stage(job)

        if stage != JobStage.TRANSFORM:
            logger.info(f"Job {job_id}: resuming at {stage.value}")

        try:
            if stage == JobStage.TRANSFORM:
                await self._checkpoint(job_id, STARTED, worker_id)
                image = await self.media.generate_transformed_image(
                    job["original_image_url"], job["image_prompt"]
                )
                transformed_url = image.url
                image_cost = image.cost
                await self._checkpoint(
                    job_id, TRANSFORMED, worker_id, transformed_image_url=transformed_url
                )
            else:
                transformed_url = job["transformed_image_url"]
                image_cost = self.media.estimate_image_cost()

            if stage in (JobStage.TRANSFORM, JobStage.ANIMATE):
                await self._checkpoint(job_id, ANIMATING, worker_id)
                video = await self.media.generate_animated_video(
                    transformed_url, job["video_prompt"], duration
                )
                animated_url = video.url
                video_cost = video.cost
                await self._checkpoint(
                    job_id, ANIMATED, worker_id, animated_video_url=animated_url
                )
            else:
                animated_url = job["animated_video_url"]
                video_cost = self.media.estimate_video_cost(duration)

            await self._checkpoint(job_id, FORMATTING, worker_id)
            final_url = await self.media.format_for_instagram(animated_url)

            cost = round(image_cost + video_cost, 5)
            completed = await self.store.complete_job(job_id, final_url, cost, worker_id=worker_id)
            if completed is None:
                raise LeaseLost(f"Job {job_id} could not be marked COMPLETED")
            return completed

        except LeaseLost as e:
            logger.warning(f"{e}; abandoning run")
            return None

        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Job {job_id} failed: {message}")
            failed = await self.store.fail_job(job_id, message, worker_id=worker_id)
            return failed
