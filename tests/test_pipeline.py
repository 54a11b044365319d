"""
Job Pipeline Tests

Runs jobs through TRANSFORM -> ANIMATE -> FORMAT against the in-memory job
store and a scripted provider.
"""

import uuid

import pytest

from services.generation import MediaGenerator
from services.jobs import JobPipeline

from tests.fakes import FakeProvider


USER_ID = uuid.uuid4()


async def new_job(job_store, storage, worker_id="worker-1"):
    key = await storage.upload(b"jpeg-bytes", "selfie.jpg")
    await job_store.create_job(USER_ID, key, "Studio Ghibli style", "gentle wind in hair")
    return await job_store.claim_next(worker_id, lease_seconds=120, max_attempts=3)


class TestJobPipeline:
    @pytest.fixture
    def pipeline(self, job_store, media, config):
        return JobPipeline(job_store, media, config)

    @pytest.mark.asyncio
    async def test_happy_path(self, pipeline, job_store, storage, provider):
        """Test that a job completes with every checkpoint written in order."""
        job = await new_job(job_store, storage)

        final = await pipeline.run(job, worker_id="worker-1")

        assert final["status"] == "COMPLETED"
        assert final["current_stage"] == "COMPLETED"
        assert final["progress"] == 100
        assert final["transformed_image_url"] == "https://cdn.test/image-1.png"
        assert final["animated_video_url"] == "https://cdn.test/video-1.mp4"
        assert final["final_video_url"] == "https://cdn.test/video-1.mp4"
        assert final["cost"] == pytest.approx(0.075)
        assert final["completed_at"] is not None
        assert final["lease_owner"] is None

        progress = [p for _, _, p in job_store.history[job["id"]]]
        assert progress == [0, 10, 40, 50, 80, 90, 100]

        # The uploaded key was inlined for the vendor
        assert provider.image_calls[0][0].startswith("data:image/jpeg;base64,")
        assert provider.video_calls == [("https://cdn.test/image-1.png", "gentle wind in hair", 5)]

    @pytest.mark.asyncio
    async def test_resume_after_transform(self, pipeline, job_store, storage, provider):
        """Test that a reclaimed job with a stored image skips TRANSFORM."""
        job = await new_job(job_store, storage)
        job_store.jobs[job["id"]].update(
            status="PROCESSING",
            current_stage="TRANSFORM",
            progress=40,
            transformed_image_url="https://cdn.test/earlier.png",
        )

        final = await pipeline.run(await job_store.get_job(job["id"]), worker_id="worker-1")

        assert final["status"] == "COMPLETED"
        assert provider.image_calls == []
        assert provider.video_calls[0][0] == "https://cdn.test/earlier.png"
        assert final["cost"] == pytest.approx(0.075)

    @pytest.mark.asyncio
    async def test_resumed_cost_matches_uninterrupted_run(self, job_store, storage, config):
        """Test that the upscale charge survives a crash after TRANSFORM."""
        config.generation.enable_upscale = True
        media = MediaGenerator(FakeProvider(config), storage=storage, config=config)
        pipeline = JobPipeline(job_store, media, config)

        straight = await pipeline.run(await new_job(job_store, storage), worker_id="worker-1")

        job = await new_job(job_store, storage)
        job_store.jobs[job["id"]].update(
            status="PROCESSING",
            current_stage="TRANSFORM",
            progress=40,
            transformed_image_url="https://cdn.test/earlier.png",
        )
        resumed = await pipeline.run(await job_store.get_job(job["id"]), worker_id="worker-1")

        assert straight["cost"] == pytest.approx(0.085)
        assert resumed["cost"] == pytest.approx(straight["cost"])

    @pytest.mark.asyncio
    async def test_resume_after_animate(self, pipeline, job_store, storage, provider):
        job = await new_job(job_store, storage)
        job_store.jobs[job["id"]].update(
            status="PROCESSING",
            current_stage="ANIMATE",
            progress=80,
            transformed_image_url="https://cdn.test/earlier.png",
            animated_video_url="https://cdn.test/earlier.mp4",
        )

        final = await pipeline.run(await job_store.get_job(job["id"]), worker_id="worker-1")

        assert final["final_video_url"] == "https://cdn.test/earlier.mp4"
        assert provider.video_calls == []

    @pytest.mark.asyncio
    async def test_provider_failure_fails_job(self, job_store, storage, config):
        provider = FakeProvider(config, fail_videos={1})
        pipeline = JobPipeline(job_store, MediaGenerator(provider, storage, config), config)
        job = await new_job(job_store, storage)

        final = await pipeline.run(job, worker_id="worker-1")

        assert final["status"] == "FAILED"
        assert final["progress"] == 0
        assert final["error_message"] == "video model exploded"
        assert final["transformed_image_url"] == "https://cdn.test/image-1.png"
        assert final["final_video_url"] is None

    @pytest.mark.asyncio
    async def test_lost_lease_abandons_run(self, pipeline, job_store, storage, provider):
        """Test that a worker without the lease writes nothing."""
        job = await new_job(job_store, storage, worker_id="worker-1")

        result = await pipeline.run(job, worker_id="worker-2")

        assert result is None
        assert job_store.jobs[job["id"]]["status"] == "PENDING"
        assert provider.image_calls == []

    @pytest.mark.asyncio
    async def test_deleted_job_is_not_resurrected(self, pipeline, job_store, storage):
        job = await new_job(job_store, storage)
        await job_store.delete_job_for_user(job["id"], USER_ID)

        assert await pipeline.run(job, worker_id="worker-1") is None
        assert job["id"] not in job_store.jobs
