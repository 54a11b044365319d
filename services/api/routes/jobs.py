"""
Upload, job history, progress stream, variations and download endpoints.
"""

import asyncio
import json
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import RedirectResponse, StreamingResponse

from services.accounts import SessionUser
from services.generation import GenerationFailed
from services.jobs import JobIncomplete, JobNotFound, JobStatus
from services.storage import is_external_url

from ..deps import AppServices, current_user, get_services, rate_limited
from ..schemas import (
    FavoriteRequest,
    GenerateVariationsRequest,
    job_to_dict,
    variation_to_dict,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["jobs"])

JOB_URL_FIELDS = (
    "original_image_url",
    "transformed_image_url",
    "animated_video_url",
    "final_video_url",
)
VARIATION_URL_FIELDS = ("video_url", "thumbnail_url")

EVENTS_POLL_INTERVAL = 1.0
EVENTS_HEARTBEAT_POLLS = 15


def _present(job: dict, services: AppServices) -> dict:
    data = job_to_dict(job)
    if not is_external_url(job["original_image_url"]):
        data["originalImageUrl"] = (
            services.storage.url_for(job["original_image_url"]) or job["original_image_url"]
        )
    return data


async def _owned_job(services: AppServices, job_id: UUID, user: SessionUser) -> dict:
    job = await services.jobs.get_job_for_user(job_id, user.user_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.post("/api/upload", dependencies=[Depends(rate_limited("upload"))])
async def upload(
    file: Optional[UploadFile] = File(None),
    imagePrompt: str = Form(""),
    videoPrompt: str = Form(""),
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    """Store the photo, create a PENDING job and hand it to the worker."""
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")
    if not imagePrompt.strip() or not videoPrompt.strip():
        raise HTTPException(status_code=400, detail="Image and video prompts are required")
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image")

    max_bytes = services.config.storage.max_upload_bytes
    data = await file.read(max_bytes + 1)
    await file.close()
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB",
        )
    if not data:
        raise HTTPException(status_code=400, detail="File is empty")

    key = await services.storage.upload(data, file.filename or "upload", file.content_type)
    job = await services.jobs.create_job(
        user.user_id, key, imagePrompt.strip(), videoPrompt.strip()
    )
    services.queue.submit(job["id"])

    return {"jobId": str(job["id"]), "message": "Upload successful, processing started"}


@router.get("/api/jobs")
async def list_jobs(
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    jobs = await services.jobs.list_jobs_for_user(user.user_id)
    return {"jobs": [_present(job, services) for job in jobs]}


@router.get("/api/jobs/{job_id}")
async def get_job(
    job_id: UUID,
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    job = await _owned_job(services, job_id, user)
    return {"job": _present(job, services)}


@router.delete("/api/jobs/{job_id}")
async def delete_job(
    job_id: UUID,
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    """Remove the job's stored media (best effort), then the job and its variations."""
    job = await _owned_job(services, job_id, user)
    variations = await services.jobs.list_variations(job_id)

    urls = [job[name] for name in JOB_URL_FIELDS if job.get(name)]
    for variation in variations:
        urls.extend(variation[name] for name in VARIATION_URL_FIELDS if variation.get(name))

    for url in dict.fromkeys(urls):
        try:
            await services.storage.delete(url)
        except Exception as e:
            logger.warning(f"Could not delete stored object for job {job_id}: {e}")

    if await services.jobs.delete_job_for_user(job_id, user.user_id) is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return {"success": True, "message": "Job deleted"}


def _format_sse(data: dict) -> str:
    return f"data: {json.dumps(data)}\n\n"


@router.get("/api/jobs/{job_id}/events")
async def job_events(
    job_id: UUID,
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    """
    SSE progress stream for one job.

    Polls the job row and emits only when something changed; the stream ends
    on COMPLETED or FAILED.
    """
    await _owned_job(services, job_id, user)

    async def event_stream():
        last = None
        idle_polls = 0
        while True:
            job = await services.jobs.get_job_for_user(job_id, user.user_id)
            if job is None:
                yield _format_sse({"type": "error", "message": "Job not found"})
                return

            snapshot = (job["status"], job["current_stage"], job["progress"], job.get("error_message"))
            if snapshot != last:
                last = snapshot
                idle_polls = 0
                status = JobStatus(job["status"])
                event_type = "progress"
                if status == JobStatus.COMPLETED:
                    event_type = "complete"
                elif status == JobStatus.FAILED:
                    event_type = "failed"
                yield _format_sse({"type": event_type, "job": _present(job, services)})
                if status.is_terminal:
                    return
            else:
                idle_polls += 1
                if idle_polls >= EVENTS_HEARTBEAT_POLLS:
                    idle_polls = 0
                    yield ": heartbeat\n\n"

            await asyncio.sleep(EVENTS_POLL_INTERVAL)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/api/download/{job_id}")
async def download(
    job_id: UUID,
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    job = await services.jobs.get_job_for_user(job_id, user.user_id)
    if job is None or job["status"] != JobStatus.COMPLETED.value or not job.get("final_video_url"):
        raise HTTPException(status_code=404, detail="Video not found")
    return RedirectResponse(job["final_video_url"], status_code=307)


# Variations


def _variation_error(e: Exception) -> HTTPException:
    if isinstance(e, JobNotFound):
        return HTTPException(status_code=404, detail="Job not found")
    if isinstance(e, JobIncomplete):
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"Variation generation failed: {e}")
    return HTTPException(
        status_code=500,
        detail={"error": "Failed to generate video variation", "details": str(e)},
    )


@router.post("/api/jobs/{job_id}/regenerate")
async def regenerate(
    job_id: UUID,
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    try:
        variation = await services.variations.regenerate(user.user_id, job_id)
    except (JobNotFound, JobIncomplete, GenerationFailed) as e:
        raise _variation_error(e) from None
    return {"success": True, "variation": variation_to_dict(variation)}


@router.post("/api/jobs/{job_id}/generate-variations")
async def generate_variations(
    job_id: UUID,
    body: Optional[GenerateVariationsRequest] = None,
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    count = body.count if body is not None else 2
    try:
        variations = await services.variations.generate_variations(user.user_id, job_id, count)
    except (JobNotFound, JobIncomplete, GenerationFailed) as e:
        raise _variation_error(e) from None

    return {
        "success": True,
        "variations": [variation_to_dict(v) for v in variations],
        "totalCost": round(sum(v.get("cost") or 0.0 for v in variations), 4),
    }


@router.get("/api/jobs/{job_id}/variations")
async def list_variations(
    job_id: UUID,
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    await _owned_job(services, job_id, user)
    variations = await services.jobs.list_variations(job_id)
    return {"variations": [variation_to_dict(v) for v in variations]}


@router.post("/api/jobs/{job_id}/variations/{variation_id}/favorite")
async def set_favorite(
    job_id: UUID,
    variation_id: UUID,
    body: FavoriteRequest,
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    await _owned_job(services, job_id, user)
    variation = await services.jobs.set_variation_favorite(job_id, variation_id, body.isFavorite)
    if variation is None:
        raise HTTPException(status_code=404, detail="Variation not found")
    return {"variation": variation_to_dict(variation)}
