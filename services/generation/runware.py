"""
Runware provider.

All calls go to a single endpoint with a JSON array of tasks:

    POST https://api.runware.ai/v1
    [{"taskType": "imageInference", "taskUUID": "...", ...}]

Image tasks answer synchronously. Video tasks may answer before the render is
done; those are followed up with ``getResponse`` polls on the same taskUUID.
"""

import logging
import uuid
from typing import Optional

from .base import GenerationFailed, GenerationProvider, GenerationResult, MediaKind

logger = logging.getLogger(__name__)


class RunwareProvider(GenerationProvider):
    """FLUX Schnell image inference and Hailuo image-to-video via Runware."""

    name = "runware"

    IMAGE_MODEL = "runware:100@1"
    VIDEO_MODEL = "hailuo:v2@1"

    IMAGE_COST = 0.0013
    VIDEO_COST_PER_SECOND = 0.01336

    WIDTH = 1080
    HEIGHT = 1920

    def estimate_cost(self, kind: MediaKind, duration_seconds: Optional[int] = None) -> float:
        if MediaKind(kind) == MediaKind.IMAGE:
            return self.IMAGE_COST
        duration = duration_seconds or self.config.generation.video_duration
        return round(self.VIDEO_COST_PER_SECOND * duration, 5)

    def estimate_upscale_cost(self) -> float:
        return self.IMAGE_COST

    async def _send(self, task: dict) -> dict:
        """Send one task and return its entry from the response ``data`` list."""
        client = await self._get_client()
        response = await client.post(
            self.config.api.runware_api_base,
            json=[task],
            headers={
                "Authorization": f"Bearer {self.config.api.runware_api_key}",
                "Content-Type": "application/json",
            },
        )
        self._check_response(response, "RUNWARE_API_KEY")
        body = response.json()

        errors = body.get("errors") or []
        if errors:
            first = errors[0]
            message = first.get("message") if isinstance(first, dict) else str(first)
            raise GenerationFailed(
                f"Runware error: {message}",
                error_code=(first.get("code") if isinstance(first, dict) else None) or "TASK_FAILED",
                provider=self.name,
            )

        entries = body.get("data") or []
        for entry in entries:
            if entry.get("taskUUID") == task["taskUUID"]:
                return entry
        if entries:
            return entries[0]
        raise GenerationFailed(
            "Runware returned an empty response", error_code="NO_OUTPUT", provider=self.name
        )

    def _new_task(self, task_type: str, **fields) -> dict:
        return {
            "taskType": task_type,
            "taskUUID": str(uuid.uuid4()),
            "includeCost": True,
            **fields,
        }

    async def _transform_image(self, source_url: str, prompt: str) -> GenerationResult:
        task = self._new_task(
            "imageInference",
            positivePrompt=prompt,
            model=self.IMAGE_MODEL,
            seedImage=source_url,
            strength=0.8,
            width=self.WIDTH,
            height=self.HEIGHT,
            numberResults=1,
            outputType="URL",
            outputFormat="PNG",
        )
        logger.info(f"Runware imageInference: prompt={prompt[:50]}...")
        entry = await self._send(task)

        url = entry.get("imageURL")
        if not url:
            raise GenerationFailed(
                "Runware returned no image URL", error_code="NO_OUTPUT", provider=self.name
            )
        return GenerationResult(
            url=url,
            provider=self.name,
            model=self.IMAGE_MODEL,
            cost=self.estimate_cost(MediaKind.IMAGE),
            reported_cost=entry.get("cost"),
            external_task_id=task["taskUUID"],
        )

    async def _generate_video(
        self, image_url: str, prompt: str, duration_seconds: int
    ) -> GenerationResult:
        task = self._new_task(
            "imageToVideo",
            positivePrompt=prompt,
            model=self.VIDEO_MODEL,
            inputImage=image_url,
            duration=duration_seconds,
            width=self.WIDTH,
            height=self.HEIGHT,
            outputType="URL",
        )
        logger.info(f"Runware imageToVideo: duration={duration_seconds}s, prompt={prompt[:50]}...")
        entry = await self._send(task)

        if not entry.get("videoURL"):
            task_uuid = task["taskUUID"]

            async def check(attempt: int) -> Optional[dict]:
                polled = await self._send({"taskType": "getResponse", "taskUUID": task_uuid})
                status = str(polled.get("status", "")).lower()
                if polled.get("videoURL"):
                    return polled
                if status == "error":
                    raise GenerationFailed(
                        f"Runware video failed: {polled.get('message', 'no reason given')}",
                        error_code="TASK_FAILED",
                        provider=self.name,
                    )
                return None

            entry = await self._poll(check, self.config.generation.video_max_polls, task_uuid)

        return GenerationResult(
            url=entry["videoURL"],
            provider=self.name,
            model=self.VIDEO_MODEL,
            cost=self.estimate_cost(MediaKind.VIDEO, duration_seconds),
            reported_cost=entry.get("cost"),
            external_task_id=task["taskUUID"],
        )

    async def _upscale_image(self, image_url: str) -> GenerationResult:
        task = self._new_task(
            "imageUpscale",
            inputImage=image_url,
            upscaleFactor=2,
            outputType="URL",
            outputFormat="PNG",
        )
        entry = await self._send(task)

        url = entry.get("imageURL")
        if not url:
            raise GenerationFailed(
                "Runware returned no upscaled image URL", error_code="NO_OUTPUT", provider=self.name
            )
        return GenerationResult(
            url=url,
            provider=self.name,
            model="upscale-x2",
            cost=self.estimate_upscale_cost(),
            reported_cost=entry.get("cost"),
            external_task_id=task["taskUUID"],
        )
