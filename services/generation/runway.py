"""
Runway provider (task API).

Every generation creates a task that is polled until it SUCCEEDS or FAILS:

    POST /v1/text_to_image   -> {"id": ...}
    POST /v1/image_to_video  -> {"id": ...}
    GET  /v1/tasks/{id}      -> {"status": "PENDING|RUNNING|THROTTLED|SUCCEEDED|FAILED", "output": [...]}
"""

import logging
from typing import Any, Optional

from .base import GenerationFailed, GenerationProvider, GenerationResult, MediaKind

logger = logging.getLogger(__name__)


def extract_output_url(output: Any) -> Optional[str]:
    """Runway returns outputs as a string, a list of strings, or url objects."""
    if isinstance(output, str):
        return output
    if isinstance(output, list) and output:
        return extract_output_url(output[0])
    if isinstance(output, dict):
        return output.get("url") or output.get("uri")
    return None


class RunwayProvider(GenerationProvider):
    """Gen-4 image and Gen-4 Turbo video via the Runway developer API."""

    name = "runway"

    IMAGE_MODEL = "gen4_image_turbo"
    VIDEO_MODEL = "gen4_turbo"
    IMAGE_RATIO = "1080:1920"
    VIDEO_RATIO = "720:1280"

    IMAGE_COST = 0.005
    VIDEO_COST_PER_SECOND = 0.01

    def estimate_cost(self, kind: MediaKind, duration_seconds: Optional[int] = None) -> float:
        if MediaKind(kind) == MediaKind.IMAGE:
            return self.IMAGE_COST
        duration = duration_seconds or self.config.generation.video_duration
        return round(self.VIDEO_COST_PER_SECOND * duration, 5)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.config.api.runway_api_key}",
            "X-Runway-Version": self.config.api.runway_api_version,
            "Content-Type": "application/json",
        }

    async def _create_task(self, path: str, payload: dict) -> str:
        client = await self._get_client()
        base = self.config.api.runway_api_base.rstrip("/")
        response = await client.post(f"{base}{path}", json=payload, headers=self._headers())
        self._check_response(response, "RUNWAY_API_KEY")

        task_id = response.json().get("id")
        if not task_id:
            raise GenerationFailed(
                "No task id in Runway response", error_code="NO_TASK_ID", provider=self.name
            )
        logger.info(f"Runway task created: {task_id} ({path})")
        return task_id

    async def _wait_for_task(self, task_id: str, max_polls: int) -> str:
        client = await self._get_client()
        base = self.config.api.runway_api_base.rstrip("/")

        async def check(attempt: int) -> Optional[str]:
            response = await client.get(f"{base}/v1/tasks/{task_id}", headers=self._headers())
            self._check_response(response, "RUNWAY_API_KEY")
            task = response.json()
            status = str(task.get("status", "")).upper()

            if status == "SUCCEEDED":
                url = extract_output_url(task.get("output"))
                if not url:
                    raise GenerationFailed(
                        "Runway task succeeded without output",
                        error_code="NO_OUTPUT",
                        provider=self.name,
                    )
                return url

            if status in ("FAILED", "CANCELLED"):
                reason = task.get("failure") or "no reason given"
                raise GenerationFailed(
                    f"Runway task failed: {reason}",
                    error_code=task.get("failureCode") or "TASK_FAILED",
                    provider=self.name,
                )
            return None

        return await self._poll(check, max_polls, task_id)

    async def _transform_image(self, source_url: str, prompt: str) -> GenerationResult:
        task_id = await self._create_task(
            "/v1/text_to_image",
            {
                "promptText": prompt,
                "ratio": self.IMAGE_RATIO,
                "model": self.IMAGE_MODEL,
                "referenceImages": [{"uri": source_url, "tag": "source"}],
            },
        )
        url = await self._wait_for_task(task_id, self.config.generation.image_max_polls)
        return GenerationResult(
            url=url,
            provider=self.name,
            model=self.IMAGE_MODEL,
            cost=self.estimate_cost(MediaKind.IMAGE),
            external_task_id=task_id,
        )

    async def _generate_video(
        self, image_url: str, prompt: str, duration_seconds: int
    ) -> GenerationResult:
        # gen4_turbo only renders 5s or 10s clips
        duration = 5 if duration_seconds <= 7 else 10
        task_id = await self._create_task(
            "/v1/image_to_video",
            {
                "promptImage": image_url,
                "promptText": prompt,
                "model": self.VIDEO_MODEL,
                "duration": duration,
                "ratio": self.VIDEO_RATIO,
            },
        )
        url = await self._wait_for_task(task_id, self.config.generation.video_max_polls)
        return GenerationResult(
            url=url,
            provider=self.name,
            model=self.VIDEO_MODEL,
            cost=self.estimate_cost(MediaKind.VIDEO, duration),
            external_task_id=task_id,
        )
