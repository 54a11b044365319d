"""
FAL.ai provider (queue API).

Submit:  POST {base}/{model}                  -> request_id (or a direct result)
Status:  GET  {base}/{model}/requests/{id}/status
Result:  GET  {base}/{model}/requests/{id}
"""

import logging
from typing import Optional

from .base import GenerationFailed, GenerationProvider, GenerationResult, MediaKind

logger = logging.getLogger(__name__)


class FalProvider(GenerationProvider):
    """FLUX image-to-image and Luma Dream Machine image-to-video via FAL."""

    name = "fal"

    TRANSFORM_MODEL = "fal-ai/flux/dev/image-to-image"
    VIDEO_MODEL = "fal-ai/luma-dream-machine/image-to-video"
    UPSCALE_MODEL = "fal-ai/flux-pro/v1.1/image-to-image"
    UPSCALE_PROMPT = "high quality, detailed, sharp, professional photography"

    IMAGE_COST = 0.025
    VIDEO_COST = 0.05

    def estimate_cost(self, kind: MediaKind, duration_seconds: Optional[int] = None) -> float:
        return self.IMAGE_COST if MediaKind(kind) == MediaKind.IMAGE else self.VIDEO_COST

    def estimate_upscale_cost(self) -> float:
        return self.IMAGE_COST

    def _headers(self) -> dict:
        return {
            "Authorization": f"Key {self.config.api.fal_api_key}",
            "Content-Type": "application/json",
        }

    async def _run(self, model: str, payload: dict, max_polls: int) -> tuple[dict, Optional[str]]:
        """Submit to the queue and wait for the result payload."""
        client = await self._get_client()
        base = self.config.api.fal_api_base.rstrip("/")

        logger.info(f"FAL submit: model={model}, prompt={str(payload.get('prompt', ''))[:50]}...")
        response = await client.post(f"{base}/{model}", json=payload, headers=self._headers())
        self._check_response(response, "FAL_API_KEY")
        data = response.json()

        request_id = data.get("request_id")
        if not request_id:
            # Synchronous endpoint answered with the result directly
            return data, None

        status_url = data.get("status_url") or f"{base}/{model}/requests/{request_id}/status"
        response_url = data.get("response_url") or f"{base}/{model}/requests/{request_id}"

        async def check(attempt: int) -> Optional[dict]:
            status_response = await client.get(status_url, headers=self._headers())
            self._check_response(status_response, "FAL_API_KEY")
            status_data = status_response.json()
            status = str(status_data.get("status", "")).upper()

            if status == "COMPLETED":
                result_response = await client.get(response_url, headers=self._headers())
                self._check_response(result_response, "FAL_API_KEY")
                return result_response.json()

            if status in ("FAILED", "ERROR"):
                message = status_data.get("error") or "Generation failed (no reason given)"
                raise GenerationFailed(
                    f"FAL task failed: {message}", error_code="TASK_FAILED", provider=self.name
                )

            if attempt % 6 == 0:
                logger.info(f"FAL {request_id}: {status.lower() or 'unknown'}")
            return None

        result = await self._poll(check, max_polls, request_id)
        return result, request_id

    def _missing_output(self, what: str) -> GenerationFailed:
        return GenerationFailed(
            f"FAL returned no {what} URL", error_code="NO_OUTPUT", provider=self.name
        )

    async def _transform_image(self, source_url: str, prompt: str) -> GenerationResult:
        payload = {
            "image_url": source_url,
            "prompt": prompt,
            "strength": 0.8,
            "num_inference_steps": 28,
            "guidance_scale": 3.5,
            "num_images": 1,
            "enable_safety_checker": True,
        }
        data, request_id = await self._run(
            self.TRANSFORM_MODEL, payload, self.config.generation.image_max_polls
        )

        images = data.get("images") or []
        url = images[0].get("url") if images else None
        if not url:
            raise self._missing_output("image")

        return GenerationResult(
            url=url,
            provider=self.name,
            model=self.TRANSFORM_MODEL,
            cost=self.estimate_cost(MediaKind.IMAGE),
            external_task_id=request_id,
        )

    async def _generate_video(
        self, image_url: str, prompt: str, duration_seconds: int
    ) -> GenerationResult:
        payload = {
            "image_url": image_url,
            "prompt": prompt,
            "aspect_ratio": "9:16",
            "loop": False,
        }
        data, request_id = await self._run(
            self.VIDEO_MODEL, payload, self.config.generation.video_max_polls
        )

        url = (data.get("video") or {}).get("url") or data.get("video_url")
        if not url:
            raise self._missing_output("video")

        return GenerationResult(
            url=url,
            provider=self.name,
            model=self.VIDEO_MODEL,
            cost=self.estimate_cost(MediaKind.VIDEO, duration_seconds),
            external_task_id=request_id,
        )

    async def _upscale_image(self, image_url: str) -> GenerationResult:
        payload = {
            "image_url": image_url,
            "prompt": self.UPSCALE_PROMPT,
            "strength": 0.5,
            "num_inference_steps": 28,
            "guidance_scale": 4.0,
            "num_images": 1,
        }
        data, request_id = await self._run(
            self.UPSCALE_MODEL, payload, self.config.generation.image_max_polls
        )

        images = data.get("images") or []
        url = images[0].get("url") if images else None
        if not url:
            raise self._missing_output("upscaled image")

        return GenerationResult(
            url=url,
            provider=self.name,
            model=self.UPSCALE_MODEL,
            cost=self.estimate_upscale_cost(),
            external_task_id=request_id,
        )
