"""
Prompt Enhancer - rewrites a short user prompt into a richer generation prompt
with Gemini.

Usage:
    enhancer = PromptEnhancer(config.api)
    better = await enhancer.enhance("cat in space", "image")
"""

import logging
from typing import Optional

from google import genai
from google.genai import types

from core.config import APIConfig

logger = logging.getLogger(__name__)

PROMPT_TYPES = ("image", "video")

IMAGE_SYSTEM_PROMPT = """You are an expert AI image generation prompt engineer. You enhance user prompts so they produce striking Instagram content.

Turn the user's short prompt into a detailed, vivid prompt. Cover:
- Visual style and aesthetics
- Lighting and atmosphere
- Colors and mood
- Composition
- Quality keywords (8k, ultra detailed, professional)

Keep it concise. Return ONLY the enhanced prompt text, no explanations."""

VIDEO_SYSTEM_PROMPT = """You are an expert AI video generation prompt engineer. You enhance user prompts so they produce engaging Instagram Reels.

Turn the user's short prompt into a detailed animation prompt. Cover:
- Motion and animation style
- Camera movements
- Transitions and effects
- Mood and pacing
- A short vertical clip of a few seconds

Keep it concise. Return ONLY the enhanced prompt text, no explanations."""


class PromptEnhancementError(Exception):
    """Raised for unusable input or an unavailable model."""

    def __init__(self, message: str, status_code: int = 400):
        self.status_code = status_code
        super().__init__(message)


class PromptEnhancer:
    def __init__(self, config: APIConfig, client: Optional[genai.Client] = None):
        self.config = config
        self._client = client

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self.config.google_api_key:
                raise PromptEnhancementError(
                    "Prompt enhancement is not configured (GOOGLE_API_KEY missing)",
                    status_code=503,
                )
            self._client = genai.Client(api_key=self.config.google_api_key)
        return self._client

    async def enhance(self, prompt, prompt_type) -> str:
        """
        Raises:
            PromptEnhancementError: 400 for a bad prompt/type, 503 without an API key
        """
        if not isinstance(prompt, str) or not prompt.strip():
            raise PromptEnhancementError("Missing prompt or type")
        if prompt_type not in PROMPT_TYPES:
            raise PromptEnhancementError("Missing prompt or type")

        system_prompt = IMAGE_SYSTEM_PROMPT if prompt_type == "image" else VIDEO_SYSTEM_PROMPT
        client = self._get_client()

        response = await client.aio.models.generate_content(
            model=self.config.prompt_model,
            contents=f"Original prompt: {prompt.strip()}",
            config=types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=0.7,
                max_output_tokens=300,
            ),
        )

        enhanced = (response.text or "").strip()
        logger.info(f"Enhanced {prompt_type} prompt ({len(prompt)} -> {len(enhanced)} chars)")
        return enhanced or prompt
