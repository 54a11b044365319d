"""Prompt Enhancer Tests"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from core.config import APIConfig
from services.prompts import PromptEnhancementError, PromptEnhancer
from services.prompts.enhancer import IMAGE_SYSTEM_PROMPT, VIDEO_SYSTEM_PROMPT


def gemini_client(text):
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=MagicMock(text=text))
    return client


@pytest.fixture
def api_config():
    return APIConfig(google_api_key="g-key", prompt_model="gemini-test")


class TestPromptEnhancer:
    @pytest.mark.asyncio
    async def test_enhances_image_prompt(self, api_config):
        client = gemini_client("  A cat floating among nebulae, cinematic lighting  ")
        enhancer = PromptEnhancer(api_config, client=client)

        enhanced = await enhancer.enhance("cat in space", "image")

        assert enhanced == "A cat floating among nebulae, cinematic lighting"
        kwargs = client.aio.models.generate_content.await_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["contents"] == "Original prompt: cat in space"
        assert kwargs["config"].system_instruction == IMAGE_SYSTEM_PROMPT
        assert kwargs["config"].max_output_tokens == 300

    @pytest.mark.asyncio
    async def test_video_prompt_uses_video_instructions(self, api_config):
        client = gemini_client("Slow dolly in")
        await PromptEnhancer(api_config, client=client).enhance("zoom", "video")

        config = client.aio.models.generate_content.await_args.kwargs["config"]
        assert config.system_instruction == VIDEO_SYSTEM_PROMPT

    @pytest.mark.asyncio
    async def test_empty_answer_keeps_original(self, api_config):
        enhancer = PromptEnhancer(api_config, client=gemini_client(None))
        assert await enhancer.enhance("cat in space", "image") == "cat in space"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prompt,prompt_type", [("", "image"), ("cat", "audio"), (None, "video"), (42, "image")])
    async def test_bad_input(self, api_config, prompt, prompt_type):
        enhancer = PromptEnhancer(api_config, client=gemini_client("x"))

        with pytest.raises(PromptEnhancementError, match="Missing prompt or type") as exc_info:
            await enhancer.enhance(prompt, prompt_type)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        enhancer = PromptEnhancer(APIConfig(google_api_key=""))

        with pytest.raises(PromptEnhancementError) as exc_info:
            await enhancer.enhance("cat", "image")
        assert exc_info.value.status_code == 503
