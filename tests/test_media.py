"""Media Generator Tests"""

import pytest

from services.generation import GenerationFailed, MediaGenerator

from tests.fakes import FakeObjectStore, FakeProvider


class TestResolveSource:
    @pytest.mark.asyncio
    async def test_external_url_passes_through(self, media):
        assert await media.resolve_source("https://cdn.test/a.png") == "https://cdn.test/a.png"

    @pytest.mark.asyncio
    async def test_private_key_is_inlined(self, media, storage):
        """Test that a key without a public URL is handed over as a data URI."""
        key = await storage.upload(b"\x89PNG", "selfie.png")

        resolved = await media.resolve_source(key)

        assert resolved.startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_public_key_uses_storage_url(self, provider, config):
        storage = FakeObjectStore(public_url="https://media.test")
        key = await storage.upload(b"jpeg", "selfie.jpg")
        media = MediaGenerator(provider, storage=storage, config=config)

        assert await media.resolve_source(key) == f"https://media.test/{key}"

    @pytest.mark.asyncio
    async def test_missing_key(self, media):
        with pytest.raises(GenerationFailed) as exc_info:
            await media.resolve_source("uploads/gone.jpg")
        assert exc_info.value.error_code == "SOURCE_MISSING"

    @pytest.mark.asyncio
    async def test_key_without_storage(self, provider, config):
        media = MediaGenerator(provider, storage=None, config=config)
        with pytest.raises(GenerationFailed) as exc_info:
            await media.resolve_source("uploads/a.jpg")
        assert exc_info.value.error_code == "UNRESOLVABLE_SOURCE"


class TestStages:
    @pytest.mark.asyncio
    async def test_transform_without_upscale(self, media, provider):
        result = await media.generate_transformed_image("https://cdn.test/a.png", "anime")

        assert result.url == "https://cdn.test/image-1.png"
        assert result.cost == 0.025
        assert provider.upscale_calls == []

    @pytest.mark.asyncio
    async def test_transform_with_upscale(self, config, storage):
        """Test that upscaling feeds the transform and adds its cost."""
        config.generation.enable_upscale = True
        provider = FakeProvider(config)
        media = MediaGenerator(provider, storage=storage, config=config)

        result = await media.generate_transformed_image("https://cdn.test/a.png", "anime")

        assert provider.upscale_calls == ["https://cdn.test/a.png"]
        assert provider.image_calls == [("https://cdn.test/a.png?upscaled=1", "anime")]
        assert result.cost == pytest.approx(0.035)

    @pytest.mark.asyncio
    async def test_animate_uses_configured_duration(self, media, provider, config):
        config.generation.video_duration = 7

        result = await media.generate_animated_video("https://cdn.test/t.png", "zoom")

        assert result.url == "https://cdn.test/video-1.mp4"
        assert provider.video_calls == [("https://cdn.test/t.png", "zoom", 7)]

    @pytest.mark.asyncio
    async def test_format_is_passthrough(self, media):
        assert await media.format_for_instagram("https://cdn.test/v.mp4") == "https://cdn.test/v.mp4"

    def test_estimate_job_cost(self, media):
        assert media.estimate_job_cost() == pytest.approx(0.075)

    def test_estimate_includes_upscale(self, config, storage):
        config.generation.enable_upscale = True
        media = MediaGenerator(FakeProvider(config), storage=storage, config=config)

        assert media.estimate_image_cost() == pytest.approx(0.035)
        assert media.estimate_job_cost() == pytest.approx(0.085)
