"""
Seed data for the AI model catalog, and cost estimation over it.

Prices are list prices in EUR per ``price_unit``:
  megapixel  - one image output
  video      - one generated clip, whatever its length
  second     - per second of generated video
"""

from dataclasses import asdict, dataclass, field
from typing import Optional

DEFAULT_IMAGE_MODEL = "fal-ai/flux/dev/image-to-image"
DEFAULT_VIDEO_MODEL = "fal-ai/luma-dream-machine/image-to-video"


@dataclass
class CatalogModel:
    endpoint: str
    name: str
    category: str
    provider: str
    price_per_unit: float
    price_unit: str
    max_resolution: Optional[str] = None
    has_audio: bool = False
    avg_speed: Optional[float] = None
    quality_rating: int = 3
    description: str = ""
    features: list[str] = field(default_factory=list)
    use_cases: list[str] = field(default_factory=list)
    is_active: bool = True

    def to_dict(self) -> dict:
        return asdict(self)


SEED_MODELS = [
    # Image-to-image
    CatalogModel(
        endpoint="fal-ai/flux/dev/image-to-image",
        name="FLUX.1 [dev] Image-to-Image",
        category="image",
        provider="fal-ai",
        price_per_unit=0.03,
        price_unit="megapixel",
        max_resolution="2048x2048",
        avg_speed=8,
        quality_rating=5,
        description="High quality image transformation with strong prompt adherence",
        features=["Excellent detail", "Faithful to the prompt", "Reliable styles"],
        use_cases=["Artistic transformation", "Style transfer", "Photo retouching"],
    ),
    CatalogModel(
        endpoint="fal-ai/flux/schnell/image-to-image",
        name="FLUX.1 [schnell] Image-to-Image",
        category="image",
        provider="fal-ai",
        price_per_unit=0.015,
        price_unit="megapixel",
        max_resolution="2048x2048",
        avg_speed=4,
        quality_rating=4,
        description="Fast, cheaper variant of FLUX for quick iterations",
        features=["Very fast", "Low cost", "Good quality"],
        use_cases=["Rapid prototyping", "Bulk edits", "Drafts"],
    ),
    CatalogModel(
        endpoint="fal-ai/qwen-image",
        name="Qwen Image Edit",
        category="image",
        provider="qwen",
        price_per_unit=0.02,
        price_unit="megapixel",
        max_resolution="2048x2048",
        avg_speed=6,
        quality_rating=4,
        description="Instruction-driven image editing",
        features=["Precise edits", "Understands instructions", "Renders text"],
        use_cases=["Targeted edits", "Adding text", "Object changes"],
    ),
    # Image-to-video
    CatalogModel(
        endpoint="fal-ai/luma-dream-machine/image-to-video",
        name="Luma Dream Machine",
        category="video",
        provider="luma",
        price_per_unit=0.50,
        price_unit="video",
        max_resolution="1920x1920",
        avg_speed=25,
        quality_rating=5,
        description="Cinematic motion with consistent subjects",
        features=["Smooth motion", "Cinematic look", "Stable subjects"],
        use_cases=["Reels", "Product shots", "Storytelling"],
    ),
    CatalogModel(
        endpoint="fal-ai/wan/v2.5/image-to-video",
        name="Wan 2.5",
        category="video",
        provider="bytedance",
        price_per_unit=0.25,
        price_unit="video",
        max_resolution="1080p",
        has_audio=True,
        avg_speed=20,
        quality_rating=4,
        description="Affordable 1080p video with generated audio",
        features=["Native audio", "1080p output", "Good value"],
        use_cases=["Social clips", "Videos with sound", "Everyday content"],
    ),
    CatalogModel(
        endpoint="fal-ai/kling/v2.5/turbo/pro/image-to-video",
        name="Kling 2.5 Turbo Pro",
        category="video",
        provider="kuaishou",
        price_per_unit=0.30,
        price_unit="video",
        max_resolution="1080p",
        avg_speed=18,
        quality_rating=5,
        description="Fast professional-grade animation with realistic physics",
        features=["Realistic physics", "Fast turnaround", "Professional quality"],
        use_cases=["Fashion", "Portraits", "Commercial content"],
    ),
    CatalogModel(
        endpoint="fal-ai/ltx-2/fast/image-to-video",
        name="LTX-2 Fast",
        category="video",
        provider="fal-ai",
        price_per_unit=0.18,
        price_unit="video",
        max_resolution="720p",
        avg_speed=12,
        quality_rating=3,
        description="The cheapest and quickest option for previews",
        features=["Lowest cost", "Very fast", "Good enough for drafts"],
        use_cases=["Previews", "Testing prompts", "High volume"],
    ),
    CatalogModel(
        endpoint="fal-ai/bytedance/seedance/v1/pro/image-to-video",
        name="Seedance 1.0 Pro",
        category="video",
        provider="bytedance",
        price_per_unit=0.62,
        price_unit="video",
        max_resolution="1080p",
        avg_speed=30,
        quality_rating=5,
        description="Premium motion quality with multi-shot coherence",
        features=["Top motion quality", "Coherent shots", "Fine detail"],
        use_cases=["Premium campaigns", "Hero content", "Showcases"],
    ),
    CatalogModel(
        endpoint="fal-ai/veo3/image-to-video",
        name="Veo 3.1 (Google)",
        category="video",
        provider="google",
        price_per_unit=0.30,
        price_unit="second",
        max_resolution="1080p",
        has_audio=True,
        avg_speed=35,
        quality_rating=5,
        description="State-of-the-art video with synchronized audio, billed per second",
        features=["Synchronized audio", "Best realism", "Long prompts"],
        use_cases=["High-end ads", "Narrative clips", "Videos with dialogue"],
    ),
]


def unit_cost(model: dict, duration_seconds: int) -> float:
    """Cost of one output from a catalog row."""
    price = float(model["price_per_unit"])
    if model["price_unit"] == "second":
        return price * duration_seconds
    return price


def estimate_cost(
    image_model: dict,
    video_model: dict,
    variations: int = 3,
    duration_seconds: int = 5,
) -> dict:
    """
    Price one transformed image plus ``variations`` videos.

    Returns the total together with a per-model breakdown.
    """
    image_cost = unit_cost(image_model, duration_seconds)
    video_cost = unit_cost(video_model, duration_seconds) * variations
    return {
        "totalCost": round(image_cost + video_cost, 4),
        "breakdown": {
            "image": {
                "model": image_model["name"],
                "endpoint": image_model["endpoint"],
                "cost": round(image_cost, 4),
            },
            "video": {
                "model": video_model["name"],
                "endpoint": video_model["endpoint"],
                "cost": round(video_cost, 4),
                "variations": variations,
                "costPerVideo": round(unit_cost(video_model, duration_seconds), 4),
            },
        },
    }
