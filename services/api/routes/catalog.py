"""
Model catalog, per-user preferences and cost estimates.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from services.accounts import SessionUser
from services.catalog import CATEGORIES, ModelNotFound, estimate_cost

from ..deps import AppServices, current_user, get_services
from ..schemas import (
    EstimateRequest,
    PreferencesUpdate,
    model_to_dict,
    preferences_to_dict,
)

router = APIRouter(tags=["models"])


def _require_category(model: dict, category: str):
    if model["category"] != category:
        raise HTTPException(
            status_code=400, detail=f"{model['endpoint']} is not in the {category} category"
        )


@router.get("/api/models")
async def list_models(
    category: Optional[str] = None,
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    if category is not None and category not in CATEGORIES:
        raise HTTPException(status_code=400, detail="Invalid category")
    models = await services.catalog.list_models(category)
    return {"models": [model_to_dict(m) for m in models]}


@router.get("/api/models/preferences")
async def get_preferences(
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    prefs = await services.catalog.get_preferences(user.user_id)
    return {"preferences": preferences_to_dict(prefs)}


@router.put("/api/models/preferences")
async def update_preferences(
    body: PreferencesUpdate,
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    for endpoint, category in ((body.imageModel, "image"), (body.imageToVideoModel, "video")):
        if endpoint is None:
            continue
        model = await services.catalog.get_model(endpoint)
        if model is None:
            raise HTTPException(status_code=400, detail=f"Unknown model: {endpoint}")
        _require_category(model, category)

    prefs = await services.catalog.update_preferences(
        user.user_id,
        image_model=body.imageModel,
        image_to_video_model=body.imageToVideoModel,
        prioritize_quality=body.prioritizeQuality,
        prioritize_cost=body.prioritizeCost,
        prioritize_speed=body.prioritizeSpeed,
    )
    return {"preferences": preferences_to_dict(prefs)}


@router.post("/api/models/estimate")
async def estimate(
    body: EstimateRequest,
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    try:
        image_model = await services.catalog.require_model(body.imageModel)
        video_model = await services.catalog.require_model(body.videoModel)
    except ModelNotFound:
        raise HTTPException(status_code=404, detail="Model not found") from None

    _require_category(image_model, "image")
    _require_category(video_model, "video")

    return estimate_cost(
        image_model,
        video_model,
        variations=body.variations,
        duration_seconds=services.config.generation.video_duration,
    )
