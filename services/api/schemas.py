"""
Request models and response serializers.

Rows come out of the stores as snake_case dicts; the API speaks camelCase
with ISO-8601 timestamps.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


# Requests


class SignupRequest(BaseModel):
    email: str = ""
    password: str = ""
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class GenerateVariationsRequest(BaseModel):
    count: Any = 2


class FavoriteRequest(BaseModel):
    isFavorite: bool


class BudgetUpdate(BaseModel):
    budget: Any = None


class PreferencesUpdate(BaseModel):
    imageModel: Optional[str] = None
    imageToVideoModel: Optional[str] = None
    prioritizeQuality: Optional[bool] = None
    prioritizeCost: Optional[bool] = None
    prioritizeSpeed: Optional[bool] = None


class EstimateRequest(BaseModel):
    imageModel: str
    videoModel: str
    variations: int = Field(default=3, ge=1, le=10)


class EnhancePromptRequest(BaseModel):
    prompt: Any = None
    type: Any = None


class ApproveRequest(BaseModel):
    approve: bool = True


# Responses


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _id(value) -> Optional[str]:
    return str(value) if value is not None else None


def job_to_dict(job: dict) -> dict:
    return {
        "id": _id(job["id"]),
        "userId": _id(job["user_id"]),
        "originalImageUrl": job["original_image_url"],
        "imagePrompt": job["image_prompt"],
        "videoPrompt": job["video_prompt"],
        "transformedImageUrl": job.get("transformed_image_url"),
        "animatedVideoUrl": job.get("animated_video_url"),
        "finalVideoUrl": job.get("final_video_url"),
        "status": job["status"],
        "progress": job["progress"],
        "currentStage": job["current_stage"],
        "errorMessage": job.get("error_message"),
        "cost": job.get("cost") or 0.0,
        "createdAt": iso(job.get("created_at")),
        "updatedAt": iso(job.get("updated_at")),
        "completedAt": iso(job.get("completed_at")),
    }


def variation_to_dict(variation: dict) -> dict:
    return {
        "id": _id(variation["id"]),
        "jobId": _id(variation["job_id"]),
        "videoUrl": variation["video_url"],
        "thumbnailUrl": variation.get("thumbnail_url"),
        "cost": variation.get("cost") or 0.0,
        "isFavorite": bool(variation.get("is_favorite")),
        "createdAt": iso(variation.get("created_at")),
    }


def user_to_dict(user: dict) -> dict:
    data = {
        "id": _id(user["id"]),
        "email": user["email"],
        "name": user.get("name"),
        "role": user["role"],
        "isApproved": bool(user["is_approved"]),
        "approvedAt": iso(user.get("approved_at")),
        "createdAt": iso(user.get("created_at")),
    }
    if "job_count" in user:
        data["jobCount"] = int(user["job_count"])
    return data


def model_to_dict(model: dict) -> dict:
    return {
        "id": _id(model.get("id")),
        "endpoint": model["endpoint"],
        "name": model["name"],
        "category": model["category"],
        "provider": model["provider"],
        "pricePerUnit": model["price_per_unit"],
        "priceUnit": model["price_unit"],
        "maxResolution": model.get("max_resolution"),
        "hasAudio": bool(model.get("has_audio")),
        "avgSpeed": model.get("avg_speed"),
        "qualityRating": model.get("quality_rating"),
        "description": model.get("description"),
        "features": list(model.get("features") or []),
        "useCases": list(model.get("use_cases") or []),
    }


def preferences_to_dict(prefs: dict) -> dict:
    return {
        "imageModel": prefs["image_model"],
        "imageToVideoModel": prefs["image_to_video_model"],
        "prioritizeQuality": prefs["prioritize_quality"],
        "prioritizeCost": prefs["prioritize_cost"],
        "prioritizeSpeed": prefs["prioritize_speed"],
    }
