"""
Model catalog and per-user model preferences.

Usage:
    catalog = CatalogStore(db_pool)
    await catalog.seed_catalog()
    videos = await catalog.list_models("video")
    prefs = await catalog.get_preferences(user_id)
"""

import logging
from typing import Optional
from uuid import UUID

import asyncpg

from .models import DEFAULT_IMAGE_MODEL, DEFAULT_VIDEO_MODEL, SEED_MODELS, CatalogModel

logger = logging.getLogger(__name__)

CATEGORIES = ("image", "video")


class ModelNotFound(LookupError):
    pass


class CatalogStore:
    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    async def seed_catalog(self, models: Optional[list[CatalogModel]] = None) -> int:
        """Upsert the catalog by endpoint. Returns the number of rows written."""
        models = SEED_MODELS if models is None else models
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                for model in models:
                    await conn.execute(
                        """
                        INSERT INTO model_catalog (
                            endpoint, name, category, provider, price_per_unit, price_unit,
                            max_resolution, has_audio, avg_speed, quality_rating,
                            description, features, use_cases, is_active
                        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
                        ON CONFLICT (endpoint) DO UPDATE SET
                            name = EXCLUDED.name,
                            category = EXCLUDED.category,
                            provider = EXCLUDED.provider,
                            price_per_unit = EXCLUDED.price_per_unit,
                            price_unit = EXCLUDED.price_unit,
                            max_resolution = EXCLUDED.max_resolution,
                            has_audio = EXCLUDED.has_audio,
                            avg_speed = EXCLUDED.avg_speed,
                            quality_rating = EXCLUDED.quality_rating,
                            description = EXCLUDED.description,
                            features = EXCLUDED.features,
                            use_cases = EXCLUDED.use_cases,
                            is_active = EXCLUDED.is_active,
                            updated_at = NOW()
                        """,
                        model.endpoint,
                        model.name,
                        model.category,
                        model.provider,
                        model.price_per_unit,
                        model.price_unit,
                        model.max_resolution,
                        model.has_audio,
                        model.avg_speed,
                        model.quality_rating,
                        model.description,
                        model.features,
                        model.use_cases,
                        model.is_active,
                    )
        logger.info(f"Seeded {len(models)} catalog models")
        return len(models)

    async def list_models(self, category: Optional[str] = None) -> list[dict]:
        """Active models, best quality first, then cheapest."""
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM model_catalog
                WHERE is_active AND ($1::text IS NULL OR category = $1)
                ORDER BY quality_rating DESC, price_per_unit ASC
                """,
                category,
            )
        return [dict(row) for row in rows]

    async def get_model(self, endpoint: str) -> Optional[dict]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM model_catalog WHERE endpoint = $1", endpoint
            )
        return dict(row) if row else None

    async def require_model(self, endpoint: str) -> dict:
        model = await self.get_model(endpoint)
        if model is None:
            raise ModelNotFound(endpoint)
        return model

    async def get_preferences(self, user_id: UUID) -> dict:
        """Return the user's preferences, creating the defaults on first read."""
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO model_preferences (user_id, image_model, image_to_video_model)
                VALUES ($1, $2, $3)
                ON CONFLICT (user_id) DO UPDATE SET user_id = EXCLUDED.user_id
                RETURNING *
                """,
                user_id,
                DEFAULT_IMAGE_MODEL,
                DEFAULT_VIDEO_MODEL,
            )
        return dict(row)

    async def update_preferences(
        self,
        user_id: UUID,
        image_model: Optional[str] = None,
        image_to_video_model: Optional[str] = None,
        prioritize_quality: Optional[bool] = None,
        prioritize_cost: Optional[bool] = None,
        prioritize_speed: Optional[bool] = None,
    ) -> dict:
        """Upsert preferences; fields left as None keep their current value."""
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO model_preferences (
                    user_id, image_model, image_to_video_model,
                    prioritize_quality, prioritize_cost, prioritize_speed
                ) VALUES (
                    $1, COALESCE($2, $7), COALESCE($3, $8),
                    COALESCE($4, TRUE), COALESCE($5, FALSE), COALESCE($6, FALSE)
                )
                ON CONFLICT (user_id) DO UPDATE SET
                    image_model = COALESCE($2, model_preferences.image_model),
                    image_to_video_model = COALESCE($3, model_preferences.image_to_video_model),
                    prioritize_quality = COALESCE($4, model_preferences.prioritize_quality),
                    prioritize_cost = COALESCE($5, model_preferences.prioritize_cost),
                    prioritize_speed = COALESCE($6, model_preferences.prioritize_speed),
                    updated_at = NOW()
                RETURNING *
                """,
                user_id,
                image_model,
                image_to_video_model,
                prioritize_quality,
                prioritize_cost,
                prioritize_speed,
                DEFAULT_IMAGE_MODEL,
                DEFAULT_VIDEO_MODEL,
            )
        return dict(row)
