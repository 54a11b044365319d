"""
Job Store - PostgreSQL persistence for content jobs and their variations.

The ``content_jobs`` table is also the work queue: workers claim runnable rows
under a time-limited lease (``FOR UPDATE SKIP LOCKED``), so a job abandoned
by a crashed worker becomes claimable again once its lease expires.

Usage:
    store = JobStore(db_pool)

    job = await store.create_job(user_id, key, "anime style", "slow zoom")
    claimed = await store.claim_next("worker-1", lease_seconds=120, max_attempts=3)
"""

import logging
from typing import Optional
from uuid import UUID

import asyncpg

from .state import Checkpoint, STAGE_ORDER

logger = logging.getLogger(__name__)

_STAGES_SQL = "ARRAY[" + ", ".join(f"'{stage.value}'" for stage in STAGE_ORDER) + "]"


def _row(record) -> Optional[dict]:
    return dict(record) if record else None


class JobStore:
    """
    Persists ContentJob / JobVariation rows.

    Progress writes are guarded in SQL: progress never decreases and the stage
    never moves backwards while a job is still running.
    """

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def create_job(
        self,
        user_id: UUID,
        original_image_url: str,
        image_prompt: str,
        video_prompt: str,
    ) -> dict:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO content_jobs (
                    user_id, original_image_url, image_prompt, video_prompt,
                    status, progress, current_stage
                ) VALUES ($1, $2, $3, $4, 'PENDING', 0, 'TRANSFORM')
                RETURNING *
                """,
                user_id,
                original_image_url,
                image_prompt,
                video_prompt,
            )
        logger.info(f"Created job {row['id']} for user {user_id}")
        return dict(row)

    async def get_job(self, job_id: UUID) -> Optional[dict]:
        async with self.db_pool.acquire() as conn:
            return _row(await conn.fetchrow("SELECT * FROM content_jobs WHERE id = $1", job_id))

    async def get_job_for_user(self, job_id: UUID, user_id: UUID) -> Optional[dict]:
        async with self.db_pool.acquire() as conn:
            return _row(
                await conn.fetchrow(
                    "SELECT * FROM content_jobs WHERE id = $1 AND user_id = $2",
                    job_id,
                    user_id,
                )
            )

    async def list_jobs_for_user(self, user_id: UUID, limit: int = 50) -> list[dict]:
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM content_jobs
                WHERE user_id = $1
                ORDER BY created_at DESC
                LIMIT $2
                """,
                user_id,
                limit,
            )
        return [dict(row) for row in rows]

    async def advance(
        self,
        job_id: UUID,
        checkpoint: Checkpoint,
        worker_id: Optional[str] = None,
        transformed_image_url: Optional[str] = None,
        animated_video_url: Optional[str] = None,
    ) -> Optional[dict]:
        """
        Write a PROCESSING checkpoint.

        Returns None when the job is no longer running, the stage would move
        backwards, or (with ``worker_id``) the lease belongs to someone else.
        """
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE content_jobs SET
                    status = $2,
                    current_stage = $3,
                    progress = GREATEST(progress, $4),
                    transformed_image_url = COALESCE($5, transformed_image_url),
                    animated_video_url = COALESCE($6, animated_video_url),
                    updated_at = NOW()
                WHERE id = $1
                  AND status IN ('PENDING', 'PROCESSING')
                  AND array_position({_STAGES_SQL}, current_stage)
                      <= array_position({_STAGES_SQL}, $3::text)
                  AND ($7::text IS NULL OR lease_owner = $7)
                RETURNING *
                """,
                job_id,
                checkpoint.status.value,
                checkpoint.stage.value,
                checkpoint.progress,
                transformed_image_url,
                animated_video_url,
                worker_id,
            )
        return _row(row)

    async def complete_job(
        self,
        job_id: UUID,
        final_video_url: str,
        cost: float,
        worker_id: Optional[str] = None,
    ) -> Optional[dict]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE content_jobs SET
                    status = 'COMPLETED',
                    current_stage = 'COMPLETED',
                    progress = 100,
                    final_video_url = $2,
                    cost = $3,
                    error_message = NULL,
                    completed_at = NOW(),
                    updated_at = NOW(),
                    lease_owner = NULL,
                    lease_expires_at = NULL
                WHERE id = $1
                  AND status = 'PROCESSING'
                  AND ($4::text IS NULL OR lease_owner = $4)
                RETURNING *
                """,
                job_id,
                final_video_url,
                cost,
                worker_id,
            )
        if row:
            logger.info(f"Job {job_id} completed (cost {cost:.4f})")
        return _row(row)

    async def fail_job(
        self,
        job_id: UUID,
        error_message: str,
        worker_id: Optional[str] = None,
    ) -> Optional[dict]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE content_jobs SET
                    status = 'FAILED',
                    progress = 0,
                    error_message = $2,
                    updated_at = NOW(),
                    lease_owner = NULL,
                    lease_expires_at = NULL
                WHERE id = $1
                  AND status IN ('PENDING', 'PROCESSING')
                  AND ($3::text IS NULL OR lease_owner = $3)
                RETURNING *
                """,
                job_id,
                error_message,
                worker_id,
            )
        return _row(row)

    async def delete_job_for_user(
        self, job_id: UUID, user_id: UUID
    ) -> Optional[tuple[dict, list[dict]]]:
        """Delete a job (variations cascade). Returns what was deleted."""
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                job = await conn.fetchrow(
                    "SELECT * FROM content_jobs WHERE id = $1 AND user_id = $2 FOR UPDATE",
                    job_id,
                    user_id,
                )
                if job is None:
                    return None
                variations = await conn.fetch(
                    "SELECT * FROM job_variations WHERE job_id = $1", job_id
                )
                await conn.execute("DELETE FROM content_jobs WHERE id = $1", job_id)
        logger.info(f"Deleted job {job_id} with {len(variations)} variations")
        return dict(job), [dict(v) for v in variations]

    async def total_cost_for_user(self, user_id: UUID) -> float:
        async with self.db_pool.acquire() as conn:
            total = await conn.fetchval(
                "SELECT COALESCE(SUM(cost), 0) FROM content_jobs WHERE user_id = $1",
                user_id,
            )
        return float(total or 0)

    # ------------------------------------------------------------------
    # Variations
    # ------------------------------------------------------------------

    async def create_variations(self, job_id: UUID, variations: list[dict]) -> list[dict]:
        """Insert several variations atomically."""
        created = []
        async with self.db_pool.acquire() as conn:
            async with conn.transaction():
                for variation in variations:
                    row = await conn.fetchrow(
                        """
                        INSERT INTO job_variations (job_id, video_url, thumbnail_url, cost)
                        VALUES ($1, $2, $3, $4)
                        RETURNING *
                        """,
                        job_id,
                        variation["video_url"],
                        variation.get("thumbnail_url"),
                        variation.get("cost", 0.0),
                    )
                    created.append(dict(row))
        return created

    async def list_variations(self, job_id: UUID) -> list[dict]:
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT * FROM job_variations WHERE job_id = $1 ORDER BY created_at DESC",
                job_id,
            )
        return [dict(row) for row in rows]

    async def set_variation_favorite(
        self, job_id: UUID, variation_id: UUID, is_favorite: bool
    ) -> Optional[dict]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE job_variations SET is_favorite = $3
                WHERE id = $2 AND job_id = $1
                RETURNING *
                """,
                job_id,
                variation_id,
                is_favorite,
            )
        return _row(row)

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    async def claim_next(
        self,
        worker_id: str,
        lease_seconds: int,
        max_attempts: int,
    ) -> Optional[dict]:
        """Lease the oldest runnable job (new, or running with an expired lease)."""
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE content_jobs SET
                    attempts = attempts + 1,
                    lease_owner = $1,
                    lease_expires_at = NOW() + make_interval(secs => $2),
                    updated_at = NOW()
                WHERE id = (
                    SELECT id FROM content_jobs
                    WHERE status IN ('PENDING', 'PROCESSING')
                      AND (lease_expires_at IS NULL OR lease_expires_at < NOW())
                      AND attempts < $3
                    ORDER BY created_at
                    FOR UPDATE SKIP LOCKED
                    LIMIT 1
                )
                RETURNING *
                """,
                worker_id,
                float(lease_seconds),
                max_attempts,
            )
        if row:
            logger.info(f"{worker_id} claimed job {row['id']} (attempt {row['attempts']})")
        return _row(row)

    async def extend_lease(self, job_id: UUID, worker_id: str, lease_seconds: int) -> bool:
        async with self.db_pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE content_jobs
                SET lease_expires_at = NOW() + make_interval(secs => $3)
                WHERE id = $1 AND lease_owner = $2 AND status IN ('PENDING', 'PROCESSING')
                """,
                job_id,
                worker_id,
                float(lease_seconds),
            )
        return result.endswith(" 1")

    async def fail_abandoned(self, max_attempts: int) -> list[UUID]:
        """Fail jobs whose lease expired after their last allowed attempt."""
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(
                """
                UPDATE content_jobs SET
                    status = 'FAILED',
                    progress = 0,
                    error_message = 'Processing abandoned after ' || attempts || ' attempts',
                    updated_at = NOW(),
                    lease_owner = NULL,
                    lease_expires_at = NULL
                WHERE status IN ('PENDING', 'PROCESSING')
                  AND attempts >= $1
                  AND (lease_expires_at IS NULL OR lease_expires_at < NOW())
                RETURNING id
                """,
                max_attempts,
            )
        job_ids = [row["id"] for row in rows]
        if job_ids:
            logger.warning(f"Marked {len(job_ids)} abandoned jobs as FAILED")
        return job_ids

    async def count_runnable(self) -> int:
        async with self.db_pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT COUNT(*) FROM content_jobs WHERE status IN ('PENDING', 'PROCESSING')"
            )
