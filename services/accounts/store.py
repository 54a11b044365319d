"""
User accounts persistence.

Usage:
    users = UserStore(db_pool)
    user = await users.create_user("ana@example.com", password_hash, name="Ana")
    await users.set_approval(user["id"], approved=True, approved_by=admin_id)
"""

import logging
from typing import Optional
from uuid import UUID

import asyncpg

logger = logging.getLogger(__name__)


class EmailAlreadyRegistered(Exception):
    pass


class UserStore:
    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    async def create_user(
        self,
        email: str,
        password_hash: str,
        name: Optional[str] = None,
        role: str = "USER",
        is_approved: bool = False,
    ) -> dict:
        """
        Raises:
            EmailAlreadyRegistered: If the email is taken
        """
        async with self.db_pool.acquire() as conn:
            try:
                row = await conn.fetchrow(
                    """
                    INSERT INTO users (email, name, password_hash, role, is_approved, approved_at)
                    VALUES ($1, $2, $3, $4, $5, CASE WHEN $5 THEN NOW() END)
                    RETURNING *
                    """,
                    email.lower(),
                    name,
                    password_hash,
                    role,
                    is_approved,
                )
            except asyncpg.UniqueViolationError:
                raise EmailAlreadyRegistered(email) from None
        logger.info(f"Created user {row['id']} ({role})")
        return dict(row)

    async def get_user(self, user_id: UUID) -> Optional[dict]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE id = $1", user_id)
        return dict(row) if row else None

    async def get_user_by_email(self, email: str) -> Optional[dict]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE email = $1", email.lower())
        return dict(row) if row else None

    async def list_users_with_job_counts(self) -> list[dict]:
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT u.*, COUNT(j.id) AS job_count
                FROM users u
                LEFT JOIN content_jobs j ON j.user_id = u.id
                GROUP BY u.id
                ORDER BY u.created_at DESC
                """
            )
        return [dict(row) for row in rows]

    async def set_approval(
        self, user_id: UUID, approved: bool, approved_by: Optional[UUID]
    ) -> Optional[dict]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE users SET
                    is_approved = $2,
                    approved_at = CASE WHEN $2 THEN NOW() END,
                    approved_by = CASE WHEN $2 THEN $3::uuid END,
                    updated_at = NOW()
                WHERE id = $1
                RETURNING *
                """,
                user_id,
                approved,
                approved_by,
            )
        return dict(row) if row else None

    async def set_role(self, email: str, role: str) -> Optional[dict]:
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE users SET
                    role = $2,
                    is_approved = CASE WHEN $2 = 'ADMIN' THEN TRUE ELSE is_approved END,
                    updated_at = NOW()
                WHERE email = $1
                RETURNING *
                """,
                email.lower(),
                role,
            )
        return dict(row) if row else None

    async def set_password(self, email: str, password_hash: str) -> bool:
        async with self.db_pool.acquire() as conn:
            result = await conn.execute(
                "UPDATE users SET password_hash = $2, updated_at = NOW() WHERE email = $1",
                email.lower(),
                password_hash,
            )
        return result.endswith(" 1")

    async def set_manual_budget(self, user_id: UUID, budget: Optional[float]) -> None:
        async with self.db_pool.acquire() as conn:
            await conn.execute(
                "UPDATE users SET manual_budget = $2, updated_at = NOW() WHERE id = $1",
                user_id,
                budget,
            )

    async def delete_user(self, user_id: UUID) -> bool:
        """Delete a user; jobs, variations and preferences cascade."""
        async with self.db_pool.acquire() as conn:
            result = await conn.execute("DELETE FROM users WHERE id = $1", user_id)
        return result.endswith(" 1")
