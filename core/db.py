"""
Database connection helpers.

Usage:
    from core.db import create_pool, apply_schema

    pool = await create_pool()
    await apply_schema(pool)
"""

import logging
from typing import Optional

import asyncpg
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import Config, get_config
from .schema import SCHEMA_STATEMENTS

logger = logging.getLogger(__name__)


@retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, min=1, max=15),
    retry=retry_if_exception_type((OSError, asyncpg.CannotConnectNowError)),
    reraise=True,
)
async def create_pool(config: Optional[Config] = None) -> asyncpg.Pool:
    """Create the asyncpg pool, retrying while the database is starting up."""
    config = config or get_config()
    if not config.database.url:
        raise ValueError("DATABASE_URL not configured")

    pool = await asyncpg.create_pool(
        config.database.url,
        min_size=config.database.pool_min_size,
        max_size=config.database.pool_max_size,
    )
    logger.info("Database pool ready")
    return pool


async def apply_schema(pool: asyncpg.Pool):
    """Create tables and indexes that do not exist yet."""
    async with pool.acquire() as conn:
        async with conn.transaction():
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
    logger.info(f"Schema applied ({len(SCHEMA_STATEMENTS)} statements)")
