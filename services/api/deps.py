"""
Service container and FastAPI dependencies (auth, admin gate, rate limits).
"""

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

import asyncpg
from fastapi import Depends, HTTPException, Request

from core.config import Config
from core.rate_limiter import (
    InMemoryRateLimiter,
    PostgresRateLimiter,
    RateLimiter,
    TokenBucketRule,
)
from services.accounts import (
    PENDING_APPROVAL_MESSAGE,
    AccountService,
    InvalidSession,
    SessionUser,
    TokenService,
    UserStore,
)
from services.catalog import CatalogStore
from services.generation import MediaGenerator, get_provider
from services.jobs import JobPipeline, JobQueue, JobStore, JobWorker, VariationService
from services.prompts import PromptEnhancer
from services.storage import LocalObjectStore, ObjectStore

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."


@dataclass
class AppServices:
    """Everything the routes need, built once per process."""
    config: Config
    users: UserStore
    jobs: JobStore
    catalog: CatalogStore
    storage: ObjectStore
    media: MediaGenerator
    tokens: TokenService
    accounts: AccountService
    variations: VariationService
    enhancer: PromptEnhancer
    rate_limiter: RateLimiter
    queue: JobQueue
    worker: Optional[JobWorker] = None
    db_pool: Optional[asyncpg.Pool] = None


def build_services(config: Config, db_pool: asyncpg.Pool) -> AppServices:
    """Wire the production services around one database pool."""
    storage = LocalObjectStore(config)
    media = MediaGenerator(get_provider(config=config), storage=storage, config=config)
    jobs = JobStore(db_pool)
    users = UserStore(db_pool)
    tokens = TokenService(config.auth)
    queue = JobQueue()

    if config.rate_limit.backend == "memory":
        rate_limiter: RateLimiter = InMemoryRateLimiter()
    else:
        rate_limiter = PostgresRateLimiter(db_pool)

    worker = None
    if config.worker.embedded:
        worker = JobWorker(jobs, JobPipeline(jobs, media, config), queue, config)

    return AppServices(
        config=config,
        users=users,
        jobs=jobs,
        catalog=CatalogStore(db_pool),
        storage=storage,
        media=media,
        tokens=tokens,
        accounts=AccountService(users, tokens),
        variations=VariationService(jobs, media, config),
        enhancer=PromptEnhancer(config.api),
        rate_limiter=rate_limiter,
        queue=queue,
        worker=worker,
        db_pool=db_pool,
    )


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def session_token(request: Request, services: AppServices) -> Optional[str]:
    token = request.cookies.get(services.config.auth.cookie_name)
    if token:
        return token
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


async def current_user(
    request: Request,
    services: AppServices = Depends(get_services),
) -> SessionUser:
    """Resolve the session against the users table so role/approval are current."""
    token = session_token(request, services)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        session = services.tokens.decode(token)
        user = await services.users.get_user(UUID(session.id))
    except (InvalidSession, ValueError):
        raise HTTPException(status_code=401, detail="Unauthorized") from None

    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not user["is_approved"]:
        raise HTTPException(status_code=403, detail=PENDING_APPROVAL_MESSAGE)

    return SessionUser(
        id=str(user["id"]),
        email=user["email"],
        role=user["role"],
        is_approved=True,
    )


async def admin_user(user: SessionUser = Depends(current_user)) -> SessionUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limited(group: str):
    """Dependency factory consuming one token from ``group`` for the client IP."""

    async def dependency(request: Request, services: AppServices = Depends(get_services)):
        settings = services.config.rate_limit
        if not settings.enabled:
            return
        requests, window = getattr(settings, group)
        rule = TokenBucketRule.per_window(requests, window)
        decision = await services.rate_limiter.check(f"{group}:{client_ip(request)}", rule)
        if not decision.allowed:
            logger.warning(f"Rate limit hit for {group} from {client_ip(request)}")
            raise HTTPException(
                status_code=429,
                detail=RATE_LIMIT_MESSAGE,
                headers={"Retry-After": str(decision.retry_after)},
            )

    return dependency
