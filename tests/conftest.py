"""Shared fixtures for the ReelStudio test suite."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from core.config import Config
from services.generation import MediaGenerator

from tests.fakes import FakeJobStore, FakeObjectStore, FakeProvider


@pytest.fixture
def config():
    """Config with no waits and the in-memory rate limiter."""
    config = Config()
    config.generation.provider = ""
    config.generation.enable_upscale = False
    config.generation.poll_interval = 0
    config.generation.image_max_polls = 3
    config.generation.video_max_polls = 3
    config.rate_limit.backend = "memory"
    config.rate_limit.enabled = True
    config.worker.embedded = False
    config.storage.public_url = ""
    config.auth.jwt_secret_key = "test-secret"
    config.budget.default_ceiling = 20.0
    return config


@pytest.fixture
def job_store():
    return FakeJobStore()


@pytest.fixture
def storage():
    return FakeObjectStore()


@pytest.fixture
def provider(config):
    return FakeProvider(config)


@pytest.fixture
def media(provider, storage, config):
    return MediaGenerator(provider, storage=storage, config=config)


@pytest.fixture
def mock_db_pool():
    """asyncpg pool whose connection is ``pool.conn``."""
    conn = AsyncMock()
    transaction = MagicMock()
    transaction.__aenter__ = AsyncMock(return_value=None)
    transaction.__aexit__ = AsyncMock(return_value=None)
    conn.transaction = MagicMock(return_value=transaction)

    pool = MagicMock()
    pool.acquire = MagicMock(return_value=AsyncMock(
        __aenter__=AsyncMock(return_value=conn),
        __aexit__=AsyncMock(return_value=None),
    ))
    pool.conn = conn
    return pool
