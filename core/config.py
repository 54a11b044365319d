"""
Configuration management for ReelStudio.

Centralizes all configuration including:
- Generation provider keys and endpoints
- Database and object storage settings
- Session/auth secrets
- Budget, rate limit and worker tuning
"""

import os
from dataclasses import dataclass, field
from typing import Literal, Optional


ProviderName = Literal["fal", "runware", "runway"]


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class APIConfig:
    """API configuration for generation providers."""

    fal_api_key: str = field(default_factory=lambda: os.getenv("FAL_API_KEY", ""))
    fal_api_base: str = field(
        default_factory=lambda: os.getenv("FAL_API_BASE", "https://queue.fal.run")
    )

    runware_api_key: str = field(default_factory=lambda: os.getenv("RUNWARE_API_KEY", ""))
    runware_api_base: str = "https://api.runware.ai/v1"

    runway_api_key: str = field(default_factory=lambda: os.getenv("RUNWAY_API_KEY", ""))
    runway_api_base: str = "https://api.dev.runwayml.com"
    runway_api_version: str = "2024-11-06"

    # LLM (prompt enhancement)
    google_api_key: str = field(default_factory=lambda: os.getenv("GOOGLE_API_KEY", ""))
    prompt_model: str = field(
        default_factory=lambda: os.getenv("PROMPT_MODEL", "gemini-2.0-flash")
    )


@dataclass
class DatabaseConfig:
    """Database configuration."""
    url: str = field(default_factory=lambda: os.getenv("DATABASE_URL", ""))
    pool_min_size: int = 2
    pool_max_size: int = 10


@dataclass
class StorageConfig:
    """Object storage configuration for uploads and generated assets."""
    root: str = field(default_factory=lambda: os.getenv("STORAGE_ROOT", "./storage"))
    folder_prefix: str = field(default_factory=lambda: os.getenv("STORAGE_FOLDER_PREFIX", ""))
    public_url: str = field(default_factory=lambda: os.getenv("STORAGE_PUBLIC_URL", ""))
    signed_url_ttl: int = 3600
    max_upload_bytes: int = 10 * 1024 * 1024


@dataclass
class AuthConfig:
    """Session token and bootstrap admin configuration."""
    jwt_secret_key: str = field(
        default_factory=lambda: os.getenv("JWT_SECRET_KEY", "dev-secret-change-me")
    )
    jwt_algorithm: str = "HS256"
    # Seconds, defaults to 7 days
    access_token_expires: int = field(
        default_factory=lambda: int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES", str(7 * 24 * 3600)))
    )
    cookie_name: str = "reelstudio_session"
    cookie_secure: bool = field(default_factory=lambda: _env_bool("SESSION_COOKIE_SECURE"))

    admin_email: str = field(default_factory=lambda: os.getenv("ADMIN_EMAIL", ""))
    admin_password: str = field(default_factory=lambda: os.getenv("ADMIN_PASSWORD", ""))


@dataclass
class GenerationConfig:
    """Generation pipeline settings."""
    provider: str = field(default_factory=lambda: os.getenv("GENERATION_PROVIDER", ""))
    enable_upscale: bool = field(default_factory=lambda: _env_bool("ENABLE_UPSCALE"))
    video_duration: int = 5

    poll_interval: float = 5.0
    image_max_polls: int = 60
    video_max_polls: int = 120

    # Flat cost recorded per variation (approximate video generation cost)
    variation_cost: float = 0.035
    max_variations: int = 4


@dataclass
class BudgetConfig:
    """Spending ceiling used when a user has no manual budget."""
    default_ceiling: float = field(
        default_factory=lambda: float(os.getenv("DEFAULT_BUDGET", "20"))
    )
    currency: str = "EUR"


@dataclass
class RateLimitConfig:
    """Per-route token bucket limits, expressed as (requests, window seconds)."""
    enabled: bool = field(default_factory=lambda: _env_bool("RATE_LIMIT_ENABLED", "true"))
    backend: str = field(default_factory=lambda: os.getenv("RATE_LIMIT_BACKEND", "postgres"))
    signup: tuple[int, int] = (5, 15 * 60)
    auth: tuple[int, int] = (10, 15 * 60)
    upload: tuple[int, int] = (20, 60)


@dataclass
class WorkerConfig:
    """Background job worker settings."""
    concurrency: int = field(default_factory=lambda: int(os.getenv("WORKER_CONCURRENCY", "4")))
    poll_interval: float = 5.0
    lease_seconds: int = 120
    max_attempts: int = 3
    # Run the worker inside the API process (lifespan)
    embedded: bool = field(default_factory=lambda: _env_bool("WORKER_EMBEDDED", "true"))


@dataclass
class Config:
    """Main configuration class."""

    api: APIConfig = field(default_factory=APIConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    worker: WorkerConfig = field(default_factory=WorkerConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls()

    def get_provider_name(self) -> ProviderName:
        """Determine which generation provider to use.

        An explicit GENERATION_PROVIDER wins; otherwise the first provider
        with a configured key is picked.
        """
        explicit = self.generation.provider.strip().lower()
        if explicit:
            if explicit not in ("fal", "runware", "runway"):
                raise ValueError(f"Unknown GENERATION_PROVIDER: {explicit}")
            return explicit  # type: ignore[return-value]
        if self.api.fal_api_key:
            return "fal"
        if self.api.runware_api_key:
            return "runware"
        if self.api.runway_api_key:
            return "runway"
        raise ValueError(
            "No generation provider configured "
            "(FAL_API_KEY, RUNWARE_API_KEY or RUNWAY_API_KEY required)"
        )

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if not (self.api.fal_api_key or self.api.runware_api_key or self.api.runway_api_key):
            issues.append("No generation provider key configured")

        if not self.database.url:
            issues.append("DATABASE_URL not configured")

        if self.auth.jwt_secret_key == "dev-secret-change-me":
            issues.append("JWT_SECRET_KEY not configured (using development secret)")

        if not self.api.google_api_key:
            issues.append("GOOGLE_API_KEY not configured (needed for prompt enhancement)")

        return issues


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reload_config():
    """Reload configuration from environment."""
    global _config
    _config = Config.from_env()
