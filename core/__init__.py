"""
ReelStudio Core Components

Foundational infrastructure shared by the API, the worker and the CLI:
- Environment-driven configuration
- asyncpg pool and schema
- Circuit breaker for generation providers
- Token bucket rate limiting
"""

from .circuit_breaker import CircuitBreaker, CircuitBreakerOpen, CircuitState
from .config import Config, get_config
from .rate_limiter import (
    InMemoryRateLimiter,
    PostgresRateLimiter,
    RateLimitDecision,
    RateLimiter,
    TokenBucketRule,
)

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerOpen",
    "CircuitState",
    "Config",
    "get_config",
    "InMemoryRateLimiter",
    "PostgresRateLimiter",
    "RateLimitDecision",
    "RateLimiter",
    "TokenBucketRule",
]
