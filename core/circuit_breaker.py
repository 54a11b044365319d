"""
Circuit Breaker for Generation Providers

Stops hammering a generation vendor (FAL, Runware, Runway) that is down or
rejecting every request, and bounds how long a single vendor call may take.

States:
- CLOSED: Normal operation, calls pass through
- OPEN: Vendor considered down, calls are rejected immediately
- HALF_OPEN: Recovery trial, a limited number of calls are let through

Usage:
    breaker = get_provider_breaker("fal")
    url = await breaker.call(client.submit, payload)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Thresholds for one breaker."""
    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    half_open_max_calls: int = 1
    success_threshold: int = 1
    # Upper bound for one wrapped call, polling included
    timeout: float = 120.0
    # Exceptions that do not count as vendor failures (e.g. bad user input)
    excluded_exceptions: tuple = ()


@dataclass
class CircuitBreakerStats:
    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    half_open_successes: int = 0
    half_open_calls: int = 0
    opened_at: float = 0.0
    total_calls: int = 0
    total_failures: int = 0
    last_error: Optional[str] = None
    changed_at: float = field(default_factory=time.monotonic)


class CircuitBreakerOpen(Exception):
    """Raised when a call is rejected because the breaker is open."""

    def __init__(self, service_name: str, retry_after: float):
        self.service_name = service_name
        self.retry_after = max(retry_after, 0.0)
        super().__init__(
            f"{service_name} is temporarily unavailable, "
            f"retry in {self.retry_after:.0f}s"
        )


class CircuitBreaker:
    """Per-service breaker; instances are shared through a registry."""

    _registry: dict[str, "CircuitBreaker"] = {}

    def __init__(
        self,
        service_name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.service_name = service_name
        self.config = config or CircuitBreakerConfig()
        self.stats = CircuitBreakerStats(changed_at=clock())
        self._clock = clock
        self._lock = asyncio.Lock()
        CircuitBreaker._registry[service_name] = self

    @property
    def state(self) -> CircuitState:
        return self.stats.state

    def _set_state(self, new_state: CircuitState):
        old_state = self.stats.state
        self.stats.state = new_state
        self.stats.changed_at = self._clock()
        if new_state == CircuitState.OPEN:
            self.stats.opened_at = self.stats.changed_at
        if new_state == CircuitState.HALF_OPEN:
            self.stats.half_open_calls = 0
            self.stats.half_open_successes = 0
        if new_state == CircuitState.CLOSED:
            self.stats.consecutive_failures = 0
        logger.info(f"Circuit breaker [{self.service_name}]: {old_state.value} -> {new_state.value}")

    async def _admit(self):
        async with self._lock:
            self.stats.total_calls += 1

            if self.stats.state == CircuitState.OPEN:
                waited = self._clock() - self.stats.opened_at
                if waited < self.config.recovery_timeout:
                    raise CircuitBreakerOpen(
                        self.service_name, self.config.recovery_timeout - waited
                    )
                self._set_state(CircuitState.HALF_OPEN)

            if self.stats.state == CircuitState.HALF_OPEN:
                if self.stats.half_open_calls >= self.config.half_open_max_calls:
                    raise CircuitBreakerOpen(self.service_name, self.config.recovery_timeout)
                self.stats.half_open_calls += 1

    def _trial_succeeded(self):
        if self.stats.state == CircuitState.HALF_OPEN:
            self.stats.half_open_successes += 1
            if self.stats.half_open_successes >= self.config.success_threshold:
                self._set_state(CircuitState.CLOSED)

    async def _record_success(self):
        async with self._lock:
            self.stats.consecutive_failures = 0
            self._trial_succeeded()

    async def _record_answer(self):
        # An excluded error still means the vendor responded
        async with self._lock:
            self._trial_succeeded()

    def _release_trial_slot(self):
        if self.stats.state == CircuitState.HALF_OPEN and self.stats.half_open_calls > 0:
            self.stats.half_open_calls -= 1

    async def _record_failure(self, error: BaseException):
        async with self._lock:
            self.stats.consecutive_failures += 1
            self.stats.total_failures += 1
            self.stats.last_error = str(error) or type(error).__name__

            if self.stats.state == CircuitState.HALF_OPEN:
                self._set_state(CircuitState.OPEN)
            elif (
                self.stats.state == CircuitState.CLOSED
                and self.stats.consecutive_failures >= self.config.failure_threshold
            ):
                self._set_state(CircuitState.OPEN)

        logger.warning(
            f"Circuit breaker [{self.service_name}] failure "
            f"{self.stats.consecutive_failures}/{self.config.failure_threshold}: "
            f"{self.stats.last_error}"
        )

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Run ``func`` under breaker protection and the configured timeout.

        Raises:
            CircuitBreakerOpen: If the breaker rejects the call
            asyncio.TimeoutError: If the call exceeds ``config.timeout``
        """
        await self._admit()
        try:
            result = await asyncio.wait_for(func(*args, **kwargs), timeout=self.config.timeout)
        except asyncio.CancelledError:
            self._release_trial_slot()
            raise
        except self.config.excluded_exceptions:
            await self._record_answer()
            raise
        except Exception as e:
            await self._record_failure(e)
            raise
        await self._record_success()
        return result

    def reset(self):
        """Manually close the breaker and clear its counters."""
        self.stats = CircuitBreakerStats(changed_at=self._clock())
        logger.info(f"Circuit breaker [{self.service_name}] manually reset")

    def get_status(self) -> dict:
        return {
            "service": self.service_name,
            "state": self.stats.state.value,
            "consecutive_failures": self.stats.consecutive_failures,
            "total_calls": self.stats.total_calls,
            "total_failures": self.stats.total_failures,
            "last_error": self.stats.last_error,
        }

    @classmethod
    def all_statuses(cls) -> list[dict]:
        return [breaker.get_status() for breaker in cls._registry.values()]


# Video polling can run for max_polls * poll_interval (120 * 5s), so the
# per-call timeout sits above that.
PROVIDER_BREAKER_CONFIGS = {
    "fal": CircuitBreakerConfig(failure_threshold=5, recovery_timeout=30.0, timeout=660.0),
    "runware": CircuitBreakerConfig(failure_threshold=5, recovery_timeout=30.0, timeout=300.0),
    "runway": CircuitBreakerConfig(failure_threshold=3, recovery_timeout=60.0, timeout=660.0),
}


def get_provider_breaker(
    provider: str,
    excluded_exceptions: tuple = (),
) -> CircuitBreaker:
    """
    Get the shared breaker for a generation provider.

    Args:
        provider: 'fal', 'runware' or 'runway'
        excluded_exceptions: Errors that should not trip the breaker
    """
    existing = CircuitBreaker._registry.get(provider)
    if existing is not None:
        return existing

    base = PROVIDER_BREAKER_CONFIGS.get(provider, CircuitBreakerConfig())
    config = CircuitBreakerConfig(
        failure_threshold=base.failure_threshold,
        recovery_timeout=base.recovery_timeout,
        half_open_max_calls=base.half_open_max_calls,
        success_threshold=base.success_threshold,
        timeout=base.timeout,
        excluded_exceptions=excluded_exceptions,
    )
    return CircuitBreaker(provider, config)
