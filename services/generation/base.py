"""
Generation Provider Interface

Every vendor client implements the same capability set:
- transform_image(source_url, prompt)            -> GenerationResult
- generate_video(image_url, prompt, duration)    -> GenerationResult
- estimate_cost(kind, duration_seconds)          -> float

Optional capabilities have safe defaults:
- upscale_image(image_url): returns the input unchanged
- host_image(data, content_type): inlines the bytes as a data: URI

All vendor failures (HTTP errors, timeouts, FAILED task states, missing output
URLs, open circuit breaker) surface as GenerationFailed. Nothing is retried
at this layer.
"""

import asyncio
import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import httpx

from core.circuit_breaker import CircuitBreaker, CircuitBreakerOpen, get_provider_breaker
from core.config import Config, get_config

logger = logging.getLogger(__name__)


class GenerationFailed(Exception):
    """Raised when a provider cannot produce the requested asset."""

    def __init__(self, message: str, error_code: str = None, provider: str = None):
        self.error_code = error_code
        self.provider = provider
        super().__init__(message)


class GenerationRejected(GenerationFailed):
    """The vendor refused the request parameters (does not trip the breaker)."""


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


@dataclass
class GenerationResult:
    """URL of a generated asset plus bookkeeping."""
    url: str
    provider: str
    model: str
    # Fixed per-call estimate; this is what gets billed to the job
    cost: float = 0.0
    # What the vendor said it charged, when the response includes it
    reported_cost: Optional[float] = None
    external_task_id: Optional[str] = None


class GenerationProvider(ABC):
    """Base class for FAL / Runware / Runway clients."""

    name: str = ""

    def __init__(
        self,
        config: Optional[Config] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        breaker: Optional[CircuitBreaker] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config or get_config()
        self._http_client = http_client
        self._owns_client = http_client is None
        self._breaker = breaker or get_provider_breaker(
            self.name, excluded_exceptions=(GenerationRejected,)
        )
        self._sleep = sleep

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=10.0))
        return self._http_client

    async def close(self):
        """Close the HTTP client if this provider created it."""
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    # ------------------------------------------------------------------
    # Public capability set
    # ------------------------------------------------------------------

    async def transform_image(self, source_url: str, prompt: str) -> GenerationResult:
        return await self._guarded("transform_image", self._transform_image, source_url, prompt)

    async def generate_video(
        self,
        image_url: str,
        prompt: str,
        duration_seconds: int = 5,
    ) -> GenerationResult:
        return await self._guarded(
            "generate_video", self._generate_video, image_url, prompt, duration_seconds
        )

    async def upscale_image(self, image_url: str) -> GenerationResult:
        return await self._guarded("upscale_image", self._upscale_image, image_url)

    async def host_image(self, data: bytes, content_type: str) -> str:
        """Make raw image bytes addressable by the vendor."""
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{content_type};base64,{encoded}"

    @abstractmethod
    def estimate_cost(self, kind: MediaKind, duration_seconds: Optional[int] = None) -> float:
        """Flat per-call cost estimate in the billing currency."""

    def estimate_upscale_cost(self) -> float:
        """Cost of one ``upscale_image`` call; free when the vendor has no upscaler."""
        return 0.0

    # ------------------------------------------------------------------
    # Vendor hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _transform_image(self, source_url: str, prompt: str) -> GenerationResult:
        ...

    @abstractmethod
    async def _generate_video(
        self, image_url: str, prompt: str, duration_seconds: int
    ) -> GenerationResult:
        ...

    async def _upscale_image(self, image_url: str) -> GenerationResult:
        return GenerationResult(url=image_url, provider=self.name, model="none")

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    async def _guarded(self, operation: str, func, *args) -> GenerationResult:
        """Run a vendor call through the breaker and normalize its errors."""
        try:
            return await self._breaker.call(func, *args)
        except GenerationFailed:
            raise
        except CircuitBreakerOpen as e:
            raise GenerationFailed(str(e), error_code="CIRCUIT_BREAKER_OPEN", provider=self.name)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise GenerationFailed(
                f"{self.name} {operation} timed out ({type(e).__name__})",
                error_code="TIMEOUT",
                provider=self.name,
            )
        except httpx.HTTPError as e:
            raise GenerationFailed(
                f"{self.name} request failed: {type(e).__name__}: {e}",
                error_code="REQUEST_ERROR",
                provider=self.name,
            )

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        """Best-effort human readable message from an error response."""
        try:
            data = response.json()
        except ValueError:
            return response.text[:300] or f"HTTP {response.status_code}"

        if isinstance(data, dict):
            for key in ("detail", "error", "message", "failure"):
                value = data.get(key)
                if value:
                    return value if isinstance(value, str) else str(value)
            errors = data.get("errors")
            if isinstance(errors, list) and errors:
                first = errors[0]
                return first.get("message", str(first)) if isinstance(first, dict) else str(first)
        return str(data)[:300]

    def _check_response(self, response: httpx.Response, key_name: str):
        """Raise GenerationFailed for any non-2xx response."""
        if response.is_success:
            return

        detail = self._error_detail(response)
        status = response.status_code
        if status == 401:
            raise GenerationFailed(
                f"Authentication failed. Check {key_name}",
                error_code="AUTH_FAILED",
                provider=self.name,
            )
        if status in (400, 422):
            raise GenerationRejected(
                f"Invalid parameters: {detail}",
                error_code="INVALID_PARAMETERS",
                provider=self.name,
            )
        raise GenerationFailed(
            f"{self.name} API error ({status}): {detail}",
            error_code=f"HTTP_{status}",
            provider=self.name,
        )

    async def _poll(
        self,
        check: Callable[[int], Awaitable[Optional[Any]]],
        max_attempts: int,
        task_id: str,
    ) -> Any:
        """
        Bounded poll loop for task-based vendors.

        ``check`` returns None while the task is still running, the final
        payload once it succeeded, and raises GenerationFailed when the vendor
        reports a failure.
        """
        interval = self.config.generation.poll_interval
        for attempt in range(max_attempts):
            await self._sleep(interval)
            result = await check(attempt)
            if result is not None:
                logger.info(f"{self.name} task {task_id} finished after {attempt + 1} polls")
                return result

        raise GenerationFailed(
            f"{self.name} task {task_id} did not finish after {max_attempts} polls",
            error_code="POLL_TIMEOUT",
            provider=self.name,
        )
