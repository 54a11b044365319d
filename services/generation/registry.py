"""
Provider selection.

The active provider is chosen once from configuration (GENERATION_PROVIDER,
or the first vendor with an API key); jobs never pick their own.
"""

from typing import Optional

import httpx

from core.config import Config, get_config

from .base import GenerationProvider
from .fal import FalProvider
from .runware import RunwareProvider
from .runway import RunwayProvider

PROVIDERS: dict[str, type[GenerationProvider]] = {
    FalProvider.name: FalProvider,
    RunwareProvider.name: RunwareProvider,
    RunwayProvider.name: RunwayProvider,
}


def get_provider(
    name: Optional[str] = None,
    config: Optional[Config] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> GenerationProvider:
    """Instantiate the configured (or explicitly named) provider."""
    config = config or get_config()
    name = (name or config.get_provider_name()).lower()
    try:
        provider_cls = PROVIDERS[name]
    except KeyError:
        raise ValueError(f"Unknown generation provider: {name}") from None
    return provider_cls(config=config, http_client=http_client)
