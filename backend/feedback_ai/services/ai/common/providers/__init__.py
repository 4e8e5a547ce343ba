"""Provider factory - returns the configured provider, or ``None`` when unusable."""

from __future__ import annotations

import logging

from .base import BaseProvider, ProviderResult
from .mock import MockProvider

logger = logging.getLogger(__name__)

__all__ = ["get_provider", "BaseProvider", "ProviderResult", "MockProvider"]


def get_provider(provider_name: str, *, api_key: str = "", api_base: str = "") -> BaseProvider | None:
    """Return a provider instance for *provider_name*.

    A real provider without an API key yields ``None``; the gateway then
    reports itself as disabled and callers take their fallback path.
    """
    name = provider_name.lower().strip()

    if name == "mock":
        return MockProvider()

    if name == "gemini":
        if not api_key:
            logger.warning("GEMINI_API_KEY not set - AI analysis disabled")
            return None
        from .gemini import DEFAULT_API_BASE, GeminiProvider

        return GeminiProvider(api_key=api_key, api_base=api_base or DEFAULT_API_BASE)

    logger.warning("Unknown provider %r - AI analysis disabled", name)
    return None
