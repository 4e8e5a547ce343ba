"""Classifier gateway - credential gating plus 429-aware retry around a provider.

The gateway never raises: every outcome is a ``GatewayResult``.  It does not
parse the generated text; that is the calling scope's job.

Retry rules:
  - HTTP 429 → wait ``attempt × base_delay_ms`` (non-blocking) and retry,
    up to ``max_attempts`` calls in total.
  - Any other non-2xx → fail immediately with ``UPSTREAM_ERROR``.
  - Transport timeout / network error → fail immediately.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from feedback_ai.core.config import Settings, get_settings
from feedback_ai.core.errors import FailureReason

from .providers import BaseProvider, ProviderResult, get_provider

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    base_delay_ms: int

    def delay_seconds(self, attempt: int) -> float:
        """Wait after a rate-limited *attempt* (1-indexed)."""
        return attempt * self.base_delay_ms / 1000.0


@dataclass(frozen=True)
class GatewayConfig:
    """Explicit gateway configuration; replaces any process-wide credential check."""

    provider_name: str = "gemini"
    api_key: str = ""
    api_base: str = ""
    model: str = ""
    temperature: float = 0.3
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> GatewayConfig:
        settings = settings or get_settings()
        return cls(
            provider_name=settings.ai_provider,
            api_key=settings.gemini_api_key,
            api_base=settings.gemini_api_base,
            model=settings.gemini_model,
            temperature=settings.ai_temperature,
            timeout_seconds=settings.ai_timeout_seconds,
        )


@dataclass(frozen=True)
class GatewayResult:
    ok: bool
    text: str = ""
    reason: FailureReason | None = None
    status: int | None = None
    attempts: int = 0
    provider_result: ProviderResult | None = None

    @classmethod
    def failure(cls, reason: FailureReason, *, status: int | None = None, attempts: int = 0) -> GatewayResult:
        return cls(ok=False, reason=reason, status=status, attempts=attempts)


class ClassifierGateway:
    def __init__(
        self,
        config: GatewayConfig,
        provider: BaseProvider | None = None,
        *,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._config = config
        self._provider = provider or get_provider(
            config.provider_name,
            api_key=config.api_key,
            api_base=config.api_base,
        )
        self._sleep = sleep

    @property
    def config(self) -> GatewayConfig:
        return self._config

    def is_enabled(self) -> bool:
        return self._provider is not None

    async def invoke(self, prompt: str, max_tokens: int, policy: RetryPolicy) -> GatewayResult:
        if self._provider is None:
            logger.warning("Classifier not configured - skipping AI analysis")
            return GatewayResult.failure(FailureReason.DISABLED)

        max_attempts = max(1, policy.max_attempts)
        for attempt in range(1, max_attempts + 1):
            try:
                provider_result = await self._provider.generate(
                    prompt,
                    model=self._config.model,
                    temperature=self._config.temperature,
                    max_tokens=max_tokens,
                    timeout_seconds=self._config.timeout_seconds,
                )
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status != 429:
                    logger.error("Classifier API error: %s", status)
                    return GatewayResult.failure(FailureReason.UPSTREAM_ERROR, status=status, attempts=attempt)
                if attempt < max_attempts:
                    wait = policy.delay_seconds(attempt)
                    logger.info(
                        "Rate limited (429). Waiting %.1fs before retry %d/%d",
                        wait,
                        attempt,
                        max_attempts,
                    )
                    await self._sleep(wait)
                continue
            except httpx.TimeoutException:
                logger.warning("Classifier request timed out (attempt %d)", attempt)
                return GatewayResult.failure(FailureReason.TIMEOUT, attempts=attempt)
            except httpx.HTTPError as exc:
                logger.warning("Classifier network error (attempt %d): %s", attempt, exc)
                return GatewayResult.failure(FailureReason.NETWORK_ERROR, attempts=attempt)
            except (KeyError, IndexError, TypeError, ValueError):
                logger.warning("Classifier returned an unexpected payload shape", exc_info=True)
                return GatewayResult.failure(FailureReason.MALFORMED_RESPONSE, attempts=attempt)
            except Exception:
                logger.exception("Classifier provider failed unexpectedly")
                return GatewayResult.failure(FailureReason.UPSTREAM_ERROR, attempts=attempt)

            return GatewayResult(
                ok=True,
                text=provider_result.raw_text or "",
                attempts=attempt,
                provider_result=provider_result,
            )

        logger.error("All %d attempts rate limited (429)", max_attempts)
        return GatewayResult.failure(FailureReason.RATE_LIMITED, status=429, attempts=max_attempts)
