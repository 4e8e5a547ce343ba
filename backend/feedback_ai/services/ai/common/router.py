"""AI Router - resolves gateway, retry policy and token budget per analysis scope."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from feedback_ai.core.config import get_settings

from .gateway import ClassifierGateway, GatewayConfig, RetryPolicy

logger = logging.getLogger(__name__)

# Single attempt, no wait: classification runs inline with feedback submission.
INLINE_POLICY = RetryPolicy(max_attempts=1, base_delay_ms=0)

SCOPE_MAX_TOKENS: dict[str, int] = {
    "sentiment": 300,
    "external": 300,
    "bulk": 1000,
    "page_extract": 2000,
    "paste_summary": 3000,
}

INLINE_SCOPES = frozenset({"sentiment"})


@dataclass(frozen=True)
class ResolvedConfig:
    gateway: ClassifierGateway
    policy: RetryPolicy
    max_tokens: int


def policy_for(scope: str) -> RetryPolicy:
    if scope in INLINE_SCOPES:
        return INLINE_POLICY
    settings = get_settings()
    return RetryPolicy(
        max_attempts=settings.ai_max_attempts,
        base_delay_ms=settings.ai_base_delay_ms,
    )


def resolve(scope: str, *, gateway: ClassifierGateway | None = None) -> ResolvedConfig:
    """Resolve the gateway + policy for *scope*.

    An injected *gateway* wins; otherwise a fresh one is built from settings.
    Unknown scopes get the full policy and a 1000-token budget.
    """
    if scope not in SCOPE_MAX_TOKENS:
        logger.warning("Unknown AI scope %r - using defaults", scope)

    return ResolvedConfig(
        gateway=gateway or ClassifierGateway(GatewayConfig.from_settings()),
        policy=policy_for(scope),
        max_tokens=SCOPE_MAX_TOKENS.get(scope, 1000),
    )
