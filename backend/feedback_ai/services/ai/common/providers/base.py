"""Provider interface used by the classifier gateway."""

from __future__ import annotations

import abc
from dataclasses import dataclass


@dataclass(frozen=True)
class ProviderResult:
    """Generated text and usage numbers from one provider call."""

    raw_text: str
    model: str
    provider: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    latency_ms: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class BaseProvider(abc.ABC):
    """One outbound HTTP call per ``generate``.

    Implementations raise ``httpx.HTTPStatusError`` for non-2xx responses and
    let ``httpx`` transport errors propagate; the gateway maps both onto
    ``FailureReason`` values and decides whether to retry.
    """

    name: str = "base"

    @abc.abstractmethod
    async def generate(
        self,
        prompt: str,
        *,
        model: str = "",
        temperature: float = 0.3,
        max_tokens: int = 1000,
        timeout_seconds: float = 30.0,
    ) -> ProviderResult:
        ...
