"""Offline provider for local development: canned JSON, no network."""

from __future__ import annotations

import json

from .base import BaseProvider, ProviderResult

# Answers cover every scope's required keys so each parser accepts them.
_CLASSIFICATION = {
    "sentiment": "neutral",
    "confidence": 50,
    "rating": 3,
    "isPositive": False,
    "summary": "Mock analysis",
    "keyPoints": [],
    "category": "Other",
}
_AGGREGATE = {
    "overallSentiment": "mixed",
    "overallScore": 50,
    "overallSummary": "Mock analysis",
    "totalFound": 0,
    "feedbacks": [],
}

MOCK_RESPONSE = json.dumps({**_CLASSIFICATION, **_AGGREGATE})


class MockProvider(BaseProvider):
    name = "mock"

    def __init__(self, response: str = MOCK_RESPONSE) -> None:
        self._response = response

    async def generate(
        self,
        prompt: str,
        *,
        model: str = "",
        temperature: float = 0.3,
        max_tokens: int = 1000,
        timeout_seconds: float = 30.0,
    ) -> ProviderResult:
        return ProviderResult(
            raw_text=self._response,
            model=model or "mock-v1",
            provider=self.name,
            prompt_tokens=len(prompt.split()),
            completion_tokens=len(self._response.split()),
        )
