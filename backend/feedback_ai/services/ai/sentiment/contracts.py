"""Contracts for single-feedback sentiment classification."""

from __future__ import annotations

from typing import Optional

from pydantic import field_validator

from ..common.contracts import FrozenContract, Sentiment, clamp_int, coerce_str_list, normalize_label

MAX_KEY_POINTS = 10
DEFAULT_CONFIDENCE = 50


class ClassificationResult(FrozenContract):
    """Structured output of a single classification."""

    sentiment: Sentiment
    confidence: int = DEFAULT_CONFIDENCE  # 0-100
    summary: str
    key_points: tuple[str, ...] = ()
    category: Optional[str] = None
    note: Optional[str] = None

    @field_validator("sentiment", mode="before")
    @classmethod
    def _lower_sentiment(cls, v):
        return normalize_label(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v):
        return clamp_int(v, 0, 100, default=DEFAULT_CONFIDENCE)

    @field_validator("summary", mode="before")
    @classmethod
    def _summary_text(cls, v):
        text = str(v or "").strip()
        if not text:
            raise ValueError("summary must not be empty")
        return text

    @field_validator("key_points", mode="before")
    @classmethod
    def _key_points(cls, v):
        return coerce_str_list(v, limit=MAX_KEY_POINTS)


NO_MESSAGE_RESULT = ClassificationResult(
    sentiment="neutral",
    confidence=50,
    summary="No message provided",
)
