"""Contracts for feedback extraction from fetched pages."""

from __future__ import annotations

from typing import Optional

from pydantic import field_validator

from feedback_ai.core.errors import FailureReason

from ..common.contracts import (
    FrozenContract,
    PageSentiment,
    Sentiment,
    coerce_str_list,
    normalize_label,
    safe_clamp_int,
)

MAX_POINTS = 5


class ExtractedFeedback(FrozenContract):
    text: str = ""
    sentiment: Sentiment = "neutral"
    rating: int = 3  # 1-5
    summary: str = ""

    @field_validator("text", "summary", mode="before")
    @classmethod
    def _text(cls, v):
        return str(v or "").strip()

    @field_validator("sentiment", mode="before")
    @classmethod
    def _sentiment(cls, v):
        label = normalize_label(v)
        return label if label in ("positive", "negative", "neutral") else "neutral"

    @field_validator("rating", mode="before")
    @classmethod
    def _rating(cls, v):
        return safe_clamp_int(v, 1, 5, default=3)


class ExtractionResult(FrozenContract):
    success: bool
    platform_name: str = "External"
    total_found: int = 0
    overall_sentiment: PageSentiment = "neutral"
    overall_score: int = 0  # 0-100
    overall_summary: str = ""
    feedbacks: tuple[ExtractedFeedback, ...] = ()
    top_positive_points: tuple[str, ...] = ()
    top_negative_points: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    positive_count: int = 0
    negative_count: int = 0
    error: Optional[str] = None
    error_code: Optional[FailureReason] = None
    page_text_preview: Optional[str] = None

    @field_validator("overall_sentiment", mode="before")
    @classmethod
    def _overall(cls, v):
        label = normalize_label(v)
        return label if label in ("positive", "negative", "mixed", "neutral") else "neutral"

    @field_validator("overall_score", mode="before")
    @classmethod
    def _score(cls, v):
        return safe_clamp_int(v, 0, 100, default=0)

    @field_validator("total_found", "positive_count", "negative_count", mode="before")
    @classmethod
    def _count(cls, v):
        return safe_clamp_int(v, 0, 1_000_000, default=0)

    @field_validator("top_positive_points", "top_negative_points", "recommendations", mode="before")
    @classmethod
    def _points(cls, v):
        try:
            return coerce_str_list(v, limit=MAX_POINTS)
        except ValueError:
            return []

    @classmethod
    def failed(
        cls,
        code: FailureReason,
        message: str,
        *,
        platform_name: str = "External",
        preview: str | None = None,
    ) -> ExtractionResult:
        return cls(
            success=False,
            platform_name=platform_name,
            error=message,
            error_code=code,
            page_text_preview=preview,
        )
