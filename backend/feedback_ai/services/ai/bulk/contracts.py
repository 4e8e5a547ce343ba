"""Contracts for bulk feedback summarization."""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..common.contracts import (
    FrozenContract,
    OverallSentiment,
    Sentiment,
    clamp_int,
    coerce_str_list,
    normalize_label,
    safe_clamp_int,
)

MAX_POINTS = 5


class FeedbackItem(BaseModel):
    """One stored feedback record as supplied by the persistence collaborator."""

    model_config = ConfigDict(validate_by_name=True, populate_by_name=True)

    rating: int = Field(default=3, ge=1, le=5)
    message: str = ""
    is_positive: bool = Field(default=False, validation_alias=AliasChoices("is_positive", "isPositive"))

    @field_validator("rating", mode="before")
    @classmethod
    def _clamp_rating(cls, v):
        return safe_clamp_int(v, 1, 5, default=3)

    @field_validator("message", mode="before")
    @classmethod
    def _message_text(cls, v):
        return str(v or "").strip()


class CategoryCount(FrozenContract):
    category: str
    sentiment: Sentiment = "neutral"
    count: int = 0

    @field_validator("sentiment", mode="before")
    @classmethod
    def _sentiment(cls, v):
        label = normalize_label(v)
        return label if label in ("positive", "negative", "neutral") else "neutral"

    @field_validator("count", mode="before")
    @classmethod
    def _count(cls, v):
        return safe_clamp_int(v, 0, 1_000_000, default=0)


class BulkReport(FrozenContract):
    total_analyzed: int
    overall_sentiment: OverallSentiment
    overall_score: int  # 0-100
    overall_summary: str
    positive: int = 0
    negative: int = 0
    top_positive_points: tuple[str, ...] = ()
    top_negative_points: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    category_breakdown: tuple[CategoryCount, ...] = ()
    note: Optional[str] = None

    @field_validator("overall_sentiment", mode="before")
    @classmethod
    def _overall(cls, v):
        label = normalize_label(v)
        return "mixed" if label == "neutral" else label

    @field_validator("overall_score", mode="before")
    @classmethod
    def _score(cls, v):
        return clamp_int(v, 0, 100, default=50)

    @field_validator("top_positive_points", "top_negative_points", "recommendations", mode="before")
    @classmethod
    def _points(cls, v):
        return coerce_str_list(v, limit=MAX_POINTS)


EMPTY_BULK_REPORT = BulkReport(
    total_analyzed=0,
    overall_sentiment="mixed",
    overall_score=50,
    overall_summary="No feedback to analyze",
)
