"""Contracts for pasted bulk-summary analysis (form exports, copied reviews)."""

from __future__ import annotations

from typing import Optional

from pydantic import field_validator

from ..common.contracts import (
    FrozenContract,
    PageSentiment,
    coerce_str_list,
    normalize_label,
    safe_clamp_int,
)
from ..page_extract.contracts import ExtractedFeedback

MAX_FEEDBACKS = 50
MAX_POINTS = 5

SOURCE_LABELS: dict[str, str] = {
    "google_form": "Google Form responses",
    "google_review": "Google Reviews",
    "survey": "Survey responses",
    "email": "Email feedback",
    "other": "External feedback",
}


class PastedFeedback(ExtractedFeedback):
    confidence: int = 50  # 0-100

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v):
        return safe_clamp_int(v, 0, 100, default=50)


class SentimentDistribution(FrozenContract):
    very_positive: int = 0  # 5 stars
    positive: int = 0  # 4 stars
    neutral: int = 0  # 3 stars
    negative: int = 0  # 2 stars
    very_negative: int = 0  # 1 star

    @field_validator("*", mode="before")
    @classmethod
    def _count(cls, v):
        return safe_clamp_int(v, 0, 1_000_000, default=0)

    @classmethod
    def from_ratings(cls, ratings: list[int]) -> SentimentDistribution:
        return cls(
            very_positive=ratings.count(5),
            positive=ratings.count(4),
            neutral=ratings.count(3),
            negative=ratings.count(2),
            very_negative=ratings.count(1),
        )


class PasteSummaryReport(FrozenContract):
    overall_sentiment: PageSentiment = "neutral"
    overall_score: int = 0  # 0-100
    overall_summary: str = ""
    total_found: int = 0
    positive_count: int = 0
    negative_count: int = 0
    neutral_count: int = 0
    average_rating: float = 3.0  # 1.0-5.0
    feedbacks: tuple[PastedFeedback, ...] = ()
    top_positive_points: tuple[str, ...] = ()
    top_negative_points: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    sentiment_distribution: SentimentDistribution = SentimentDistribution()
    key_themes: tuple[str, ...] = ()
    accuracy: int = 0  # 0-100
    note: Optional[str] = None

    @field_validator("overall_sentiment", mode="before")
    @classmethod
    def _overall(cls, v):
        label = normalize_label(v)
        return label if label in ("positive", "negative", "mixed", "neutral") else "neutral"

    @field_validator("overall_score", "accuracy", mode="before")
    @classmethod
    def _percent(cls, v):
        return safe_clamp_int(v, 0, 100, default=0)

    @field_validator("total_found", "positive_count", "negative_count", "neutral_count", mode="before")
    @classmethod
    def _count(cls, v):
        return safe_clamp_int(v, 0, 1_000_000, default=0)

    @field_validator("average_rating", mode="before")
    @classmethod
    def _average(cls, v):
        try:
            value = float(v)
        except (TypeError, ValueError):
            return 3.0
        if value != value:
            return 3.0
        return round(max(1.0, min(5.0, value)), 1)

    @field_validator("top_positive_points", "top_negative_points", "recommendations", "key_themes", mode="before")
    @classmethod
    def _points(cls, v):
        try:
            return coerce_str_list(v, limit=MAX_POINTS)
        except ValueError:
            return []


EMPTY_PASTE_REPORT = PasteSummaryReport(
    overall_sentiment="neutral",
    overall_score=0,
    overall_summary="No text provided for analysis",
)
