"""Contracts for externally sourced feedback (forms, surveys, emails)."""

from __future__ import annotations

from typing import Literal

from pydantic import field_validator, model_validator

from ..common.contracts import safe_clamp_int
from ..sentiment.contracts import ClassificationResult

Category = Literal["Service", "Quality", "Price", "Ambiance", "Staff", "Other"]

VALID_CATEGORIES: tuple[str, ...] = ("Service", "Quality", "Price", "Ambiance", "Staff", "Other")
_CATEGORY_LOOKUP = {name.lower(): name for name in VALID_CATEGORIES}
_CATEGORY_ALIASES = {
    "food quality": "Quality",
    "food": "Quality",
    "value": "Price",
    "pricing": "Price",
    "atmosphere": "Ambiance",
    "ambience": "Ambiance",
    "employees": "Staff",
    "general": "Other",
}

DEFAULT_RATING = 3


def normalize_category(value) -> str:
    key = str(value or "").strip().lower()
    return _CATEGORY_LOOKUP.get(key) or _CATEGORY_ALIASES.get(key) or "Other"


class ExternalClassification(ClassificationResult):
    """Classification plus an estimated star rating and a topic category."""

    rating: int = DEFAULT_RATING  # 1-5
    is_positive: bool
    category: Category = "Other"

    @model_validator(mode="before")
    @classmethod
    def _default_is_positive(cls, data):
        if not isinstance(data, dict):
            return data
        if data.get("isPositive") is None and data.get("is_positive") is None:
            rating = safe_clamp_int(data.get("rating"), 1, 5, default=DEFAULT_RATING)
            data = {k: v for k, v in data.items() if k not in ("isPositive", "is_positive")}
            data["is_positive"] = rating >= 4
        return data

    @field_validator("rating", mode="before")
    @classmethod
    def _clamp_rating(cls, v):
        return safe_clamp_int(v, 1, 5, default=DEFAULT_RATING)

    @field_validator("category", mode="before")
    @classmethod
    def _known_category(cls, v):
        return normalize_category(v)


EMPTY_EXTERNAL_RESULT = ExternalClassification(
    sentiment="neutral",
    confidence=50,
    summary="Empty feedback",
    rating=3,
    is_positive=False,
    category="Other",
)
