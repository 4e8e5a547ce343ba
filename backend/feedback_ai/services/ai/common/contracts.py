"""Shared contract helpers - frozen camelCase models and numeric coercion."""

from __future__ import annotations

import math
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

Sentiment = Literal["positive", "negative", "neutral"]
OverallSentiment = Literal["positive", "negative", "mixed"]
PageSentiment = Literal["positive", "negative", "mixed", "neutral"]


class FrozenContract(BaseModel):
    """Immutable result model; snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        validate_by_name=True,
        populate_by_name=True,
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def clamp_int(value: Any, low: int, high: int, *, default: int) -> int:
    """Coerce *value* to an int within ``[low, high]``.

    ``None`` yields *default*.  Non-numeric values raise ``ValueError`` so the
    surrounding model validation reports a schema violation.
    """
    if value is None:
        return default
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"expected a number, got {value!r}") from exc
    if math.isnan(number):
        return default
    if math.isinf(number):
        return high if number > 0 else low
    return max(low, min(high, int(round(number))))


def safe_clamp_int(value: Any, low: int, high: int, *, default: int) -> int:
    """Like ``clamp_int`` but substitutes *default* for non-numeric input."""
    try:
        return clamp_int(value, low, high, default=default)
    except ValueError:
        return default


def coerce_str_list(value: Any, *, limit: int | None = None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"expected a list of strings, got {type(value).__name__}")
    items = [str(item).strip() for item in value if item is not None and str(item).strip()]
    return items[:limit] if limit is not None else items


def normalize_label(value: Any) -> str:
    return str(value or "").lower().strip()


def truncate_text(text: str, limit: int) -> str:
    """Cut *text* to *limit* chars, ending with ``...`` when shortened."""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
