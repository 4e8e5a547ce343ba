"""Review-platform detection from URLs."""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class Platform:
    key: str
    label: str


CUSTOM_PLATFORM = Platform("custom", "Custom")

# First match wins; Google Maps variants are checked before Google Forms.
_PLATFORM_MARKERS: tuple[tuple[Platform, tuple[str, ...]], ...] = (
    (
        Platform("google", "Google Maps"),
        ("google.com/maps", "maps.google.com", "g.page", "goo.gl", "search.google.com/local"),
    ),
    (Platform("google_forms", "Google Forms"), ("docs.google.com/forms", "forms.gle")),
    (Platform("yelp", "Yelp"), ("yelp.com",)),
    (Platform("tripadvisor", "TripAdvisor"), ("tripadvisor.",)),
    (Platform("facebook", "Facebook"), ("facebook.com", "fb.com")),
    (Platform("trustpilot", "Trustpilot"), ("trustpilot.com",)),
    (Platform("zomato", "Zomato"), ("zomato.com",)),
    (Platform("swiggy", "Swiggy"), ("swiggy.com",)),
    (Platform("surveymonkey", "SurveyMonkey"), ("surveymonkey.",)),
    (Platform("typeform", "Typeform"), ("typeform.com",)),
    (Platform("jotform", "JotForm"), ("jotform.com",)),
    (Platform("amazon", "Amazon"), ("amazon.com", "amazon.in")),
    (Platform("booking", "Booking.com"), ("booking.com",)),
    (Platform("airbnb", "Airbnb"), ("airbnb.",)),
)

_GOOGLE_FORM_ID_RE = re.compile(r"/forms/d/((?:e/)?[a-zA-Z0-9_-]+)")


def detect_platform(url: str) -> Platform:
    lower = (url or "").lower()
    if "google.com" in lower and "review" in lower and "docs.google.com/forms" not in lower:
        return _PLATFORM_MARKERS[0][0]
    for platform, markers in _PLATFORM_MARKERS:
        if any(marker in lower for marker in markers):
            return platform
    return CUSTOM_PLATFORM


def normalize_url(url: str) -> str:
    """Rewrite known URL shapes to their publicly readable form.

    Google Forms ``/forms/d/<id>/edit`` (or any suffix) → ``/viewform``.
    """
    if "docs.google.com/forms" in url:
        match = _GOOGLE_FORM_ID_RE.search(url)
        if match:
            return f"https://docs.google.com/forms/d/{match.group(1)}/viewform"
    return url
