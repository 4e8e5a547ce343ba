"""Keyword-based sentiment heuristics used when the classifier is unavailable.

Every function here is total and deterministic: same text, same answer, no
exceptions for any string input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

FALLBACK_NOTE = "AI service temporarily unavailable - using keyword-based analysis"

POSITIVE_TERMS = (
    "good", "great", "excellent", "amazing", "love", "loved", "lovely", "best",
    "wonderful", "fantastic", "happy", "pleased", "satisfied", "recommend",
    "awesome", "perfect", "nice", "friendly", "delicious", "tasty", "fresh",
    "clean", "quick", "helpful", "polite", "courteous", "beautiful", "comfortable",
    "outstanding", "superb", "brilliant", "exceptional", "impressive", "impressed",
    "enjoy", "enjoyed", "pleasant", "welcoming", "cozy", "affordable", "fair price",
    "favorite", "favourite", "reliable", "professional", "attentive", "spotless",
    "thank", "thanks", "grateful", "appreciate", "will be back", "highly recommend",
    "top notch", "worth it", "well done", "exceeded",
)

NEGATIVE_TERMS = (
    "bad", "terrible", "awful", "worst", "hate", "hated", "horrible", "poor",
    "disappointed", "disappointing", "rude", "slow", "dirty", "overpriced",
    "complaint", "complain", "waste", "cold", "stale", "bland", "tasteless",
    "unhelpful", "unprofessional", "disgusting", "gross", "mediocre", "boring",
    "unpleasant", "unfriendly", "lousy", "dreadful", "worse", "annoying",
    "frustrated", "frustrating", "uncomfortable", "noisy", "undercooked",
    "overcooked", "soggy", "never again", "not worth", "stay away", "avoid",
    "regret", "scam", "rip off", "ripoff", "misleading", "unhappy", "angry",
    "unacceptable", "inedible", "broken", "refund", "ignored", "long wait",
)

# Phrases that flip an otherwise positive term.
NEGATED_TERMS = (
    "not good", "not great", "not recommend", "not happy", "not satisfied",
    "not clean", "not fresh", "not friendly", "not worth", "wouldn't recommend",
    "would not recommend", "don't recommend", "do not recommend",
)

CATEGORY_TERMS: dict[str, tuple[str, ...]] = {
    "Service": (
        "service", "wait", "waiting", "served", "order", "booking", "reservation",
        "delivery", "response", "support", "slow", "quick",
    ),
    "Quality": (
        "quality", "food", "taste", "flavor", "flavour", "dish", "meal", "fresh",
        "stale", "product", "broken", "cooked", "portion", "ingredient",
    ),
    "Price": (
        "price", "priced", "cost", "expensive", "cheap", "overpriced", "value",
        "affordable", "bill", "money", "refund", "charge",
    ),
    "Ambiance": (
        "ambiance", "ambience", "atmosphere", "decor", "music", "noisy", "lighting",
        "seating", "cozy", "crowded", "clean", "dirty", "view",
    ),
    "Staff": (
        "staff", "waiter", "waitress", "server", "manager", "employee", "rude",
        "polite", "friendly", "attentive", "courteous", "team", "host",
    ),
}

DEFAULT_CATEGORY = "Other"

_STAR_RE = re.compile(r"\b([1-5])\s*(?:/\s*5|out of 5|stars?)\b|([★]{1,5})")
_WORD_BOUNDARY_CACHE: dict[str, re.Pattern[str]] = {}


@dataclass(frozen=True)
class KeywordScore:
    positive: int
    negative: int

    @property
    def total(self) -> int:
        return self.positive + self.negative

    @property
    def sentiment(self) -> str:
        if self.positive > self.negative:
            return "positive"
        if self.negative > self.positive:
            return "negative"
        return "neutral"


def _term_pattern(term: str) -> re.Pattern[str]:
    pattern = _WORD_BOUNDARY_CACHE.get(term)
    if pattern is None:
        pattern = re.compile(r"(?<!\w)" + re.escape(term) + r"(?!\w)")
        _WORD_BOUNDARY_CACHE[term] = pattern
    return pattern


def _count_terms(text: str, terms: tuple[str, ...]) -> int:
    return sum(1 for term in terms if _term_pattern(term).search(text))


def score_text(text: str | None) -> KeywordScore:
    lower = (text or "").lower()
    positive = _count_terms(lower, POSITIVE_TERMS)
    negative = _count_terms(lower, NEGATIVE_TERMS)

    star = _STAR_RE.search(lower)
    if star:
        stars = int(star.group(1)) if star.group(1) else len(star.group(2))
        if stars >= 4:
            positive += 3
        elif stars == 3:
            positive += 1
        else:
            negative += 3

    for phrase in NEGATED_TERMS:
        if phrase in lower:
            positive = max(0, positive - 2)
            negative += 2

    return KeywordScore(positive=positive, negative=negative)


def detect_category(text: str | None) -> str:
    lower = (text or "").lower()
    best, best_count = DEFAULT_CATEGORY, 0
    for category, terms in CATEGORY_TERMS.items():
        count = _count_terms(lower, terms)
        if count > best_count:
            best, best_count = category, count
    return best


def estimate_rating(score: KeywordScore) -> int:
    """Map a keyword score to a 1-5 star estimate."""
    if score.positive > score.negative:
        return min(5, 3 + (score.positive - score.negative + 1) // 2)
    if score.negative > score.positive:
        return max(1, 3 - (score.negative - score.positive + 1) // 2)
    return 3


_NUMBERED_SPLIT = re.compile(r"\n\s*\d+[.)]\s*")
_BLANK_LINE_SPLIT = re.compile(r"\n\s*\n")
_SEPARATOR_SPLIT = re.compile(r"\n\s*[-=*★_]{3,}\s*\n")


def split_into_reviews(text: str | None) -> list[str]:
    """Split pasted text into individual reviews, best strategy first."""
    text = (text or "").strip()
    if not text:
        return []

    strategies = (
        (_NUMBERED_SPLIT, 10),
        (_BLANK_LINE_SPLIT, 10),
        (_SEPARATOR_SPLIT, 10),
        (re.compile(r"\n"), 15),
    )
    for splitter, min_len in strategies:
        parts = [part.strip() for part in splitter.split("\n" + text)]
        reviews = [part for part in parts if len(part) > min_len]
        if len(reviews) > 1:
            return reviews

    return [text]
