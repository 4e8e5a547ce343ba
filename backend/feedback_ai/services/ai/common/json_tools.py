"""JSON recovery from classifier output.

Generated text is untrusted: it may be wrapped in markdown fences, prefixed
with prose, or not JSON at all.  ``parse_json_object`` never raises; it
returns a tagged ``ParseOutcome``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_VALUE_START_RE = re.compile(r"[\[{]")
_decoder = json.JSONDecoder()


@dataclass(frozen=True)
class ParseOutcome:
    ok: bool
    value: dict[str, Any] | None = None
    error: str = ""


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def extract_json(text: str | None) -> dict | list | None:
    """Return the first JSON object or array embedded in *text*, else ``None``.

    The whole (fence-stripped) text is tried first; after that each ``{`` or
    ``[`` is used as a decode start, so leading prose and trailing chatter
    are ignored.
    """
    if not text or not text.strip():
        return None

    stripped = strip_code_fences(text)
    try:
        return json.loads(stripped)
    except ValueError:
        pass

    for match in _VALUE_START_RE.finditer(stripped):
        try:
            value, _end = _decoder.raw_decode(stripped, match.start())
        except ValueError:
            continue
        return value

    return None


def parse_json_object(text: str | None) -> ParseOutcome:
    """Extract a JSON *object* from *text* as a tagged outcome."""
    if not text or not text.strip():
        return ParseOutcome(ok=False, error="empty response")

    parsed = extract_json(text)
    if parsed is None:
        logger.debug("No JSON in classifier output (%d chars)", len(text))
        return ParseOutcome(ok=False, error="no JSON found in response")
    if not isinstance(parsed, dict):
        return ParseOutcome(ok=False, error=f"expected JSON object, got {type(parsed).__name__}")
    return ParseOutcome(ok=True, value=parsed)
