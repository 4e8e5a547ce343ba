"""AI audit - one structured log line per successful classifier run.

Nothing is persisted here; the line is the audit record.  Prompt and response
are always hashed; raw text is only included when ``AI_DEBUG_STORE_RAW=true``.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any

from feedback_ai.core.config import get_settings

from .providers.base import ProviderResult

logger = logging.getLogger(__name__)

SCOPE_ACTIONS: dict[str, str] = {
    "sentiment": "AI_FEEDBACK_CLASSIFIED",
    "external": "AI_EXTERNAL_FEEDBACK_CLASSIFIED",
    "bulk": "AI_BULK_SUMMARY_GENERATED",
    "page_extract": "AI_PAGE_FEEDBACK_EXTRACTED",
    "paste_summary": "AI_PASTED_SUMMARY_ANALYZED",
}


def build_audit_record(
    *,
    scope: str,
    provider_result: ProviderResult,
    prompt_text: str,
    parsed_output: dict[str, Any] | None,
    extra_meta: dict[str, Any] | None = None,
) -> dict[str, Any]:
    settings = get_settings()

    record: dict[str, Any] = {
        "action": SCOPE_ACTIONS.get(scope, "AI_RUN"),
        "scope": scope,
        "provider": provider_result.provider,
        "model": provider_result.model,
        "prompt_tokens": provider_result.prompt_tokens,
        "completion_tokens": provider_result.completion_tokens,
        "total_tokens": provider_result.total_tokens,
        "latency_ms": provider_result.latency_ms,
        "prompt_hash": hashlib.sha256(prompt_text.encode()).hexdigest(),
        "response_hash": hashlib.sha256(provider_result.raw_text.encode()).hexdigest(),
        "output_keys": sorted(parsed_output) if parsed_output else [],
    }

    if settings.ai_debug_store_raw:
        record["prompt_raw"] = prompt_text
        record["response_raw"] = provider_result.raw_text

    if extra_meta:
        record.update(extra_meta)

    return record


def log_ai_run(
    *,
    scope: str,
    provider_result: ProviderResult | None,
    prompt_text: str,
    parsed_output: dict[str, Any] | None,
    extra_meta: dict[str, Any] | None = None,
) -> None:
    if provider_result is None:
        return
    record = build_audit_record(
        scope=scope,
        provider_result=provider_result,
        prompt_text=prompt_text,
        parsed_output=parsed_output,
        extra_meta=extra_meta,
    )
    logger.info("AI_RUN %s", record)
