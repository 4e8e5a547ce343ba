"""Feedback analysis endpoints: classify, summarize, extract from URL, pasted-text summary."""

from __future__ import annotations

import dataclasses
import logging

from fastapi import APIRouter
from pydantic import AliasChoices, BaseModel, Field

from feedback_ai.core.config import get_settings
from feedback_ai.services.ai.bulk.contracts import FeedbackItem

router = APIRouter(prefix="/feedback")

logger = logging.getLogger(__name__)


class ClassifyRequest(BaseModel):
    message: str = Field(default="", max_length=5000)


class ClassifyExternalRequest(BaseModel):
    text: str = Field(default="", max_length=20000)


class SummarizeRequest(BaseModel):
    feedbacks: list[FeedbackItem] = Field(default_factory=list)


class ExtractUrlRequest(BaseModel):
    url: str = Field(default="", max_length=2048)
    platform_label: str | None = Field(
        default=None,
        validation_alias=AliasChoices("platform_label", "platformLabel"),
    )


class SummarizeTextRequest(BaseModel):
    text: str = Field(default="", max_length=50000)
    source_type: str = Field(
        default="other",
        validation_alias=AliasChoices("source_type", "sourceType"),
    )


class ValidateUrlRequest(BaseModel):
    url: str = Field(default="", max_length=2048)


@router.post("/classify", summary="Classify a single feedback message")
async def classify_endpoint(body: ClassifyRequest):
    from feedback_ai.services.ai.sentiment.service import classify_single

    result = await classify_single(body.message)
    return result.to_wire()


@router.post("/classify-external", summary="Classify externally collected feedback text")
async def classify_external_endpoint(body: ClassifyExternalRequest):
    from feedback_ai.services.ai.external.service import classify_external

    result = await classify_external(body.text)
    return result.to_wire()


@router.post("/summarize", summary="Summarize a batch of stored feedback")
async def summarize_endpoint(body: SummarizeRequest):
    from feedback_ai.services.ai.bulk.service import summarize_bulk

    limit = get_settings().bulk_max_items
    feedbacks = body.feedbacks
    if len(feedbacks) > limit:
        logger.info("Summarize: request carried %d feedbacks, analyzing first %d", len(feedbacks), limit)
        feedbacks = feedbacks[:limit]

    report = await summarize_bulk(feedbacks)
    return report.to_wire()


@router.post("/extract-url", summary="Extract and analyze feedback found on a web page")
async def extract_url_endpoint(body: ExtractUrlRequest):
    from feedback_ai.services.ai.page_extract.service import extract_from_url

    result = await extract_from_url(body.url, body.platform_label)
    return result.to_wire()


@router.post("/summarize-text", summary="Analyze pasted bulk feedback text")
async def summarize_text_endpoint(body: SummarizeTextRequest):
    from feedback_ai.services.ai.paste_summary.service import summarize_pasted_text

    report = await summarize_pasted_text(body.text, body.source_type)
    return report.to_wire()


@router.post("/validate-url", summary="Check that a review link is well-formed and reachable")
async def validate_url_endpoint(body: ValidateUrlRequest):
    from feedback_ai.services.content_fetcher import validate_review_url

    result = await validate_review_url(body.url)
    return dataclasses.asdict(result)
