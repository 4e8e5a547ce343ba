"""Failure taxonomy shared by the gateway, the fetcher and the analysis scopes."""

from __future__ import annotations

from enum import Enum


class FailureReason(str, Enum):
    DISABLED = "DISABLED"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    SSRF_BLOCKED = "SSRF_BLOCKED"
    CONTENT_TOO_SPARSE = "CONTENT_TOO_SPARSE"
    INVALID_URL = "INVALID_URL"
    FETCH_FAILED = "FETCH_FAILED"
