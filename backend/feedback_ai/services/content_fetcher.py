"""SSRF-guarded page fetcher used by page extraction and URL validation.

The destination guard inspects the hostname *text* only; a public name that
resolves to a private address is not caught (no DNS lookup is performed).
Redirect hops are re-checked before each request goes out.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import re
from dataclasses import dataclass

import httpx

from feedback_ai.core.config import get_settings
from feedback_ai.core.errors import FailureReason

from .platforms import detect_platform, normalize_url

logger = logging.getLogger(__name__)

FETCH_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

_BLOCKED_HOST_PATTERNS = (
    re.compile(r"^localhost$"),
    re.compile(r"^127\."),
    re.compile(r"^0\."),
    re.compile(r"^10\."),
    re.compile(r"^172\.(1[6-9]|2[0-9]|3[01])\."),
    re.compile(r"^192\.168\."),
    re.compile(r"^169\.254\."),
    re.compile(r"^::1$"),
    re.compile(r"^fe[89ab][0-9a-f]:"),
    re.compile(r"\.local$"),
    re.compile(r"\.internal$"),
)

_REDIRECT_OK = {301, 302, 303, 307, 308}

ERROR_MESSAGES: dict[FailureReason, str] = {
    FailureReason.INVALID_URL: "Only HTTP/HTTPS URLs are allowed",
    FailureReason.SSRF_BLOCKED: "URL points to a restricted address",
    FailureReason.TIMEOUT: "Request timed out. The page took too long to load.",
    FailureReason.NETWORK_ERROR: "Could not reach the page",
}


class BlockedDestinationError(Exception):
    """Raised from the request hook when a redirect targets a blocked host."""


@dataclass(frozen=True)
class FetchResult:
    url: str
    html: str = ""
    status: int | None = None
    error: FailureReason | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class UrlValidation:
    valid: bool
    platform: str = ""
    label: str = ""
    message: str = ""
    warning: str | None = None
    error: str | None = None


def is_blocked_host(hostname: str) -> bool:
    host = (hostname or "").strip().lower().strip("[]").rstrip(".")
    if not host:
        return True
    if any(pattern.search(host) for pattern in _BLOCKED_HOST_PATTERNS):
        return True
    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        return False
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return ip.is_loopback or ip.is_private or ip.is_link_local or ip.is_unspecified


def check_url(url: str | None) -> tuple[httpx.URL | None, FailureReason | None]:
    """Validate scheme and destination without touching the network."""
    if not url or not url.strip():
        return None, FailureReason.INVALID_URL
    try:
        parsed = httpx.URL(url.strip())
    except (httpx.InvalidURL, ValueError, TypeError):
        return None, FailureReason.INVALID_URL
    if parsed.scheme not in ("http", "https") or not parsed.host:
        return None, FailureReason.INVALID_URL
    if is_blocked_host(parsed.host):
        return None, FailureReason.SSRF_BLOCKED
    return parsed, None


async def _guard_request(request: httpx.Request) -> None:
    if is_blocked_host(request.url.host):
        raise BlockedDestinationError(request.url.host)


def _failure(url: str, reason: FailureReason, *, status: int | None = None) -> FetchResult:
    if reason == FailureReason.FETCH_FAILED:
        message = f"Failed to fetch URL (status {status})"
    else:
        message = ERROR_MESSAGES.get(reason, "Failed to fetch URL")
    return FetchResult(url=url, status=status, error=reason, message=message)


class ContentFetcher:
    def __init__(
        self,
        timeout_seconds: float | None = None,
        *,
        probe_timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._timeout = timeout_seconds or settings.fetch_timeout_seconds
        self._probe_timeout = probe_timeout_seconds or settings.probe_timeout_seconds
        self._transport = transport

    def _client(self, timeout: float, *, follow_redirects: bool) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=follow_redirects,
            headers=FETCH_HEADERS,
            transport=self._transport,
            event_hooks={"request": [_guard_request]},
        )

    async def _send(self, method: str, url: str, timeout: float, *, follow_redirects: bool) -> httpx.Response:
        async with self._client(timeout, follow_redirects=follow_redirects) as client:
            # wait_for bounds the whole exchange, including redirects and body read.
            return await asyncio.wait_for(client.request(method, url), timeout=timeout)

    async def fetch(self, url: str | None) -> FetchResult:
        parsed, reason = check_url(url)
        if reason is not None:
            logger.warning("Fetch rejected (%s): %r", reason.value, url)
            return _failure(url or "", reason)

        fetch_url = normalize_url(str(parsed))
        if fetch_url != str(parsed):
            logger.info("Normalized %s -> %s", parsed, fetch_url)

        try:
            resp = await self._send("GET", fetch_url, self._timeout, follow_redirects=True)
        except BlockedDestinationError as exc:
            logger.warning("Redirect to restricted host %s blocked", exc)
            return _failure(fetch_url, FailureReason.SSRF_BLOCKED)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("Fetch timed out after %.1fs: %s", self._timeout, fetch_url)
            return _failure(fetch_url, FailureReason.TIMEOUT)
        except httpx.HTTPError as exc:
            logger.warning("Fetch failed for %s: %s", fetch_url, exc)
            return _failure(fetch_url, FailureReason.NETWORK_ERROR)

        if not resp.is_success:
            logger.warning("Fetch of %s returned status %s", fetch_url, resp.status_code)
            return _failure(fetch_url, FailureReason.FETCH_FAILED, status=resp.status_code)

        return FetchResult(url=fetch_url, html=resp.text, status=resp.status_code)

    async def probe(self, url: str | None) -> FetchResult:
        """HEAD the URL without following redirects; 2xx and 3xx count as reachable."""
        parsed, reason = check_url(url)
        if reason is not None:
            return _failure(url or "", reason)

        target = str(parsed)
        try:
            resp = await self._send("HEAD", target, self._probe_timeout, follow_redirects=False)
        except BlockedDestinationError:
            return _failure(target, FailureReason.SSRF_BLOCKED)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return _failure(target, FailureReason.TIMEOUT)
        except httpx.HTTPError as exc:
            logger.info("Probe failed for %s: %s", target, exc)
            return _failure(target, FailureReason.NETWORK_ERROR)

        if resp.is_success or resp.status_code in _REDIRECT_OK:
            return FetchResult(url=target, status=resp.status_code)
        return _failure(target, FailureReason.FETCH_FAILED, status=resp.status_code)


async def validate_review_url(url: str | None, *, fetcher: ContentFetcher | None = None) -> UrlValidation:
    """Check that *url* is a well-formed, allowed review link.

    Unreachable or non-2xx links stay valid with a warning; only malformed
    or restricted URLs are rejected.
    """
    parsed, reason = check_url(url)
    if reason == FailureReason.INVALID_URL:
        return UrlValidation(
            valid=False,
            error="Invalid URL format. Please enter a valid URL starting with http:// or https://",
        )
    if reason == FailureReason.SSRF_BLOCKED:
        return UrlValidation(
            valid=False,
            error="URL points to a restricted address and cannot be validated",
        )

    platform = detect_platform(str(parsed))
    probe = await (fetcher or ContentFetcher()).probe(str(parsed))

    if probe.ok:
        return UrlValidation(
            valid=True,
            platform=platform.key,
            label=platform.label,
            message=f"{platform.label} URL is valid and accessible",
        )
    if probe.error == FailureReason.FETCH_FAILED:
        return UrlValidation(
            valid=True,
            platform=platform.key,
            label=platform.label,
            message="URL format is valid",
            warning=f"URL returned status {probe.status}, but format is correct",
        )
    return UrlValidation(
        valid=True,
        platform=platform.key,
        label=platform.label,
        message="URL format is valid",
        warning="Could not verify accessibility, but URL format appears correct",
    )
