"""Closed failure taxonomy shared by resolution and extraction.

Every failure in the pipeline is expressed as a :class:`FailureReason`; the
response-level :class:`ExtractStatus` is derived from it and from nothing
else.
"""

from __future__ import annotations

from enum import Enum

import httpx


class FailureReason(str, Enum):
    TIMEOUT = "timeout"
    BLOCKED = "blocked"
    PAYWALL = "paywall"
    FETCH_ERROR = "fetch_error"
    HTTP_4XX = "http_4xx"
    HTTP_5XX = "http_5xx"
    NON_HTML = "non_html"
    READABILITY_EMPTY = "readability_empty"
    QUALITY_GATE_FAILED = "quality_gate_failed"
    INVALID_URL = "invalid_url"
    UNKNOWN = "unknown"


class ExtractStatus(str, Enum):
    OK = "ok"
    BLOCKED = "blocked"
    NO_READER = "no_reader"
    INVALID_URL = "invalid_url"


def status_for_reason(reason: FailureReason, fragile: bool = False) -> ExtractStatus:
    """Map a failure reason to the status reported at the response boundary.

    Content-quality failures on fragile domains are reported as ``blocked``
    because those publishers serve placeholder pages to automated clients.
    """
    if reason is FailureReason.INVALID_URL:
        return ExtractStatus.INVALID_URL
    if reason in (FailureReason.BLOCKED, FailureReason.PAYWALL):
        return ExtractStatus.BLOCKED
    if reason in (FailureReason.QUALITY_GATE_FAILED, FailureReason.READABILITY_EMPTY):
        return ExtractStatus.BLOCKED if fragile else ExtractStatus.NO_READER
    if reason in (
        FailureReason.TIMEOUT,
        FailureReason.FETCH_ERROR,
        FailureReason.HTTP_4XX,
        FailureReason.HTTP_5XX,
        FailureReason.NON_HTML,
        FailureReason.UNKNOWN,
    ):
        return ExtractStatus.NO_READER
    raise ValueError(f"Unhandled failure reason: {reason!r}")


def reason_for_http_status(status: int) -> FailureReason | None:
    """Bucket an HTTP status code; ``None`` for 2xx/3xx."""
    if status in (401, 403, 429):
        return FailureReason.BLOCKED
    if 400 <= status < 500:
        return FailureReason.HTTP_4XX
    if 500 <= status < 600:
        return FailureReason.HTTP_5XX
    return None


def reason_for_exception(exc: BaseException) -> FailureReason:
    """Bucket a transport-level exception raised by ``httpx``."""
    if isinstance(exc, httpx.TimeoutException):
        return FailureReason.TIMEOUT
    if isinstance(exc, (httpx.InvalidURL, httpx.UnsupportedProtocol)):
        return FailureReason.INVALID_URL
    if isinstance(exc, (httpx.TransportError, httpx.TooManyRedirects)):
        return FailureReason.FETCH_ERROR
    return FailureReason.UNKNOWN
