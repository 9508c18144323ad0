"""Structured health telemetry for the resolve/extract pipeline.

Emits exactly one ``pipeline.health`` record per request per stage.

Rules:
- Every request is recorded, success or failure (no sampling)
- Only hostnames are logged, never full URLs, article HTML or extracted text
- Error messages are truncated to 300 characters
"""

from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any
from urllib.parse import urlsplit

import structlog

from newsreader.telemetry.taxonomy import FailureReason

logger = structlog.get_logger(__name__)

_MAX_ERROR_CHARS = 300


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def new_request_id() -> str:
    """Return a short (8 char) request identifier."""
    return uuid.uuid4().hex[:8]


def safe_host(url: str | None) -> str:
    """Return the host of *url* without a ``www.`` prefix, or ``"unknown"``."""
    if not url:
        return "unknown"
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return "unknown"
    if not host:
        return "unknown"
    return host[4:] if host.startswith("www.") else host


def truncate(text: str | None, max_len: int = _MAX_ERROR_CHARS) -> str | None:
    if not text:
        return None
    if len(text) <= max_len:
        return text
    return text[: max_len - 1] + "…"


def is_playwright_candidate(
    http_status: int | None,
    reason: FailureReason | None,
    content_empty: bool = False,
) -> bool:
    """Return ``True`` when a failure looks like it needs client-side rendering.

    That is: the server answered 200 (or never told us) but the content was
    empty or deliberately blocked.
    """
    if http_status not in (200, None):
        return False
    if reason in (FailureReason.READABILITY_EMPTY, FailureReason.BLOCKED):
        return True
    return content_empty


class Stopwatch:
    """Monotonic millisecond timer started on construction."""

    def __init__(self) -> None:
        self._start = time.monotonic()

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._start) * 1000)


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TelemetryEvent:
    """One observability record.  Write-only: the pipeline never reads it back."""

    stage: str
    domain: str
    ok: bool
    duration_ms: int
    request_id: str = field(default_factory=new_request_id)
    reason: FailureReason | None = None
    methods_tried: tuple[str, ...] = ()
    cache_status: str = "miss"
    cached: bool = False
    error_message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def fields(self) -> dict[str, Any]:
        """Flatten the event into log-ready key/value pairs."""
        payload = asdict(self)
        details = payload.pop("details")
        payload["route"] = f"/api/{self.stage}"
        payload["methods_tried"] = list(self.methods_tried)
        if self.ok:
            payload.pop("reason")
            payload.pop("error_message")
        else:
            payload["reason"] = (self.reason or FailureReason.UNKNOWN).value
            payload["error_message"] = truncate(self.error_message)
        payload.update({k: v for k, v in details.items() if v is not None})
        return payload


# ---------------------------------------------------------------------------
# Recorder
# ---------------------------------------------------------------------------

class TelemetryRecorder:
    """Writes :class:`TelemetryEvent` records to a structlog logger."""

    def __init__(self, enabled: bool = True, log: Any = None) -> None:
        self.enabled = enabled
        self._log = log if log is not None else logger

    def emit(self, event: TelemetryEvent) -> None:
        if not self.enabled:
            return
        if event.ok:
            self._log.info("pipeline.health", **event.fields())
        else:
            self._log.warning("pipeline.health", **event.fields())
