"""Data models for the fetch → extract pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from newsreader.telemetry.taxonomy import ExtractStatus, FailureReason


@dataclass(frozen=True)
class FetchedPage:
    """A successful HTML retrieval."""

    url: str
    final_url: str
    html: str
    http_status: int
    content_type: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FetchFailure:
    """A retrieval that ended before any HTML could be parsed."""

    url: str
    reason: FailureReason
    error: str
    final_url: str = ""
    http_status: int | None = None
    content_type: str = ""
    blocked: bool = False


@dataclass(frozen=True)
class RenderedPage:
    """HTML captured from the headless browser fallback."""

    url: str
    final_url: str
    html: str
    matched_selector: str | None = None


@dataclass(frozen=True)
class ExtractedArticle:
    """A candidate article produced by one of the extractors."""

    title: str
    text_content: str
    content_html: str
    extractor: str
    byline: str = ""
    site_name: str = ""
    excerpt: str = ""


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of content retrieval for one URL.

    Every field has an empty default so the wire shape is always complete.
    """

    url: str
    success: bool = False
    status: ExtractStatus = ExtractStatus.NO_READER
    reason: FailureReason | None = None
    error: str = ""
    title: str = ""
    byline: str = ""
    site_name: str = ""
    content_html: str = ""
    text_content: str = ""
    excerpt: str = ""
    length: int = 0
    resolved_url: str = ""
    http_status: int | None = None
    content_type: str = ""
    cache_status: str = "miss"
    # Diagnostics
    fetched_url: str = ""
    playwright_used: bool = False
    extractor: str = ""
    methods_tried: tuple[str, ...] = ()
    blocked_detected: bool = False
    quality_gate_passed: bool = False

    def __post_init__(self) -> None:
        # Closed enum at the boundary: raises ValueError on anything else.
        object.__setattr__(self, "status", ExtractStatus(self.status))
        if self.success and not self.quality_gate_passed:
            raise ValueError("A successful extraction must have passed the quality gate")

    def to_dict(self, debug: bool = False) -> dict[str, Any]:
        """Render the response body (camelCase, every key present)."""
        payload: dict[str, Any] = {
            "url": self.url,
            "success": self.success,
            "status": self.status.value,
            "reason": self.reason.value if self.reason else "",
            "error": self.error,
            "title": self.title,
            "byline": self.byline,
            "siteName": self.site_name,
            "contentHtml": self.content_html,
            "textContent": self.text_content,
            "excerpt": self.excerpt,
            "length": self.length,
            "resolvedUrl": self.resolved_url,
            "httpStatus": self.http_status,
            "contentType": self.content_type,
            "cacheStatus": self.cache_status,
        }
        if debug:
            payload["debug"] = {
                "fetchedUrl": self.fetched_url,
                "playwrightUsed": self.playwright_used,
                "extractor": self.extractor,
                "methodsTried": list(self.methods_tried),
                "blockedDetected": self.blocked_detected,
                "qualityGatePassed": self.quality_gate_passed,
                "titleLength": len(self.title),
                "textLength": len(self.text_content),
            }
        return payload

    # ------------------------------------------------------------------
    # L2 cache serialisation (successful extractions only)
    # ------------------------------------------------------------------
    def to_cache_payload(self) -> dict[str, Any]:
        return {
            "v": 1,
            "url": self.url,
            "title": self.title,
            "byline": self.byline,
            "siteName": self.site_name,
            "contentHtml": self.content_html,
            "textContent": self.text_content,
            "excerpt": self.excerpt,
            "length": self.length,
            "resolvedUrl": self.resolved_url,
            "httpStatus": self.http_status,
            "contentType": self.content_type,
            "extractor": self.extractor,
        }

    @classmethod
    def from_cache_payload(cls, data: dict[str, Any]) -> ExtractionResult | None:
        """Rebuild a cached success; ``None`` if the payload has the wrong shape."""
        if data.get("v") != 1 or not data.get("title") or not data.get("contentHtml"):
            return None
        return cls(
            url=data.get("url", ""),
            success=True,
            status=ExtractStatus.OK,
            title=data["title"],
            byline=data.get("byline", ""),
            site_name=data.get("siteName", ""),
            content_html=data["contentHtml"],
            text_content=data.get("textContent", ""),
            excerpt=data.get("excerpt", ""),
            length=int(data.get("length") or 0),
            resolved_url=data.get("resolvedUrl", ""),
            http_status=data.get("httpStatus"),
            content_type=data.get("contentType", ""),
            extractor=data.get("extractor", ""),
            quality_gate_passed=True,
        )
