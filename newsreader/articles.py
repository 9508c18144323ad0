"""Article service: classify → resolve → fetch → extract → gate → cache.

:meth:`ArticleService.extract` is the single entry point used by the API and
the CLI.  It always returns a fully populated :class:`ExtractionResult`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

import httpx
import structlog

from newsreader.cache.service import CacheService
from newsreader.config import Settings
from newsreader.resolver.resolver import Resolver
from newsreader.scraper.extractor import extract_article
from newsreader.scraper.fetcher import fetch_page
from newsreader.scraper.headless import HeadlessRenderer, NullRenderer
from newsreader.scraper.models import ExtractionResult, FetchFailure
from newsreader.scraper.quality import detect_paywall, detect_shell_page, evaluate_quality
from newsreader.telemetry.recorder import (
    Stopwatch,
    TelemetryEvent,
    TelemetryRecorder,
    is_playwright_candidate,
    safe_host,
    truncate,
)
from newsreader.telemetry.taxonomy import ExtractStatus, FailureReason, status_for_reason
from newsreader.urls import cache_key_for, classify_url, validate_url

logger = structlog.get_logger(__name__)

NO_READER_ERROR = (
    "Could not extract article content. "
    "This site may not be supported or may require JavaScript."
)


@dataclass
class _Attempt:
    """Diagnostics accumulated while handling one request."""

    url: str
    resolved_url: str = ""
    fetched_url: str = ""
    http_status: int | None = None
    content_type: str = ""
    methods_tried: tuple[str, ...] = ()
    playwright_used: bool = False
    cache_status: str = "miss"
    cache_mode: str = "normal"
    cache_layer: str | None = None
    cache_age_sec: int | None = None
    cache_ttl_sec: int | None = None
    compute_ms: int | None = None

    def result(self, **fields) -> ExtractionResult:
        return ExtractionResult(
            url=self.url,
            resolved_url=self.resolved_url,
            fetched_url=self.fetched_url,
            http_status=self.http_status,
            content_type=self.content_type,
            methods_tried=self.methods_tried,
            playwright_used=self.playwright_used,
            cache_status=self.cache_status,
            **fields,
        )

    def failure(self, reason: FailureReason, error: str, fragile: bool = False, **fields) -> ExtractionResult:
        return self.result(
            success=False,
            status=status_for_reason(reason, fragile),
            reason=reason,
            error=error,
            **fields,
        )


class ArticleService:
    def __init__(
        self,
        settings: Settings,
        cache: CacheService,
        resolver: Resolver,
        recorder: TelemetryRecorder,
        renderer: HeadlessRenderer | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self.resolver = resolver
        self.recorder = recorder
        self.renderer = renderer or NullRenderer()
        self._client = client

    def extract(self, url: str, refresh: bool = False) -> ExtractionResult:
        """Retrieve the readable article behind *url*.  Never raises.

        Args:
            url: Publisher URL or aggregator wrapper URL.
            refresh: Skip cache reads (the fresh result is still cached).
        """
        watch = Stopwatch()
        attempt = _Attempt(url=str(url or ""))
        try:
            result = self._extract(attempt, refresh)
        except Exception as exc:
            logger.exception("articles.unexpected_error", host=safe_host(attempt.url))
            result = attempt.failure(FailureReason.UNKNOWN, f"Internal error: {type(exc).__name__}")
        self._record(result, attempt, watch.elapsed_ms())
        return result

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _extract(self, attempt: _Attempt, refresh: bool) -> ExtractionResult:
        classification = classify_url(attempt.url, self.settings)
        if not classification.valid:
            return attempt.failure(FailureReason.INVALID_URL, classification.message)

        key = cache_key_for(attempt.url)
        if refresh:
            attempt.cache_status = "bypass"
            attempt.cache_mode = "refresh_bypass"
        else:
            cached = self.cache.cached_extraction(key)
            if cached is not None:
                attempt.cache_status = "hit"
                attempt.cache_layer = cached.layer
                attempt.cache_age_sec = int(cached.age_seconds)
                attempt.cache_ttl_sec = int(cached.ttl_seconds)
                return replace(cached.result, cache_status="hit")

        compute = Stopwatch()
        result = self._compute(attempt, classification.is_wrapped)
        attempt.compute_ms = compute.elapsed_ms()
        self.cache.remember_extraction(key, result)
        return result

    def _compute(self, attempt: _Attempt, is_wrapped: bool) -> ExtractionResult:
        target = attempt.url
        if is_wrapped:
            resolution = self.resolver.resolve(attempt.url)
            attempt.methods_tried = resolution.methods_tried
            if not resolution.success:
                return attempt.failure(resolution.reason or FailureReason.UNKNOWN, resolution.error)
            target = resolution.publisher_url
        attempt.resolved_url = target

        check = validate_url(target)
        if not check.ok:
            return attempt.failure(FailureReason.INVALID_URL, check.message)

        host = safe_host(target)
        fragile = self.settings.is_fragile(host)
        page = fetch_page(target, self.settings, self._client)

        if isinstance(page, FetchFailure):
            attempt.fetched_url = page.final_url
            attempt.http_status = page.http_status
            attempt.content_type = page.content_type
            if page.blocked:
                rendered = self._render(attempt, target)
                if rendered is not None and rendered.success:
                    return rendered
            return attempt.failure(page.reason, page.error, fragile, blocked_detected=page.blocked)

        attempt.fetched_url = page.final_url
        attempt.http_status = page.http_status
        attempt.content_type = page.content_type
        result = self._finalize(attempt, page.html, page.final_url)
        if not result.success and self._should_render(result, host):
            rendered = self._render(attempt, target)
            if rendered is not None:
                return rendered
            return replace(result, playwright_used=attempt.playwright_used)
        return result

    def _should_render(self, result: ExtractionResult, host: str) -> bool:
        if result.status is ExtractStatus.BLOCKED:
            return True
        return self.settings.needs_rendering(host) and len(result.text_content) < self.settings.min_text_length

    def _render(self, attempt: _Attempt, target: str) -> ExtractionResult | None:
        if not self.renderer.available:
            return None
        attempt.playwright_used = True
        rendered = self.renderer.render(target)
        if rendered is None:
            return None
        attempt.fetched_url = rendered.final_url
        return self._finalize(attempt, rendered.html, rendered.final_url)

    def _finalize(self, attempt: _Attempt, html: str, base_url: str) -> ExtractionResult:
        """Shell detection, then the quality gate.  Used by every extraction path."""
        host = safe_host(base_url)
        fragile = self.settings.is_fragile(host)
        article = extract_article(html, base_url, self.settings.min_text_length)
        if article is None:
            return attempt.failure(FailureReason.READABILITY_EMPTY, NO_READER_ERROR, fragile)

        partial = {
            "title": article.title,
            "text_content": article.text_content,
            "length": len(article.text_content),
            "extractor": article.extractor,
        }
        shell = detect_shell_page(article.title, article.text_content, host, self.settings)
        if shell.is_shell:
            return attempt.failure(
                FailureReason.BLOCKED,
                f"Publisher served a placeholder page ({shell.signal})",
                fragile,
                blocked_detected=True,
                **partial,
            )

        verdict = evaluate_quality(
            article.title,
            article.text_content,
            self.settings.min_title_length,
            self.settings.min_text_length,
        )
        if not verdict:
            reason = FailureReason.PAYWALL if detect_paywall(html) else FailureReason.QUALITY_GATE_FAILED
            return attempt.failure(
                reason, f"Extracted content failed quality checks ({verdict.reason})", fragile, **partial
            )

        return attempt.result(
            success=True,
            status=ExtractStatus.OK,
            byline=article.byline,
            site_name=article.site_name,
            content_html=article.content_html,
            excerpt=article.excerpt,
            quality_gate_passed=True,
            **partial,
        )

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------
    def _record(self, result: ExtractionResult, attempt: _Attempt, duration_ms: int) -> None:
        self.recorder.emit(
            TelemetryEvent(
                stage="extract",
                domain=safe_host(result.resolved_url or result.url),
                ok=result.success,
                duration_ms=duration_ms,
                reason=result.reason,
                methods_tried=result.methods_tried,
                cache_status=attempt.cache_status,
                cached=attempt.cache_status == "hit",
                error_message=None if result.success else result.error,
                details={
                    "status": result.status.value,
                    "http_status": result.http_status,
                    "content_type": truncate(result.content_type, 60),
                    "blocked_detected": result.blocked_detected,
                    "title_length": len(result.title),
                    "text_length": len(result.text_content),
                    "extractor": result.extractor or None,
                    "readability_ok": result.extractor == "readability",
                    "quality_gate_passed": result.quality_gate_passed,
                    "playwright_used": result.playwright_used,
                    "playwright_candidate": None if result.success else is_playwright_candidate(
                        result.http_status, result.reason, content_empty=not result.text_content
                    ),
                    "cache_mode": attempt.cache_mode,
                    "cache_layer": attempt.cache_layer,
                    "cache_age_sec": attempt.cache_age_sec,
                    "cache_ttl_sec": attempt.cache_ttl_sec,
                    "compute_ms": attempt.compute_ms,
                },
            )
        )
