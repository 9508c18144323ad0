"""Publisher resolver: recover the real article URL behind a wrapper link."""

from __future__ import annotations

import httpx
import structlog

from newsreader.cache.service import CacheService
from newsreader.config import Settings
from newsreader.resolver.models import TIMEOUT_ERROR, UNRESOLVED_ERROR, ResolutionResult
from newsreader.resolver.strategies import STRATEGIES, ResolutionContext, ResolveTimeout, Strategy
from newsreader.telemetry.recorder import Stopwatch, TelemetryEvent, TelemetryRecorder, safe_host
from newsreader.telemetry.taxonomy import FailureReason
from newsreader.urls import classify_url, extract_article_token

logger = structlog.get_logger(__name__)


class Resolver:
    """Runs the ordered strategy chain with caching and telemetry.

    Args:
        settings: Runtime configuration.
        cache: Shared cache service; successes are stored keyed by the raw
            input URL.
        recorder: Telemetry sink; one record is emitted per call.
        client: Optional shared ``httpx.Client``.  When omitted, a client is
            opened for the duration of each call.
        strategies: Priority-ordered strategy list (tests may substitute).
    """

    def __init__(
        self,
        settings: Settings,
        cache: CacheService,
        recorder: TelemetryRecorder,
        client: httpx.Client | None = None,
        strategies: tuple[Strategy, ...] = STRATEGIES,
    ) -> None:
        self.settings = settings
        self.cache = cache
        self.recorder = recorder
        self._client = client
        self.strategies = strategies

    def resolve(self, url: str) -> ResolutionResult:
        """Resolve *url* to a publisher URL.  Never raises."""
        watch = Stopwatch()
        try:
            result = self._resolve(url)
        except Exception as exc:
            logger.exception("resolver.unexpected_error", host=safe_host(url))
            result = ResolutionResult(
                input_url=url,
                normalized_url=url,
                success=False,
                error=f"Internal error: {type(exc).__name__}",
                reason=FailureReason.UNKNOWN,
            )
        self._record(result, watch.elapsed_ms())
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _resolve(self, url: str) -> ResolutionResult:
        classification = classify_url(url, self.settings)
        if not classification.valid:
            return ResolutionResult(
                input_url=url,
                normalized_url=classification.normalized_url,
                success=False,
                error=FailureReason.INVALID_URL.value,
                reason=FailureReason.INVALID_URL,
            )

        cached = self.cache.cached_resolution(url)
        if cached is not None:
            return ResolutionResult(
                input_url=url,
                normalized_url=classification.normalized_url,
                success=True,
                publisher_url=cached.value,
                strategy="cache",
                methods_tried=("cache",),
                cache_status="hit",
            )

        normalized = classification.normalized_url
        token = extract_article_token(normalized) if classification.is_wrapped else None

        if self._client is not None:
            return self._run_chain(url, normalized, token, self._client)
        with httpx.Client(follow_redirects=True, timeout=self.settings.resolve_timeout) as client:
            return self._run_chain(url, normalized, token, client)

    def _run_chain(
        self, url: str, normalized: str, token: str | None, client: httpx.Client
    ) -> ResolutionResult:
        ctx = ResolutionContext(
            settings=self.settings, client=client, normalized_url=normalized, token=token
        )
        tried: list[str] = []
        for strategy in self.strategies:
            if strategy.requires_token and not token:
                continue
            tried.append(strategy.name)
            try:
                hit = strategy.run(ctx)
            except ResolveTimeout:
                logger.info("resolver.timeout", strategy=strategy.name, host=safe_host(normalized))
                return ResolutionResult(
                    input_url=url,
                    normalized_url=normalized,
                    success=False,
                    methods_tried=tuple(tried),
                    error=TIMEOUT_ERROR,
                    reason=FailureReason.TIMEOUT,
                )
            if hit is not None:
                self.cache.remember_resolution(url, hit.publisher_url)
                return ResolutionResult(
                    input_url=url,
                    normalized_url=normalized,
                    success=True,
                    publisher_url=hit.publisher_url,
                    strategy=hit.strategy,
                    methods_tried=tuple(tried),
                )

        return ResolutionResult(
            input_url=url,
            normalized_url=normalized,
            success=False,
            methods_tried=tuple(tried),
            error=UNRESOLVED_ERROR,
            reason=ctx.last_failure(),
        )

    def _record(self, result: ResolutionResult, duration_ms: int) -> None:
        cached = result.cache_status == "hit"
        self.recorder.emit(
            TelemetryEvent(
                stage="resolve",
                domain=safe_host(result.input_url),
                ok=result.success,
                duration_ms=duration_ms,
                reason=result.reason,
                methods_tried=result.methods_tried,
                cache_status=result.cache_status,
                cached=cached,
                error_message=None if result.success else result.error,
                details={
                    "resolved_host": safe_host(result.publisher_url) if result.success else None,
                    "is_wrapped": safe_host(result.input_url) == self.settings.aggregator_host,
                    "strategy": result.strategy,
                    "cache_ttl_sec": int(self.settings.resolve_cache_ttl) if cached else None,
                },
            )
        )
