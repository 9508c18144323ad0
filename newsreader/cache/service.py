"""Cache service: one resolution cache and one extraction cache.

Constructed once at process start and injected into the resolver and the
article service.  Lifecycle: construct → serve → periodic sweep → shutdown.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace

import structlog

from newsreader.cache.l2 import RedisExtractStore
from newsreader.cache.store import CacheEntry, Clock, ExpiringCache
from newsreader.config import Settings
from newsreader.scraper.models import ExtractionResult

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CachedExtraction:
    result: ExtractionResult
    layer: str
    age_seconds: float
    ttl_seconds: float


class CacheService:
    def __init__(
        self,
        settings: Settings,
        clock: Clock = time.time,
        l2: RedisExtractStore | None = None,
    ) -> None:
        self.settings = settings
        self.resolutions: ExpiringCache[str] = ExpiringCache(
            "resolutions", settings.cache_max_entries, clock
        )
        self.extractions: ExpiringCache[ExtractionResult] = ExpiringCache(
            "extractions", settings.cache_max_entries, clock
        )
        self.l2 = l2

    # ------------------------------------------------------------------
    # Resolutions
    # ------------------------------------------------------------------
    def cached_resolution(self, input_url: str) -> CacheEntry[str] | None:
        return self.resolutions.get(input_url)

    def remember_resolution(self, input_url: str, publisher_url: str) -> None:
        self.resolutions.set(input_url, publisher_url, self.settings.resolve_cache_ttl)

    # ------------------------------------------------------------------
    # Extractions
    # ------------------------------------------------------------------
    def extraction_ttl(self, result: ExtractionResult) -> float:
        if result.success:
            return self.settings.extract_cache_ttl
        return self.settings.extract_failure_ttl

    def cached_extraction(self, key: str) -> CachedExtraction | None:
        entry = self.extractions.get(key)
        if entry is not None:
            return CachedExtraction(
                result=entry.value,
                layer="l1",
                age_seconds=entry.age(self.extractions.now()),
                ttl_seconds=entry.expires_at - entry.stored_at,
            )
        if self.l2 is None:
            return None
        result = self.l2.get(key)
        if result is None:
            return None
        self.extractions.set(key, result, self.settings.extract_cache_ttl)
        return CachedExtraction(
            result=result, layer="l2", age_seconds=0.0, ttl_seconds=float(self.l2.ttl)
        )

    def remember_extraction(self, key: str, result: ExtractionResult) -> None:
        """Store a finalized result; failures get the short TTL."""
        stored = replace(result, cache_status="miss")
        self.extractions.set(key, stored, self.extraction_ttl(stored))
        if self.l2 is not None and stored.success:
            self.l2.set(key, stored)

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------
    def sweep(self) -> None:
        self.resolutions.sweep()
        self.extractions.sweep()

    def stats(self) -> dict[str, int]:
        return {"resolutions": len(self.resolutions), "extractions": len(self.extractions)}


class CacheSweeper:
    """Background thread that periodically drops expired cache entries."""

    def __init__(self, cache: CacheService, interval: float) -> None:
        self._cache = cache
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="cache-sweeper", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            self._cache.sweep()
            logger.debug("cache.swept", **self._cache.stats())


def build_cache_service(settings: Settings) -> CacheService:
    l2 = None
    if settings.redis_url:
        l2 = RedisExtractStore.from_url(settings.redis_url, settings.l2_cache_ttl)
        logger.info("cache.l2.enabled")
    return CacheService(settings, l2=l2)
