"""Cache package — keyed TTL caches for resolutions and extractions."""

from newsreader.cache.service import CacheService, CacheSweeper, build_cache_service
from newsreader.cache.store import CacheEntry, ExpiringCache

__all__ = ["CacheEntry", "CacheService", "CacheSweeper", "ExpiringCache", "build_cache_service"]
