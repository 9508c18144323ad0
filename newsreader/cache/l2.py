"""L2 extraction cache backed by Redis.

Provides durable, cross-instance caching for successful article extractions.
All operations are best-effort: Redis errors are logged and the pipeline
continues as if the cache did not exist.
"""

from __future__ import annotations

import hashlib
import json

import structlog
from redis import Redis
from redis.exceptions import RedisError

from newsreader.scraper.models import ExtractionResult

logger = structlog.get_logger(__name__)

CACHE_KEY_PREFIX = "nr:ext:v1:"


def make_cache_key(normalized_url: str) -> str:
    """Return a short, collision-resistant key: ``nr:ext:v1:<16 hex chars>``."""
    digest = hashlib.sha256(normalized_url.encode("utf-8")).hexdigest()[:16]
    return f"{CACHE_KEY_PREFIX}{digest}"


class RedisExtractStore:
    """Stores successful :class:`ExtractionResult` payloads with a TTL."""

    def __init__(self, client: Redis, ttl: int) -> None:
        self._client = client
        self.ttl = ttl

    @classmethod
    def from_url(cls, url: str, ttl: int) -> RedisExtractStore:
        client = Redis.from_url(url, socket_timeout=2, socket_connect_timeout=2)
        return cls(client, ttl)

    def get(self, normalized_url: str) -> ExtractionResult | None:
        key = make_cache_key(normalized_url)
        try:
            raw = self._client.get(key)
        except RedisError as exc:
            logger.warning("cache.l2.get_error", error=str(exc))
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("cache.l2.invalid_json", key=key)
            return None
        if not isinstance(data, dict):
            return None
        return ExtractionResult.from_cache_payload(data)

    def set(self, normalized_url: str, result: ExtractionResult) -> None:
        if not result.success:
            return
        key = make_cache_key(normalized_url)
        try:
            self._client.setex(key, self.ttl, json.dumps(result.to_cache_payload()))
        except RedisError as exc:
            logger.warning("cache.l2.set_error", error=str(exc))
