"""Wiring: builds the shared cache, recorder, resolver and article service."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from newsreader.articles import ArticleService
from newsreader.cache.service import CacheService, CacheSweeper, build_cache_service
from newsreader.config import Settings
from newsreader.resolver.resolver import Resolver
from newsreader.scraper.headless import HeadlessRenderer, build_renderer
from newsreader.telemetry.recorder import TelemetryRecorder


@dataclass
class ReaderServices:
    settings: Settings
    cache: CacheService
    recorder: TelemetryRecorder
    resolver: Resolver
    articles: ArticleService
    sweeper: CacheSweeper


def build_services(
    settings: Settings,
    *,
    cache: CacheService | None = None,
    recorder: TelemetryRecorder | None = None,
    renderer: HeadlessRenderer | None = None,
    client: httpx.Client | None = None,
) -> ReaderServices:
    """Assemble one set of services sharing a single cache.

    Any component may be injected; the rest are built from *settings*.
    """
    cache = cache or build_cache_service(settings)
    recorder = recorder or TelemetryRecorder(enabled=settings.telemetry_enabled)
    resolver = Resolver(settings, cache, recorder, client=client)
    articles = ArticleService(
        settings,
        cache,
        resolver,
        recorder,
        renderer=renderer or build_renderer(settings),
        client=client,
    )
    return ReaderServices(
        settings=settings,
        cache=cache,
        recorder=recorder,
        resolver=resolver,
        articles=articles,
        sweeper=CacheSweeper(cache, settings.cache_sweep_interval),
    )
