"""Centralised settings for the news reader service.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = os.environ.get(name, default)
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Aggregator
    # ------------------------------------------------------------------
    aggregator_host: str = field(
        default_factory=lambda: os.environ.get("AGGREGATOR_HOST", "news.google.com")
    )
    aggregator_domain: str = field(
        default_factory=lambda: os.environ.get("AGGREGATOR_DOMAIN", "google.com")
    )

    # ------------------------------------------------------------------
    # Network
    # ------------------------------------------------------------------
    resolve_timeout: float = field(
        default_factory=lambda: float(os.environ.get("RESOLVE_TIMEOUT", "10.0"))
    )
    fetch_timeout: float = field(
        default_factory=lambda: float(os.environ.get("FETCH_TIMEOUT", "15.0"))
    )
    max_body_bytes: int = field(
        default_factory=lambda: int(os.environ.get("MAX_BODY_BYTES", str(2 * 1024 * 1024)))
    )
    user_agent: str = field(
        default_factory=lambda: os.environ.get(
            "USER_AGENT",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        )
    )

    # ------------------------------------------------------------------
    # Caches (seconds)
    # ------------------------------------------------------------------
    resolve_cache_ttl: float = field(
        default_factory=lambda: float(os.environ.get("RESOLVE_CACHE_TTL", str(6 * 60 * 60)))
    )
    extract_cache_ttl: float = field(
        default_factory=lambda: float(os.environ.get("EXTRACT_CACHE_TTL", str(12 * 60 * 60)))
    )
    extract_failure_ttl: float = field(
        default_factory=lambda: float(os.environ.get("EXTRACT_FAILURE_TTL", "120"))
    )
    cache_max_entries: int = field(
        default_factory=lambda: int(os.environ.get("CACHE_MAX_ENTRIES", "2000"))
    )
    cache_sweep_interval: float = field(
        default_factory=lambda: float(os.environ.get("CACHE_SWEEP_INTERVAL", "300"))
    )
    redis_url: str = field(default_factory=lambda: os.environ.get("REDIS_URL", ""))
    l2_cache_ttl: int = field(
        default_factory=lambda: int(os.environ.get("L2_CACHE_TTL", str(24 * 60 * 60)))
    )

    # ------------------------------------------------------------------
    # Extraction quality
    # ------------------------------------------------------------------
    min_title_length: int = field(
        default_factory=lambda: int(os.environ.get("MIN_TITLE_LENGTH", "8"))
    )
    min_text_length: int = field(
        default_factory=lambda: int(os.environ.get("MIN_TEXT_LENGTH", "400"))
    )
    shell_min_bytes: int = field(
        default_factory=lambda: int(os.environ.get("SHELL_MIN_BYTES", "500"))
    )
    fragile_domains: tuple[str, ...] = field(
        default_factory=lambda: _env_list(
            "FRAGILE_DOMAINS", "azcentral.com,theathletic.com,si.com,arizonasports.com"
        )
    )
    js_rendered_domains: tuple[str, ...] = field(
        default_factory=lambda: _env_list("JS_RENDERED_DOMAINS", "nba.com,espn.com")
    )

    # ------------------------------------------------------------------
    # Headless browser fallback
    # ------------------------------------------------------------------
    headless_enabled: bool = field(
        default_factory=lambda: _env_bool("HEADLESS_ENABLED", "false")
    )
    headless_timeout: float = field(
        default_factory=lambda: float(os.environ.get("HEADLESS_TIMEOUT", "20.0"))
    )
    headless_max_concurrency: int = field(
        default_factory=lambda: int(os.environ.get("HEADLESS_MAX_CONCURRENCY", "1"))
    )

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------
    telemetry_enabled: bool = field(
        default_factory=lambda: _env_bool("TELEMETRY_ENABLED", "true")
    )
    log_level: str = field(default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO"))
    environment: str = field(default_factory=lambda: os.environ.get("ENVIRONMENT", "local"))

    def is_fragile(self, host: str) -> bool:
        """Return ``True`` if *host* belongs to a known anti-bot-heavy publisher."""
        return _matches_domain(host, self.fragile_domains)

    def needs_rendering(self, host: str) -> bool:
        """Return ``True`` if *host* is known to render articles client-side."""
        return _matches_domain(host, self.js_rendered_domains)


def _matches_domain(host: str, domains: tuple[str, ...]) -> bool:
    host = (host or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return any(host == d or host.endswith(f".{d}") for d in domains)


# Module-level singleton — import this everywhere:
#   from newsreader.config import settings
settings = Settings()
