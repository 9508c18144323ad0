"""Optional headless-browser fallback for blocked or client-rendered pages.

The capability is injected: :class:`NullRenderer` is used wherever a browser
is unavailable, so the pipeline runs (and is tested) without Playwright.
"""

from __future__ import annotations

import threading
from typing import Protocol

import structlog

from newsreader.config import Settings
from newsreader.scraper.models import RenderedPage
from newsreader.telemetry.recorder import safe_host

logger = structlog.get_logger(__name__)

# Checked in order; the first one to appear marks the article as rendered.
CONTENT_SELECTORS = (
    "article",
    "[itemprop='articleBody']",
    ".article-body",
    ".story-body",
    "main",
)

_SELECTOR_WAIT_MS = 4000
_SCROLL_WAIT_MS = 1500


class HeadlessRenderer(Protocol):
    available: bool

    def render(self, url: str) -> RenderedPage | None:
        ...


class NullRenderer:
    """Renderer used when no browser is configured."""

    available = False

    def render(self, url: str) -> RenderedPage | None:
        return None


class PlaywrightRenderer:
    """Render pages with headless Chromium, at most N at a time.

    Playwright is imported lazily so the rest of the service never needs a
    browser installed.
    """

    available = True

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._slots = threading.BoundedSemaphore(max(1, settings.headless_max_concurrency))

    def render(self, url: str) -> RenderedPage | None:
        if not self._slots.acquire(timeout=self.settings.headless_timeout):
            logger.warning("headless.no_slot", host=safe_host(url))
            return None
        try:
            return self._render(url)
        finally:
            self._slots.release()

    def _render(self, url: str) -> RenderedPage | None:
        from playwright.sync_api import Error as PlaywrightError  # noqa: PLC0415
        from playwright.sync_api import sync_playwright  # noqa: PLC0415

        timeout_ms = int(self.settings.headless_timeout * 1000)
        try:
            with sync_playwright() as pw:
                browser = pw.chromium.launch(headless=True)
                try:
                    page = browser.new_page(user_agent=self.settings.user_agent)
                    page.goto(url, timeout=timeout_ms, wait_until="domcontentloaded")
                    selector = _wait_for_content(page)
                    if selector is None:
                        # One scroll-and-wait cycle for lazy-loaded bodies.
                        page.mouse.wheel(0, 4000)
                        page.wait_for_timeout(_SCROLL_WAIT_MS)
                        selector = _wait_for_content(page)
                    if selector is None:
                        logger.info("headless.no_content", host=safe_host(url))
                        return None
                    return RenderedPage(
                        url=url, final_url=page.url, html=page.content(), matched_selector=selector
                    )
                finally:
                    browser.close()
        except PlaywrightError as exc:
            logger.warning("headless.render_failed", host=safe_host(url), error=str(exc)[:200])
            return None


def _wait_for_content(page) -> str | None:
    from playwright.sync_api import TimeoutError as PlaywrightTimeout  # noqa: PLC0415

    for selector in CONTENT_SELECTORS:
        try:
            page.wait_for_selector(selector, timeout=_SELECTOR_WAIT_MS // len(CONTENT_SELECTORS))
        except PlaywrightTimeout:
            continue
        return selector
    return None


def build_renderer(settings: Settings) -> HeadlessRenderer:
    if settings.headless_enabled:
        return PlaywrightRenderer(settings)
    return NullRenderer()
