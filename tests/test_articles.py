"""End-to-end tests for the article service (classify → fetch → extract → gate).

Mocking strategy:
- ``respx`` serves publisher pages; no real network calls are made.
- Wrapped links use a ``MagicMock`` resolver so these tests stay focused on
  extraction; the resolver has its own tests.
- A ``FakeRenderer`` stands in for the headless browser.
"""

from __future__ import annotations

from dataclasses import replace
from unittest.mock import MagicMock, patch

import httpx
import pytest
import respx

from newsreader.articles import ArticleService
from newsreader.cache.service import CacheService
from newsreader.resolver.models import TIMEOUT_ERROR, ResolutionResult
from newsreader.scraper.models import RenderedPage
from newsreader.telemetry.recorder import TelemetryRecorder
from newsreader.telemetry.taxonomy import ExtractStatus, FailureReason

_URL = "https://publisher.example/2024/01/09/suns-rally"
_WRAPPED = "https://news.google.com/rss/articles/CBMiQUFVX3lxTE5vdEFVcmxBdEFsbA?oc=5"


class FakeRenderer:
    available = True

    def __init__(self, html: str | None) -> None:
        self.html = html
        self.calls: list[str] = []

    def render(self, url: str) -> RenderedPage | None:
        self.calls.append(url)
        if self.html is None:
            return None
        return RenderedPage(url=url, final_url=url, html=self.html, matched_selector="article")


@pytest.fixture
def log() -> MagicMock:
    return MagicMock()


@pytest.fixture
def cache(settings, clock) -> CacheService:
    return CacheService(settings, clock=clock)


@pytest.fixture
def resolver() -> MagicMock:
    return MagicMock()


def _service(settings, cache, resolver, log, renderer=None) -> ArticleService:
    return ArticleService(settings, cache, resolver, TelemetryRecorder(log=log), renderer=renderer)


def _extract_records(log: MagicMock) -> list[dict]:
    calls = log.info.call_args_list + log.warning.call_args_list
    return [c.kwargs for c in calls if c.kwargs.get("stage") == "extract"]


# ---------------------------------------------------------------------------
# Successful extraction and caching
# ---------------------------------------------------------------------------

class TestSuccess:
    def test_good_article(self, settings, cache, resolver, log, good_html) -> None:
        with respx.mock:
            respx.get(_URL).mock(return_value=httpx.Response(200, html=good_html))
            result = _service(settings, cache, resolver, log).extract(_URL)

        assert result.success is True
        assert result.status is ExtractStatus.OK
        assert result.reason is None
        assert result.quality_gate_passed is True
        assert len(result.title.strip()) >= 8
        assert len(result.text_content.strip()) >= 400
        assert result.length == len(result.text_content)
        assert result.content_html
        assert result.resolved_url == _URL
        assert result.http_status == 200
        assert result.cache_status == "miss"
        resolver.resolve.assert_not_called()

    def test_second_request_is_served_from_cache(self, settings, cache, resolver, log, good_html) -> None:
        service = _service(settings, cache, resolver, log)
        with respx.mock:
            route = respx.get(_URL).mock(return_value=httpx.Response(200, html=good_html))
            first = service.extract(_URL)
            second = service.extract(_URL + "?utm_source=twitter")

        assert route.call_count == 1
        assert second.cache_status == "hit"
        assert second.text_content == first.text_content
        record = _extract_records(log)[-1]
        assert record["cached"] is True
        assert record["cache_layer"] == "l1"

    def test_refresh_bypasses_cache_but_stores_result(self, settings, cache, resolver, log, good_html) -> None:
        service = _service(settings, cache, resolver, log)
        with respx.mock:
            route = respx.get(_URL).mock(return_value=httpx.Response(200, html=good_html))
            service.extract(_URL)
            refreshed = service.extract(_URL, refresh=True)
            after = service.extract(_URL)

        assert route.call_count == 2
        assert refreshed.cache_status == "bypass"
        assert after.cache_status == "hit"
        assert _extract_records(log)[1]["cache_mode"] == "refresh_bypass"

    def test_wrapped_link_is_resolved_first(self, settings, cache, resolver, log, good_html) -> None:
        resolver.resolve.return_value = ResolutionResult(
            input_url=_WRAPPED,
            normalized_url=_WRAPPED,
            success=True,
            publisher_url=_URL,
            strategy="batch_api",
            methods_tried=("token_decode", "batch_api"),
        )
        with respx.mock:
            respx.get(_URL).mock(return_value=httpx.Response(200, html=good_html))
            result = _service(settings, cache, resolver, log).extract(_WRAPPED)

        resolver.resolve.assert_called_once_with(_WRAPPED)
        assert result.success is True
        assert result.url == _WRAPPED
        assert result.resolved_url == _URL
        assert result.methods_tried == ("token_decode", "batch_api")


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class TestFailures:
    def test_invalid_url_is_not_fetched_or_cached(self, settings, cache, resolver, log) -> None:
        with respx.mock:
            result = _service(settings, cache, resolver, log).extract("http://localhost:3000/admin")

        assert result.success is False
        assert result.status is ExtractStatus.INVALID_URL
        assert result.reason is FailureReason.INVALID_URL
        assert len(cache.extractions) == 0

    def test_not_a_url(self, settings, cache, resolver, log) -> None:
        result = _service(settings, cache, resolver, log).extract("not a url")
        assert result.status is ExtractStatus.INVALID_URL
        assert result.to_dict()["textContent"] == ""
        resolver.resolve.assert_not_called()

    @pytest.mark.parametrize(
        "url",
        ["http://example.com:99999/story", "http://127.1/story", "http://0x7f000001/story"],
    )
    def test_rejected_before_any_request(self, settings, cache, resolver, log, url) -> None:
        with respx.mock:
            result = _service(settings, cache, resolver, log).extract(url)
            assert len(respx.calls) == 0

        assert result.status is ExtractStatus.INVALID_URL
        assert result.reason is FailureReason.INVALID_URL

    def test_forbidden_is_blocked(self, settings, cache, resolver, log) -> None:
        with respx.mock:
            respx.get(_URL).mock(return_value=httpx.Response(403, text="Forbidden"))
            result = _service(settings, cache, resolver, log).extract(_URL)

        assert result.success is False
        assert result.status is ExtractStatus.BLOCKED
        assert result.reason is FailureReason.BLOCKED
        assert result.blocked_detected is True
        assert result.http_status == 403

    def test_failure_is_cached_briefly(self, settings, cache, resolver, log, clock) -> None:
        service = _service(settings, cache, resolver, log)
        with respx.mock:
            route = respx.get(_URL).mock(return_value=httpx.Response(403, text="Forbidden"))
            service.extract(_URL)
            assert service.extract(_URL).cache_status == "hit"
            clock.advance(121)
            assert service.extract(_URL).cache_status == "miss"

        assert route.call_count == 2

    def test_fragile_placeholder_page_is_blocked(self, settings, cache, resolver, log, good_html) -> None:
        url = "https://www.azcentral.com/story/sports/nba/suns/2024/01/09/suns-rally/1/"
        shell = good_html.replace("Suns rally past Lakers behind Booker", "Just a moment...")
        with respx.mock:
            respx.get(url).mock(return_value=httpx.Response(200, html=shell))
            result = _service(settings, cache, resolver, log).extract(url)

        assert result.success is False
        assert result.status is ExtractStatus.BLOCKED
        assert result.reason is FailureReason.BLOCKED
        assert result.blocked_detected is True

    def test_short_page_has_no_reader(self, settings, cache, resolver, log, good_html) -> None:
        strict = replace(settings, min_text_length=5000)
        with respx.mock:
            respx.get(_URL).mock(return_value=httpx.Response(200, html=good_html))
            result = _service(strict, cache, resolver, log).extract(_URL)

        assert result.success is False
        assert result.status is ExtractStatus.NO_READER
        assert result.reason is FailureReason.QUALITY_GATE_FAILED
        assert result.quality_gate_passed is False
        # Partial text is kept for diagnostics.
        assert "Devin Booker" in result.text_content

    def test_paywalled_page_is_blocked(self, settings, cache, resolver, log, paywalled_html) -> None:
        strict = replace(settings, min_text_length=5000)
        with respx.mock:
            respx.get(_URL).mock(return_value=httpx.Response(200, html=paywalled_html))
            result = _service(strict, cache, resolver, log).extract(_URL)

        assert result.status is ExtractStatus.BLOCKED
        assert result.reason is FailureReason.PAYWALL

    def test_resolve_failure(self, settings, cache, resolver, log) -> None:
        resolver.resolve.return_value = ResolutionResult(
            input_url=_WRAPPED,
            normalized_url=_WRAPPED,
            success=False,
            methods_tried=("token_decode", "batch_api"),
            error=TIMEOUT_ERROR,
            reason=FailureReason.TIMEOUT,
        )
        with respx.mock:
            result = _service(settings, cache, resolver, log).extract(_WRAPPED)

        assert result.success is False
        assert result.status is ExtractStatus.NO_READER
        assert result.reason is FailureReason.TIMEOUT
        assert result.error == TIMEOUT_ERROR
        assert result.methods_tried == ("token_decode", "batch_api")

    def test_unexpected_error_is_contained(self, settings, cache, resolver, log) -> None:
        with patch("newsreader.articles.fetch_page", side_effect=RuntimeError("bug")):
            result = _service(settings, cache, resolver, log).extract(_URL)

        assert result.success is False
        assert result.reason is FailureReason.UNKNOWN
        assert result.status is ExtractStatus.NO_READER
        assert len(_extract_records(log)) == 1

    def test_non_html(self, settings, cache, resolver, log) -> None:
        with respx.mock:
            respx.get(_URL).mock(
                return_value=httpx.Response(200, content=b"%PDF-1.7", headers={"Content-Type": "application/pdf"})
            )
            result = _service(settings, cache, resolver, log).extract(_URL)

        assert result.reason is FailureReason.NON_HTML
        assert result.status is ExtractStatus.NO_READER


# ---------------------------------------------------------------------------
# Headless escalation
# ---------------------------------------------------------------------------

class TestHeadlessEscalation:
    def test_blocked_fetch_is_rendered(self, settings, cache, resolver, log, good_html) -> None:
        renderer = FakeRenderer(good_html)
        with respx.mock:
            respx.get(_URL).mock(return_value=httpx.Response(403, text="Forbidden"))
            result = _service(settings, cache, resolver, log, renderer).extract(_URL)

        assert renderer.calls == [_URL]
        assert result.success is True
        assert result.playwright_used is True

    def test_client_rendered_domain_is_rendered(self, settings, cache, resolver, log, short_html, good_html) -> None:
        url = "https://www.nba.com/news/suns-rally-past-lakers"
        renderer = FakeRenderer(good_html)
        with respx.mock:
            respx.get(url).mock(return_value=httpx.Response(200, html=short_html))
            result = _service(settings, cache, resolver, log, renderer).extract(url)

        assert renderer.calls == [url]
        assert result.success is True

    def test_regular_domain_is_not_rendered(self, settings, cache, resolver, log, short_html, good_html) -> None:
        renderer = FakeRenderer(good_html)
        with respx.mock:
            respx.get(_URL).mock(return_value=httpx.Response(200, html=short_html))
            result = _service(settings, cache, resolver, log, renderer).extract(_URL)

        assert renderer.calls == []
        assert result.success is False

    def test_render_failure_keeps_original_outcome(self, settings, cache, resolver, log) -> None:
        renderer = FakeRenderer(None)
        with respx.mock:
            respx.get(_URL).mock(return_value=httpx.Response(403, text="Forbidden"))
            result = _service(settings, cache, resolver, log, renderer).extract(_URL)

        assert result.status is ExtractStatus.BLOCKED
        assert result.playwright_used is True


# ---------------------------------------------------------------------------
# Telemetry
# ---------------------------------------------------------------------------

class TestTelemetry:
    def test_one_record_per_request(self, settings, cache, resolver, log, good_html) -> None:
        with respx.mock:
            respx.get(_URL).mock(return_value=httpx.Response(200, html=good_html))
            _service(settings, cache, resolver, log).extract(_URL)

        (record,) = _extract_records(log)
        assert record["ok"] is True
        assert record["domain"] == "publisher.example"
        assert record["route"] == "/api/extract"
        assert record["quality_gate_passed"] is True
        assert record["text_length"] >= 400
        assert "text_content" not in record
        assert "compute_ms" in record

    def test_failure_record_has_reason(self, settings, cache, resolver, log) -> None:
        with respx.mock:
            respx.get(_URL).mock(return_value=httpx.Response(403, text="Forbidden"))
            _service(settings, cache, resolver, log).extract(_URL)

        (record,) = _extract_records(log)
        assert record["ok"] is False
        assert record["reason"] == "blocked"
        assert record["blocked_detected"] is True
        assert record["playwright_candidate"] is False
