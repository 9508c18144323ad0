"""Tests for the failure taxonomy and the pipeline health recorder."""

from __future__ import annotations

from unittest.mock import MagicMock

import httpx
import pytest

from newsreader.telemetry.recorder import (
    TelemetryEvent,
    TelemetryRecorder,
    is_playwright_candidate,
    safe_host,
    truncate,
)
from newsreader.telemetry.taxonomy import (
    ExtractStatus,
    FailureReason,
    reason_for_exception,
    reason_for_http_status,
    status_for_reason,
)


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------

class TestStatusForReason:
    @pytest.mark.parametrize(
        ("reason", "fragile", "expected"),
        [
            (FailureReason.INVALID_URL, False, ExtractStatus.INVALID_URL),
            (FailureReason.BLOCKED, False, ExtractStatus.BLOCKED),
            (FailureReason.PAYWALL, False, ExtractStatus.BLOCKED),
            (FailureReason.QUALITY_GATE_FAILED, False, ExtractStatus.NO_READER),
            (FailureReason.QUALITY_GATE_FAILED, True, ExtractStatus.BLOCKED),
            (FailureReason.READABILITY_EMPTY, False, ExtractStatus.NO_READER),
            (FailureReason.READABILITY_EMPTY, True, ExtractStatus.BLOCKED),
            (FailureReason.TIMEOUT, True, ExtractStatus.NO_READER),
            (FailureReason.HTTP_4XX, False, ExtractStatus.NO_READER),
            (FailureReason.HTTP_5XX, False, ExtractStatus.NO_READER),
            (FailureReason.NON_HTML, False, ExtractStatus.NO_READER),
            (FailureReason.FETCH_ERROR, False, ExtractStatus.NO_READER),
            (FailureReason.UNKNOWN, False, ExtractStatus.NO_READER),
        ],
    )
    def test_mapping(self, reason, fragile, expected) -> None:
        assert status_for_reason(reason, fragile) is expected

    def test_every_reason_is_mapped(self) -> None:
        for reason in FailureReason:
            assert isinstance(status_for_reason(reason), ExtractStatus)


class TestReasonForHttpStatus:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (200, None),
            (301, None),
            (401, FailureReason.BLOCKED),
            (403, FailureReason.BLOCKED),
            (429, FailureReason.BLOCKED),
            (404, FailureReason.HTTP_4XX),
            (410, FailureReason.HTTP_4XX),
            (500, FailureReason.HTTP_5XX),
            (503, FailureReason.HTTP_5XX),
        ],
    )
    def test_bucket(self, status, expected) -> None:
        assert reason_for_http_status(status) is expected


class TestReasonForException:
    def test_timeout(self) -> None:
        assert reason_for_exception(httpx.ReadTimeout("slow")) is FailureReason.TIMEOUT

    def test_connect_error(self) -> None:
        assert reason_for_exception(httpx.ConnectError("refused")) is FailureReason.FETCH_ERROR

    def test_unsupported_protocol(self) -> None:
        assert reason_for_exception(httpx.UnsupportedProtocol("ftp")) is FailureReason.INVALID_URL

    def test_anything_else(self) -> None:
        assert reason_for_exception(RuntimeError("boom")) is FailureReason.UNKNOWN


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestHelpers:
    def test_safe_host_strips_www(self) -> None:
        assert safe_host("https://www.nytimes.com/2024/story.html?x=1") == "nytimes.com"

    def test_safe_host_unknown(self) -> None:
        assert safe_host("") == "unknown"
        assert safe_host("not a url") == "unknown"

    def test_truncate(self) -> None:
        assert truncate(None) is None
        assert truncate("short") == "short"
        long = truncate("x" * 1000)
        assert len(long) == 300
        assert long.endswith("…")

    def test_playwright_candidate(self) -> None:
        assert is_playwright_candidate(200, FailureReason.READABILITY_EMPTY) is True
        assert is_playwright_candidate(None, FailureReason.BLOCKED) is True
        assert is_playwright_candidate(200, FailureReason.QUALITY_GATE_FAILED, content_empty=True) is True
        assert is_playwright_candidate(200, FailureReason.QUALITY_GATE_FAILED) is False
        assert is_playwright_candidate(403, FailureReason.BLOCKED) is False


# ---------------------------------------------------------------------------
# Recorder
# ---------------------------------------------------------------------------

class TestTelemetryRecorder:
    def test_success_record(self) -> None:
        log = MagicMock()
        event = TelemetryEvent(
            stage="resolve",
            domain="news.google.com",
            ok=True,
            duration_ms=12,
            reason=FailureReason.UNKNOWN,
            methods_tried=("token_decode",),
            details={"strategy": "token_decode", "cache_ttl_sec": None},
        )
        TelemetryRecorder(log=log).emit(event)

        log.info.assert_called_once()
        log.warning.assert_not_called()
        args, fields = log.info.call_args
        assert args == ("pipeline.health",)
        assert fields["route"] == "/api/resolve"
        assert fields["methods_tried"] == ["token_decode"]
        assert fields["strategy"] == "token_decode"
        assert "cache_ttl_sec" not in fields
        assert "reason" not in fields
        assert "error_message" not in fields
        assert len(fields["request_id"]) == 8

    def test_failure_record_truncates_error(self) -> None:
        log = MagicMock()
        event = TelemetryEvent(
            stage="extract",
            domain="azcentral.com",
            ok=False,
            duration_ms=900,
            reason=FailureReason.BLOCKED,
            error_message="x" * 5000,
        )
        TelemetryRecorder(log=log).emit(event)

        log.warning.assert_called_once()
        fields = log.warning.call_args.kwargs
        assert fields["reason"] == "blocked"
        assert len(fields["error_message"]) == 300

    def test_failure_without_reason_reports_unknown(self) -> None:
        event = TelemetryEvent(stage="extract", domain="x.com", ok=False, duration_ms=1)
        assert event.fields()["reason"] == "unknown"

    def test_disabled_recorder_is_silent(self) -> None:
        log = MagicMock()
        TelemetryRecorder(enabled=False, log=log).emit(
            TelemetryEvent(stage="extract", domain="x.com", ok=True, duration_ms=1)
        )
        log.info.assert_not_called()
        log.warning.assert_not_called()
