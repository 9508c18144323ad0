"""Telemetry package — failure taxonomy and structured health records."""

from newsreader.telemetry.recorder import TelemetryEvent, TelemetryRecorder, safe_host
from newsreader.telemetry.taxonomy import ExtractStatus, FailureReason, status_for_reason

__all__ = [
    "ExtractStatus",
    "FailureReason",
    "TelemetryEvent",
    "TelemetryRecorder",
    "safe_host",
    "status_for_reason",
]
