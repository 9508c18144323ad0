"""Anti-bot blocking detection from HTTP status and response headers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from newsreader.config import Settings
from newsreader.telemetry.taxonomy import FailureReason, reason_for_http_status

_BLOCKING_STATUSES = {401, 403, 429}

# Header names whose mere presence identifies a CDN / bot-management layer.
_FINGERPRINT_HEADERS = ("cf-ray", "cf-mitigated", "x-datadome", "x-sucuri-id")
_FINGERPRINT_HEADER_PREFIXES = ("x-akamai-", "x-px")
_FINGERPRINT_SERVERS = ("cloudflare", "akamaighost", "ddos-guard", "sucuri")


@dataclass(frozen=True)
class BlockVerdict:
    reason: FailureReason
    blocked: bool
    signal: str


def cdn_fingerprint(headers: Mapping[str, str]) -> str | None:
    """Return the first CDN/anti-bot signature found in *headers*, if any."""
    lowered = {k.lower(): v for k, v in headers.items()}
    # x-amz-cf-id is on every CloudFront response; only its error page counts.
    if "x-amz-cf-id" in lowered and "error from cloudfront" in lowered.get("x-cache", "").lower():
        return "x-amz-cf-id"
    for name in _FINGERPRINT_HEADERS:
        if name in lowered:
            return name
    for name in lowered:
        if name.startswith(_FINGERPRINT_HEADER_PREFIXES):
            return name
    server = lowered.get("server", "").lower()
    for vendor in _FINGERPRINT_SERVERS:
        if vendor in server:
            return f"server:{vendor}"
    return None


def detect_blocking(
    status: int, headers: Mapping[str, str], host: str, settings: Settings
) -> BlockVerdict | None:
    """Classify a non-success response; ``None`` means the status is fine.

    401/403/429 always count as blocking.  A 404 counts only on fragile
    domains and only when a CDN fingerprint is present, since those
    publishers answer bots with a fake "not found".
    """
    if status in _BLOCKING_STATUSES:
        return BlockVerdict(FailureReason.BLOCKED, True, f"http_{status}")
    if status == 404 and settings.is_fragile(host):
        signal = cdn_fingerprint(headers)
        if signal:
            return BlockVerdict(FailureReason.BLOCKED, True, signal)
    reason = reason_for_http_status(status)
    if reason is None:
        return None
    return BlockVerdict(reason, False, f"http_{status}")
