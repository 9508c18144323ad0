"""Quality gate, shell-page and paywall detection.

These are the only rules that decide whether an extraction candidate is a
real article.  Every extraction path calls the same functions.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass

from newsreader.config import Settings

MIN_TITLE_LENGTH = 8
MIN_TEXT_LENGTH = 400

_ERROR_KEYS = {"error", "errors", "status", "statuscode", "code", "message"}
_ERROR_PREFIX_RE = re.compile(r'^\s*[\[{]\s*"(?:status|statusCode|error|errors|code|message)"\s*:')

_PLACEHOLDER_TITLES = {
    "",
    "access denied",
    "attention required!",
    "attention required! | cloudflare",
    "just a moment...",
    "just a moment",
    "please wait...",
    "loading...",
    "loading",
    "untitled",
    "home",
    "403 forbidden",
    "404 not found",
    "page not found",
    "not found",
    "error",
    "are you a robot?",
    "robot check",
    "subscribe",
    "sign in",
}
_PLACEHOLDER_TITLE_RE = re.compile(
    r"^(?:access denied|request blocked|just a moment|page not found|error \d{3}|\d{3} error)\b",
    re.IGNORECASE,
)

_PAYWALL_PATTERNS = (
    re.compile(r'"isAccessibleForFree"\s*:\s*"?false"?', re.IGNORECASE),
    re.compile(r'(?:class|id)=["\'][^"\']*\bpaywall', re.IGNORECASE),
    re.compile(r"subscribe (?:now )?to (?:continue|keep) reading", re.IGNORECASE),
    re.compile(r"this (?:article|content) is (?:only )?(?:available|reserved) (?:to|for) subscribers", re.IGNORECASE),
)


@dataclass(frozen=True)
class QualityVerdict:
    passed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.passed


@dataclass(frozen=True)
class ShellVerdict:
    is_shell: bool
    signal: str = ""


def looks_like_error_payload(text: str) -> bool:
    """Return ``True`` if *text* is a JSON error body rather than prose."""
    stripped = (text or "").strip()
    if not stripped or stripped[0] not in "{[":
        return False
    try:
        data = json.loads(stripped)
    except ValueError:
        return bool(_ERROR_PREFIX_RE.match(stripped))
    if isinstance(data, list) and data and isinstance(data[0], dict):
        data = data[0]
    if isinstance(data, dict):
        return any(str(key).lower() in _ERROR_KEYS for key in data)
    return False


def evaluate_quality(
    title: str,
    text: str,
    min_title: int = MIN_TITLE_LENGTH,
    min_text: int = MIN_TEXT_LENGTH,
) -> QualityVerdict:
    """The quality gate.  Pure: same inputs, same verdict."""
    title = (title or "").strip()
    text = (text or "").strip()
    if looks_like_error_payload(text):
        return QualityVerdict(False, "error_payload")
    if len(title) < min_title:
        return QualityVerdict(False, "title_too_short")
    if len(text) < min_text:
        return QualityVerdict(False, "text_too_short")
    return QualityVerdict(True)


def is_placeholder_title(title: str) -> bool:
    cleaned = (title or "").strip().lower()
    return cleaned in _PLACEHOLDER_TITLES or bool(_PLACEHOLDER_TITLE_RE.match(cleaned))


def detect_shell_page(title: str, text: str, host: str, settings: Settings) -> ShellVerdict:
    """Spot HTTP-200 placeholder pages served by fragile publishers."""
    if not settings.is_fragile(host):
        return ShellVerdict(False)
    if is_placeholder_title(title):
        return ShellVerdict(True, "placeholder_title")
    if looks_like_error_payload(text):
        return ShellVerdict(True, "error_payload")
    if len((text or "").strip().encode("utf-8")) < settings.shell_min_bytes:
        return ShellVerdict(True, "short_body")
    return ShellVerdict(False)


def detect_paywall(html: str) -> bool:
    return any(pattern.search(html or "") for pattern in _PAYWALL_PATTERNS)

