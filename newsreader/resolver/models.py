"""Data models for publisher resolution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from newsreader.telemetry.taxonomy import FailureReason

UNRESOLVED_ERROR = "Could not resolve publisher URL"
TIMEOUT_ERROR = "resolve_timeout"


@dataclass(frozen=True)
class StrategyHit:
    """A publisher URL produced by one strategy."""

    publisher_url: str
    strategy: str


@dataclass(frozen=True)
class ResolutionResult:
    """One attempt to unwrap a wrapper URL.  Never mutated after creation."""

    input_url: str
    normalized_url: str
    success: bool
    publisher_url: str = ""
    strategy: str | None = None
    methods_tried: tuple[str, ...] = ()
    error: str = ""
    reason: FailureReason | None = None
    cache_status: str = "miss"

    def to_dict(self, debug: bool = False) -> dict[str, Any]:
        if self.success:
            payload: dict[str, Any] = {"success": True, "publisherUrl": self.publisher_url}
        else:
            payload = {"success": False, "error": self.error or UNRESOLVED_ERROR}
        if debug:
            payload["debug"] = {
                "inputUrl": self.input_url,
                "normalizedUrl": self.normalized_url,
                "strategy": self.strategy,
                "methodsTried": list(self.methods_tried),
                "cacheStatus": self.cache_status,
                "reason": self.reason.value if self.reason else None,
            }
        return payload
