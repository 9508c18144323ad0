"""HTTP fetcher with browser-like headers, a body-size cap and block detection."""

from __future__ import annotations

import re
from urllib.parse import urljoin

import httpx
import structlog

from newsreader.config import Settings
from newsreader.scraper.blocking import detect_blocking
from newsreader.scraper.models import FetchedPage, FetchFailure
from newsreader.telemetry.recorder import safe_host
from newsreader.telemetry.taxonomy import FailureReason, reason_for_exception
from newsreader.urls import validate_url

logger = structlog.get_logger(__name__)

_HTML_TYPES = ("text/html", "application/xhtml+xml")
MAX_REDIRECTS = 10

_SNIFF_BYTES = 4096
_META_CHARSET_RE = re.compile(rb"<meta[^>]+charset\s*=\s*['\"]?\s*([A-Za-z0-9_.:-]+)", re.IGNORECASE)


class BodyTooLarge(Exception):
    pass


def browser_headers(settings: Settings) -> dict[str, str]:
    return {
        "User-Agent": settings.user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Cache-Control": "no-cache",
        "Upgrade-Insecure-Requests": "1",
    }


def is_html(content_type: str) -> bool:
    return any(t in content_type.lower() for t in _HTML_TYPES)


def _read_capped(response: httpx.Response, limit: int) -> bytes:
    declared = response.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > limit:
        raise BodyTooLarge(f"Response too large ({declared} bytes)")
    chunks: list[bytes] = []
    size = 0
    for chunk in response.iter_bytes():
        size += len(chunk)
        if size > limit:
            raise BodyTooLarge(f"Response too large (over {limit} bytes)")
        chunks.append(chunk)
    return b"".join(chunks)


def _sniff_charset(body: bytes) -> str | None:
    match = _META_CHARSET_RE.search(body[:_SNIFF_BYTES])
    return match.group(1).decode("ascii") if match else None


def _decode(body: bytes, response: httpx.Response) -> str:
    """Decode with the header charset, else the page's <meta> charset, else UTF-8."""
    encoding = response.charset_encoding or _sniff_charset(body) or "utf-8"
    try:
        return body.decode(encoding, errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


def _redirect_target(base: str, location: str) -> str:
    try:
        return urljoin(base, location.strip())
    except ValueError:
        return location


def fetch_page(
    url: str, settings: Settings, client: httpx.Client | None = None
) -> FetchedPage | FetchFailure:
    """Fetch *url* and return a :class:`FetchedPage` or a typed :class:`FetchFailure`.

    Never raises for network, HTTP or content-type problems.
    """
    if client is not None:
        return _fetch(client, url, settings)
    with httpx.Client(
        headers=browser_headers(settings),
        timeout=settings.fetch_timeout,
    ) as own_client:
        return _fetch(own_client, url, settings)


def _fetch(client: httpx.Client, url: str, settings: Settings) -> FetchedPage | FetchFailure:
    try:
        current = url
        for _ in range(MAX_REDIRECTS + 1):
            with client.stream(
                "GET",
                current,
                headers=browser_headers(settings),
                timeout=httpx.Timeout(settings.fetch_timeout),
                follow_redirects=False,
            ) as response:
                final_url = str(response.url)
                status = response.status_code
                content_type = response.headers.get("content-type", "")
                headers = dict(response.headers)

                if response.is_redirect:
                    current = _redirect_target(final_url, response.headers["location"])
                    if not validate_url(current).ok:
                        return FetchFailure(
                            url=url,
                            reason=FailureReason.INVALID_URL,
                            error="Redirected to a disallowed address",
                            final_url=current,
                            http_status=status,
                        )
                    continue

                verdict = detect_blocking(status, headers, safe_host(final_url), settings)
                if verdict is not None:
                    return FetchFailure(
                        url=url,
                        reason=verdict.reason,
                        error=f"HTTP {status}" + (" (blocked)" if verdict.blocked else ""),
                        final_url=final_url,
                        http_status=status,
                        content_type=content_type,
                        blocked=verdict.blocked,
                    )
                if not is_html(content_type):
                    return FetchFailure(
                        url=url,
                        reason=FailureReason.NON_HTML,
                        error=f"Response is not HTML ({content_type or 'no content type'})",
                        final_url=final_url,
                        http_status=status,
                        content_type=content_type,
                    )
                body = _read_capped(response, settings.max_body_bytes)
                html = _decode(body, response)
                break
        else:
            return FetchFailure(
                url=url,
                reason=FailureReason.FETCH_ERROR,
                error=f"Too many redirects (over {MAX_REDIRECTS})",
                final_url=current,
            )
    except BodyTooLarge as exc:
        return FetchFailure(url=url, reason=FailureReason.FETCH_ERROR, error=str(exc))
    except httpx.HTTPError as exc:
        reason = reason_for_exception(exc)
        logger.info("fetcher.transport_error", host=safe_host(url), error=type(exc).__name__)
        message = "Request timed out" if reason is FailureReason.TIMEOUT else f"Failed to fetch ({type(exc).__name__})"
        return FetchFailure(url=url, reason=reason, error=message)

    return FetchedPage(
        url=url,
        final_url=final_url,
        html=html,
        http_status=status,
        content_type=content_type,
        headers=headers,
    )
