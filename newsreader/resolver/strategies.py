"""Resolution strategies.

Each strategy is a plain function ``(ResolutionContext) -> StrategyHit | None``.
:data:`STRATEGIES` fixes their priority order; the resolver walks it and stops
at the first hit.  Network strategies raise :class:`ResolveTimeout` when their
own timeout fires so a slow network is distinguishable from "no match".
"""

from __future__ import annotations

import base64
import binascii
import html as html_lib
import json
import re
from dataclasses import dataclass, field
from typing import Callable, NamedTuple
from urllib.parse import parse_qs, quote, urljoin, urlsplit

import httpx
import structlog
from bs4 import BeautifulSoup

from newsreader.config import Settings
from newsreader.resolver.models import StrategyHit
from newsreader.telemetry.taxonomy import FailureReason, reason_for_exception, reason_for_http_status
from newsreader.urls import is_publisher_url

logger = structlog.get_logger(__name__)

_EMBEDDED_URL_RE = re.compile(r"https?://[^\s\"'<>\x00-\x20\x7f-\xff]+")
_REFRESH_URL_RE = re.compile(r"url\s*=\s*['\"]?([^'\";\s]+)", re.IGNORECASE)

_BATCH_RPC_ID = "Fbv4je"


class ResolveTimeout(Exception):
    """A network strategy exceeded its timeout."""


@dataclass
class ResolutionContext:
    """Per-request state handed to every strategy."""

    settings: Settings
    client: httpx.Client
    normalized_url: str
    token: str | None
    failures: list[FailureReason] = field(default_factory=list)

    @property
    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.settings.resolve_timeout)

    @property
    def headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.settings.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    def last_failure(self) -> FailureReason:
        return self.failures[-1] if self.failures else FailureReason.UNKNOWN


def _request(
    ctx: ResolutionContext, method: str, url: str, check_status: bool = True, **kwargs
) -> httpx.Response | None:
    """Issue one request under the strategy timeout.

    Returns ``None`` (recording why) on transport errors, and on 4xx/5xx
    statuses unless *check_status* is off.
    """
    try:
        response = ctx.client.request(method, url, timeout=ctx.timeout, **kwargs)
    except httpx.TimeoutException as exc:
        raise ResolveTimeout(str(exc) or "timeout") from exc
    except httpx.HTTPError as exc:
        ctx.failures.append(reason_for_exception(exc))
        logger.debug("resolver.request_failed", method=method, error=type(exc).__name__)
        return None
    http_reason = reason_for_http_status(response.status_code)
    if check_status and http_reason is not None:
        ctx.failures.append(http_reason)
        return None
    return response


# ---------------------------------------------------------------------------
# 1. Token decode (no network)
# ---------------------------------------------------------------------------

def decode_token(token: str, settings: Settings) -> str | None:
    """Decode a base64url wrapper token and return the embedded publisher URL."""
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError):
        return None
    match = _EMBEDDED_URL_RE.search(raw.decode("latin-1"))
    if match and is_publisher_url(match.group(0), settings):
        return match.group(0)
    return None


def token_decode(ctx: ResolutionContext) -> StrategyHit | None:
    if not ctx.token:
        return None
    url = decode_token(ctx.token, ctx.settings)
    return StrategyHit(url, "token_decode") if url else None


# ---------------------------------------------------------------------------
# 2. Aggregator batch API
# ---------------------------------------------------------------------------

def _batch_payload(token: str, timestamp: str, signature: str) -> str:
    inner = (
        '["garturlreq",[["X","X",["X","X"],null,null,1,1,"US:en",null,1,null,null,'
        'null,null,null,0,1],"X","X",1,[1,1,1],1,1,null,0,0,null,0],'
        f'"{token}",{timestamp},"{signature}"]'
    )
    return "f.req=" + quote(
        json.dumps([[[_BATCH_RPC_ID, inner]]], separators=(",", ":")), safe="-_.!~*'()"
    )


def parse_batch_response(body: str, settings: Settings) -> str | None:
    """Find the decoded URL in a batchexecute response body."""
    for line in body.splitlines():
        line = line.strip()
        if not line or line.startswith(")]}'"):
            continue
        try:
            parsed = json.loads(line)
        except ValueError:
            continue
        if not isinstance(parsed, list):
            continue
        for item in parsed:
            if not (isinstance(item, list) and len(item) > 2 and item[:2] == ["wrb.fr", _BATCH_RPC_ID]):
                continue
            if not isinstance(item[2], str):
                continue
            try:
                inner = json.loads(item[2])
            except ValueError:
                continue
            candidate = None
            if isinstance(inner, str):
                candidate = inner
            elif isinstance(inner, list) and len(inner) > 1 and isinstance(inner[1], str):
                candidate = inner[1]
            if candidate and candidate.startswith("http") and is_publisher_url(candidate, settings):
                return candidate
    return None


def batch_api(ctx: ResolutionContext) -> StrategyHit | None:
    if not ctx.token:
        return None
    host = ctx.settings.aggregator_host
    page = _request(ctx, "GET", f"https://{host}/rss/articles/{ctx.token}", headers=ctx.headers)
    if page is None:
        return None

    soup = BeautifulSoup(page.text, "html.parser")
    node = soup.find(attrs={"data-n-a-sg": True, "data-n-a-ts": True})
    if node is None:
        return None
    signature, timestamp = node["data-n-a-sg"], node["data-n-a-ts"]

    response = _request(
        ctx,
        "POST",
        f"https://{host}/_/DotsSplashUi/data/batchexecute",
        headers={
            "Content-Type": "application/x-www-form-urlencoded;charset=UTF-8",
            "User-Agent": ctx.settings.user_agent,
        },
        content=_batch_payload(ctx.token, timestamp, signature),
    )
    if response is None:
        return None
    url = parse_batch_response(response.text, ctx.settings)
    return StrategyHit(url, "batch_api") if url else None


# ---------------------------------------------------------------------------
# 3. Redirect follow
# ---------------------------------------------------------------------------

def redirect_follow(ctx: ResolutionContext) -> StrategyHit | None:
    response = _request(
        ctx, "GET", ctx.normalized_url, check_status=False, headers=ctx.headers, follow_redirects=True
    )
    if response is None:
        return None
    final_url = str(response.url)
    if is_publisher_url(final_url, ctx.settings):
        return StrategyHit(final_url, "redirect")
    return None


# ---------------------------------------------------------------------------
# 4. HTML meta-tag parse
# ---------------------------------------------------------------------------

def _absolute(base: str, href: str | None) -> str | None:
    if not href:
        return None
    try:
        return urljoin(base, href.strip())
    except ValueError:
        return None


def find_publisher_in_html(html: str, base_url: str, settings: Settings) -> StrategyHit | None:
    """Scan wrapper-page HTML for the destination URL."""
    soup = BeautifulSoup(html, "html.parser")

    canonical = soup.find("link", rel="canonical")
    url = _absolute(base_url, canonical.get("href") if canonical else None)
    if is_publisher_url(url, settings):
        return StrategyHit(url, "canonical")

    og_url = soup.find("meta", attrs={"property": "og:url"})
    url = _absolute(base_url, og_url.get("content") if og_url else None)
    if is_publisher_url(url, settings):
        return StrategyHit(url, "og_url")

    refresh = soup.find("meta", attrs={"http-equiv": re.compile(r"^refresh$", re.IGNORECASE)})
    if refresh is not None:
        match = _REFRESH_URL_RE.search(refresh.get("content", ""))
        url = _absolute(base_url, match.group(1) if match else None)
        if is_publisher_url(url, settings):
            return StrategyHit(url, "meta_refresh")

    redirect_re = re.compile(
        r"https?://(?:www\.)?" + re.escape(settings.aggregator_domain) + r"/url\?[^\"'\s<>]+",
        re.IGNORECASE,
    )
    for match in redirect_re.finditer(html):
        query = parse_qs(urlsplit(html_lib.unescape(match.group(0))).query)
        for key in ("url", "q"):
            for candidate in query.get(key, []):
                if is_publisher_url(candidate, settings):
                    return StrategyHit(candidate, "aggregator_redirect")
    return None


def html_parse(ctx: ResolutionContext) -> StrategyHit | None:
    response = _request(ctx, "GET", ctx.normalized_url, headers=ctx.headers, follow_redirects=True)
    if response is None:
        return None
    return find_publisher_in_html(response.text, str(response.url), ctx.settings)


# ---------------------------------------------------------------------------
# Priority order
# ---------------------------------------------------------------------------

class Strategy(NamedTuple):
    name: str
    run: Callable[[ResolutionContext], StrategyHit | None]
    requires_token: bool


STRATEGIES: tuple[Strategy, ...] = (
    Strategy("token_decode", token_decode, True),
    Strategy("batch_api", batch_api, True),
    Strategy("redirect", redirect_follow, False),
    Strategy("html_parse", html_parse, False),
)
