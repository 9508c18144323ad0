"""URL classification, validation and normalization.

This is the one synchronous, side-effect-free gate in front of the network
code: nothing that fails :func:`validate_url` is ever fetched.
"""

from __future__ import annotations

import ipaddress
import re
import socket
from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from newsreader.config import Settings

_BLOCKED_HOSTNAMES = {"localhost", "0.0.0.0", "127.0.0.1", "::1"}

# Hosts made only of these characters may be shorthand IPv4 (127.1, 0x7f000001).
_NUMERIC_HOST_RE = re.compile(r"^[0-9a-fx.]+$")

_TRACKING_PARAMS = {"fbclid", "gclid", "mc_cid", "mc_eid", "ref", "ref_src", "s", "cmpid"}

_TOKEN_RE = re.compile(r"/(?:rss/)?articles/([^/?#]+)")

_RSS_PREFIX = "/rss/articles/"
_ARTICLE_PREFIX = "/articles/"


@dataclass(frozen=True)
class UrlCheck:
    ok: bool
    reason: str = "ok"
    message: str = ""


@dataclass(frozen=True)
class Classification:
    valid: bool
    is_wrapped: bool
    normalized_url: str
    reason: str = "ok"
    message: str = ""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _literal_ip(hostname: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    """Parse *hostname* as an IP literal, including shorthand IPv4 forms.

    ``127.1``, ``2130706433`` and ``0x7f000001`` all reach 127.0.0.1 through
    the system resolver, so they are expanded the same way it does.
    """
    host = hostname.rstrip(".")
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass
    if not _NUMERIC_HOST_RE.match(host):
        return None
    try:
        return ipaddress.IPv4Address(socket.inet_aton(host))
    except OSError:
        return None


def _is_private_ip(hostname: str) -> bool:
    """Return True when *hostname* is a literal IP in a private/local range."""
    ip = _literal_ip(hostname)
    if ip is None:
        return False
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    )


def validate_url(raw: str | None) -> UrlCheck:
    """Validate scheme and host against SSRF guardrails."""
    value = str(raw or "").strip()
    if not value:
        return UrlCheck(False, "missing_url", "URL is required")
    try:
        parsed = urlsplit(value)
        hostname = (parsed.hostname or "").strip().lower()
        parsed.port  # raises ValueError when out of range
    except ValueError:
        return UrlCheck(False, "malformed", "Invalid URL format")

    if parsed.scheme.lower() not in ("http", "https"):
        return UrlCheck(False, "invalid_scheme", "Only HTTP and HTTPS URLs are supported")
    if not hostname:
        return UrlCheck(False, "missing_hostname", "Invalid URL format")
    if hostname in _BLOCKED_HOSTNAMES or hostname.endswith((".local", ".internal", ".localhost")):
        return UrlCheck(False, "blocked_hostname", "Local addresses are not allowed")
    if _is_private_ip(hostname):
        return UrlCheck(False, "private_ip", "Private IP addresses are not allowed")
    return UrlCheck(True)


# ---------------------------------------------------------------------------
# Aggregator wrapper links
# ---------------------------------------------------------------------------

def normalize_wrapper_url(url: str, settings: Settings) -> str:
    """Rewrite ``/rss/articles/<token>`` to ``/articles/<token>`` on the aggregator."""
    parts = urlsplit(url)
    if (parts.hostname or "").lower() != settings.aggregator_host:
        return url
    if not parts.path.startswith(_RSS_PREFIX):
        return url
    path = _ARTICLE_PREFIX + parts.path[len(_RSS_PREFIX):]
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def classify_url(raw: str | None, settings: Settings) -> Classification:
    check = validate_url(raw)
    if not check.ok:
        return Classification(
            valid=False,
            is_wrapped=False,
            normalized_url=str(raw or ""),
            reason=check.reason,
            message=check.message,
        )
    url = str(raw).strip()
    is_wrapped = (urlsplit(url).hostname or "").lower() == settings.aggregator_host
    normalized = normalize_wrapper_url(url, settings) if is_wrapped else url
    return Classification(valid=True, is_wrapped=is_wrapped, normalized_url=normalized)


def extract_article_token(url: str) -> str | None:
    """Return the wrapper token after ``/articles/`` or ``/rss/articles/``."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return None
    match = _TOKEN_RE.search(path)
    return match.group(1) if match else None


def on_aggregator_domain(host: str, settings: Settings) -> bool:
    host = (host or "").lower()
    domain = settings.aggregator_domain.lower()
    return host == domain or host.endswith(f".{domain}") or host == settings.aggregator_host


def is_publisher_url(url: str | None, settings: Settings) -> bool:
    """True for a parseable http(s) URL off the aggregator's domain with a real path."""
    if not url:
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return False
    if on_aggregator_domain(parts.hostname, settings):
        return False
    return parts.path not in ("", "/")


# ---------------------------------------------------------------------------
# Cache keys
# ---------------------------------------------------------------------------

def cache_key_for(url: str) -> str:
    """Normalize *url* for consistent cache keying.

    - Lowercase hostname, strip ``www.``
    - Remove fragment
    - Remove ``utm_*`` and known tracking params, sort the rest
    - Remove trailing slash (unless path is ``/``)
    """
    try:
        parts = urlsplit(url.strip())
        host = (parts.hostname or "").lower()
        port = parts.port
    except ValueError:
        return url
    if not host:
        return url
    if host.startswith("www."):
        host = host[4:]
    netloc = f"{host}:{port}" if port else host

    params = [
        (k, v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if not k.lower().startswith("utm_") and k.lower() not in _TRACKING_PARAMS
    ]
    params.sort()

    path = parts.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return urlunsplit((parts.scheme.lower(), netloc, path, urlencode(params), ""))
