"""Content extraction: turns page HTML into an :class:`ExtractedArticle`.

Two extractors run in a fixed order:

1. ``readability`` — readability-lxml scores candidate blocks and returns the
   best one; trafilatura supplies title, byline, site name and excerpt.
2. ``fallback`` — BeautifulSoup heuristics over semantic containers, then over
   every block-level container.

Both share one title rule (:func:`_page_metadata`), and neither decides
whether the result is good enough; that is the quality gate's job.
"""

from __future__ import annotations

import re
from typing import Any

import structlog
import trafilatura
from bs4 import BeautifulSoup, Tag
from lxml.etree import ParserError
from readability import Document
from readability.readability import Unparseable

from newsreader.scraper.models import ExtractedArticle
from newsreader.scraper.quality import MIN_TEXT_LENGTH

logger = structlog.get_logger(__name__)

_EXCERPT_CHARS = 200

_NOISE_TAGS = [
    "script", "style", "noscript", "template", "iframe", "svg", "form",
    "nav", "header", "footer", "aside",
]
_SEMANTIC_SELECTORS = (
    "article",
    "main",
    "[itemprop=articleBody]",
    "[class*=article-body]",
    "[class*=article__body]",
    "[class*=story-body]",
    "[class*=entry-content]",
    "[class*=post-content]",
)
_BLOCK_TAGS = ["div", "section", "article", "main", "td"]
_TEXT_BLOCKS = ["p", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote", "pre"]

_WS_RE = re.compile(r"[ \t\r\f\v]+")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _extract_title(html: str) -> str:
    """Return the text content of the first ``<title>`` tag, or empty string."""
    match = re.search(r"<title[^>]*>([^<]+)</title>", html, re.IGNORECASE)
    if match:
        return _WS_RE.sub(" ", match.group(1)).strip()
    return ""


def _visible_text(node: Tag | BeautifulSoup) -> str:
    """Paragraph-preserving text of *node*: one block per line pair."""
    blocks = [
        _WS_RE.sub(" ", el.get_text(" ", strip=True))
        for el in node.find_all(_TEXT_BLOCKS)
        if not el.find_parent(_TEXT_BLOCKS)
    ]
    blocks = [b for b in blocks if b]
    if blocks:
        return "\n\n".join(blocks)
    return _WS_RE.sub(" ", node.get_text(" ", strip=True))


def _as_dict(doc: Any) -> dict[str, Any]:
    if doc is None:
        return {}
    if isinstance(doc, dict):
        return doc
    return doc.as_dict() if hasattr(doc, "as_dict") else {}


def _page_metadata(html: str, base_url: str) -> dict[str, str]:
    """Title, byline, site name and description for the page.

    Title: trafilatura's metadata title, else ``og:title``, ``<title>``, first
    ``<h1>``.
    """
    try:
        meta = _as_dict(trafilatura.extract_metadata(html, default_url=base_url))
    except Exception as exc:  # trafilatura surfaces lxml/parsing errors of many kinds
        logger.debug("extractor.metadata_failed", error=type(exc).__name__)
        meta = {}

    title = (meta.get("title") or "").strip()
    if not title:
        soup = BeautifulSoup(html, "html.parser")
        og = soup.find("meta", attrs={"property": "og:title"})
        h1 = soup.find("h1")
        title = (
            (og.get("content", "").strip() if og else "")
            or _extract_title(html)
            or (h1.get_text(" ", strip=True) if h1 else "")
        )
    return {
        "title": title,
        "byline": (meta.get("author") or "").strip(),
        "site_name": (meta.get("sitename") or "").strip(),
        "excerpt": (meta.get("description") or "").strip(),
    }


def _candidate(
    meta: dict[str, str], content_html: str, text: str, extractor: str
) -> ExtractedArticle:
    return ExtractedArticle(
        title=meta["title"],
        text_content=text,
        content_html=content_html,
        extractor=extractor,
        byline=meta["byline"],
        site_name=meta["site_name"],
        excerpt=meta["excerpt"] or text[:_EXCERPT_CHARS],
    )


def _readability_candidate(html: str, base_url: str, meta: dict[str, str]) -> ExtractedArticle | None:
    try:
        content_html = Document(html, url=base_url).summary(html_partial=True)
    except (Unparseable, ParserError, ValueError) as exc:
        logger.debug("extractor.readability_failed", error=type(exc).__name__)
        return None
    text = _visible_text(BeautifulSoup(content_html, "html.parser"))
    if not text:
        return None
    return _candidate(meta, content_html, text, "readability")


def _bs4_fallback(html: str, meta: dict[str, str], min_text_length: int) -> ExtractedArticle | None:
    """Pick a content container with BeautifulSoup heuristics.

    Semantic containers are tried first (longest qualifying wins); otherwise
    the block-level container with the most text.  Either way the text must
    reach *min_text_length* characters.
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(_NOISE_TAGS):
        tag.decompose()

    best: tuple[int, Tag, str] | None = None
    for selector in _SEMANTIC_SELECTORS:
        for node in soup.select(selector):
            text = _visible_text(node)
            if len(text) >= min_text_length and (best is None or len(text) > best[0]):
                best = (len(text), node, text)
    if best is not None:
        return _candidate(meta, str(best[1]), best[2], "fallback_semantic")

    for node in soup.find_all(_BLOCK_TAGS):
        text = _visible_text(node)
        if len(text) >= min_text_length and (best is None or len(text) > best[0]):
            best = (len(text), node, text)
    if best is not None:
        return _candidate(meta, str(best[1]), best[2], "fallback_block")
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_article(
    html: str, base_url: str, min_text_length: int = MIN_TEXT_LENGTH
) -> ExtractedArticle | None:
    """Extract the article from *html*.

    The fallback runs only when the primary extractor produced nothing usable
    (no candidate, or text below *min_text_length*).  When neither qualifies
    the weak primary candidate is returned so the caller can report its
    partial text; ``None`` means there was nothing at all.
    """
    if not html or not html.strip():
        return None
    meta = _page_metadata(html, base_url)
    primary = _readability_candidate(html, base_url, meta)
    if primary is not None and len(primary.text_content) >= min_text_length:
        return primary
    return _bs4_fallback(html, meta, min_text_length) or primary
