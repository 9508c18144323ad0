"""Scraper package — web fetch, block detection & content extraction."""

from newsreader.scraper.extractor import extract_article
from newsreader.scraper.fetcher import fetch_page
from newsreader.scraper.models import (
    ExtractedArticle,
    ExtractionResult,
    FetchedPage,
    FetchFailure,
    RenderedPage,
)
from newsreader.scraper.quality import detect_shell_page, evaluate_quality

__all__ = [
    "fetch_page",
    "extract_article",
    "evaluate_quality",
    "detect_shell_page",
    "ExtractedArticle",
    "ExtractionResult",
    "FetchedPage",
    "FetchFailure",
    "RenderedPage",
]
