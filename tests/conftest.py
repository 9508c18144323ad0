"""Shared fixtures: pinned settings, a controllable clock and sample pages."""

from __future__ import annotations

import pytest

from newsreader.config import Settings


class FakeClock:
    """Manually advanced wall clock for TTL tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


_PARAGRAPHS = [
    "Devin Booker scored 34 points and the Phoenix Suns erased a 15-point "
    "fourth-quarter deficit to beat the Los Angeles Lakers 118-112 on Tuesday night.",
    "Booker hit three straight jumpers in the final four minutes, including a "
    "step-back over two defenders that gave Phoenix its first lead since the opening quarter.",
    "Kevin Durant added 27 points and nine rebounds, while Jusuf Nurkic grabbed a "
    "season-high 17 boards as the Suns dominated the glass after halftime.",
    "LeBron James led the Lakers with 31 points, but Los Angeles went cold late, "
    "missing nine of its final eleven shots from the field.",
    "The comeback was the largest of the season for Phoenix, which has now won "
    "six of its last seven games heading into a three-game road trip.",
    "Coach Frank Vogel credited the defense for the turnaround, saying the team "
    "finally communicated on switches and closed out on shooters in the final period.",
]


def article_page(title: str = "Suns rally past Lakers behind Booker", paragraphs=None, extra: str = "") -> str:
    body = "\n".join(f"      <p>{p}</p>" for p in (paragraphs or _PARAGRAPHS))
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
  <title>{title}</title>
  <meta property="og:title" content="{title}">
  <meta name="author" content="Jane Reporter">
</head>
<body>
  <nav><a href="/">Home</a> <a href="/sports">Sports</a> <a href="/suns">Suns</a></nav>
  <main>
    <article>
      <h1>{title}</h1>
{body}
    </article>
  </main>
  {extra}
  <footer><p>Copyright 2024 Publisher Media. All rights reserved.</p></footer>
</body>
</html>
"""


@pytest.fixture
def settings() -> Settings:
    return Settings(
        aggregator_host="news.google.com",
        aggregator_domain="google.com",
        resolve_timeout=5.0,
        fetch_timeout=5.0,
        max_body_bytes=2 * 1024 * 1024,
        resolve_cache_ttl=6 * 60 * 60,
        extract_cache_ttl=12 * 60 * 60,
        extract_failure_ttl=120,
        cache_max_entries=100,
        redis_url="",
        min_title_length=8,
        min_text_length=400,
        shell_min_bytes=500,
        fragile_domains=("azcentral.com", "theathletic.com", "si.com", "arizonasports.com"),
        js_rendered_domains=("nba.com", "espn.com"),
        headless_enabled=False,
        telemetry_enabled=True,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def good_html() -> str:
    return article_page()


@pytest.fixture
def short_html() -> str:
    """A real-looking page whose article body is a single short paragraph."""
    return article_page(
        title="Suns injury report ahead of Friday",
        paragraphs=["Booker is listed as questionable with an ankle sprain."],
    )


@pytest.fixture
def paywalled_html() -> str:
    return article_page(extra='<div class="paywall-overlay">Subscribe to continue reading</div>')
