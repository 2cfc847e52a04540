"""
Open Graph, Twitter card and standard meta-tag extraction.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urljoin

from bs4 import BeautifulSoup

MAX_HEAD_CHARS = 150_000


@dataclass(slots=True, frozen=True)
class ParsedMetadata:
    title: str | None = None
    description: str | None = None
    image_url: str | None = None


def _meta(soup: BeautifulSoup, selector: str) -> str | None:
    tag = soup.select_one(selector)
    if tag is None:
        return None
    content = tag.get("content")
    return content if isinstance(content, str) else None


def _first_stripped(*candidates: str | None) -> str | None:
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return None


def parse_metadata_from_html(html: str, final_url: str) -> ParsedMetadata:
    """
    Read title, description and preview image from the head of a page.

    Only the first ``MAX_HEAD_CHARS`` characters are parsed. Relative image
    URLs are resolved against ``final_url``.
    """
    soup = BeautifulSoup(html[:MAX_HEAD_CHARS], "html.parser")

    title_tag = soup.find("title")
    title = _first_stripped(
        _meta(soup, 'meta[property="og:title"]'),
        _meta(soup, 'meta[name="twitter:title"]'),
        title_tag.get_text() if title_tag else None,
    )
    description = _first_stripped(
        _meta(soup, 'meta[property="og:description"]'),
        _meta(soup, 'meta[name="twitter:description"]'),
        _meta(soup, 'meta[name="description"]'),
    )

    image = _meta(soup, 'meta[property="og:image"]') or _meta(soup, 'meta[name="twitter:image"]')
    image_url = None
    if image:
        image_url = image if image.startswith("http") else urljoin(final_url, image)

    return ParsedMetadata(title=title, description=description, image_url=image_url)
