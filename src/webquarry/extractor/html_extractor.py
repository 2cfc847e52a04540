"""
HTML-to-text extraction tuned for language-model consumption.

Boilerplate (scripts, navigation, ads, comments) is stripped, the main content
region is located with a fixed selector cascade, and the text is cleaned line
by line and bounded to ``MAX_TEXT_LEN`` characters.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from bs4 import BeautifulSoup, Comment, Tag

MAX_TITLE_LEN = 500
MAX_TEXT_LEN = 50_000
MIN_SENTENCE_CUT = 40_000
TRUNCATION_MARKER = "\n\n[Content truncated...]"

REMOVE_SELECTOR = (
    "script, style, noscript, nav, header, footer, aside, .advertisement, .ads, "
    '[class*="ad-"], [class*="advertisement"], [id*="ad-"], [id*="advertisement"]'
)
PRIMARY_CONTENT_SELECTOR = 'main, article, [role="main"]'
SECONDARY_CONTENT_SELECTOR = ".content, .main-content, .post-content, .entry-content, .article-content"

_STOPLIST_LINE = re.compile(r"^(cookie|privacy|terms|skip|menu|search|login|register)$", re.IGNORECASE)
_EXCESS_NEWLINES = re.compile(r"\n{3,}")


@dataclass(slots=True, frozen=True)
class ParsedHtmlContent:
    title: str
    content: str
    text_content: str


def _meta_content(soup: BeautifulSoup, selector: str) -> str:
    tag = soup.select_one(selector)
    if tag is None:
        return ""
    content = tag.get("content")
    return content if isinstance(content, str) else ""


def title_from_url(url: str) -> str:
    """Last path segment without the query string, or ``""``."""
    return url.split("/")[-1].split("?")[0]


def _resolve_title(soup: BeautifulSoup, final_url: str) -> str:
    title_tag = soup.find("title")
    h1_tag = soup.find("h1")
    title = (
        (title_tag.get_text().strip() if title_tag else "")
        or (h1_tag.get_text().strip() if h1_tag else "")
        or _meta_content(soup, 'meta[property="og:title"]')
        or _meta_content(soup, 'meta[name="twitter:title"]')
        or title_from_url(final_url)
        or final_url
    )
    return title[:MAX_TITLE_LEN]


def _find_main_root(soup: BeautifulSoup) -> Tag:
    main = soup.select_one(PRIMARY_CONTENT_SELECTOR)
    if main is None:
        main = soup.select_one(SECONDARY_CONTENT_SELECTOR)
    if main is None:
        main = soup.body or soup
        for tag in main.select("nav, header, footer"):
            tag.extract()
    return main


def clean_text(raw: str) -> str:
    """Trim lines, drop short and stoplisted ones, collapse blank runs."""
    lines = (line.strip() for line in raw.split("\n"))
    kept = [line for line in lines if len(line) > 2 and not _STOPLIST_LINE.match(line)]
    return _EXCESS_NEWLINES.sub("\n\n", "\n".join(kept)).strip()


def truncate_text(text: str) -> str:
    """
    Bound ``text`` to ``MAX_TEXT_LEN`` characters plus the truncation marker.

    Prefers cutting at the last sentence or paragraph break when that break
    falls after ``MIN_SENTENCE_CUT``.
    """
    if len(text) <= MAX_TEXT_LEN:
        return text
    truncated = text[:MAX_TEXT_LEN]
    cut_point = max(truncated.rfind("."), truncated.rfind("\n\n"))
    end = cut_point if cut_point > MIN_SENTENCE_CUT else MAX_TEXT_LEN
    return truncated[:end] + TRUNCATION_MARKER


def parse_html_to_content(html: str, final_url: str) -> ParsedHtmlContent:
    """Extract title, main-content HTML and cleaned text from a page."""
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup.select(REMOVE_SELECTOR):
        tag.extract()
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    title = _resolve_title(soup, final_url)
    main = _find_main_root(soup)
    text_content = truncate_text(clean_text(main.get_text()))

    return ParsedHtmlContent(
        title=title,
        content=main.decode_contents(),
        text_content=text_content,
    )
