"""
Anchor extraction with absolute-URL resolution and de-duplication.
"""

from __future__ import annotations

from typing import Optional, Tuple
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

from .models import ExtractedLink

SKIP_PREFIXES = ("#", "javascript:", "mailto:", "tel:")
MAX_LINK_TEXT_LEN = 200

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _origin(url: str) -> Tuple[str, str, Optional[int]]:
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    return scheme, (parts.hostname or "").lower(), parts.port or _DEFAULT_PORTS.get(scheme)


def extract_links_from_html(html: str, final_url: str, same_domain_only: bool = False) -> list[ExtractedLink]:
    """
    List the page's links in document order.

    Args:
        html: Page markup
        final_url: URL the page was served from; relative hrefs resolve here
        same_domain_only: Keep only links with the same scheme, host and port

    Returns:
        One ExtractedLink per distinct absolute URL
    """
    soup = BeautifulSoup(html, "html.parser")
    base_origin = _origin(final_url)
    links: list[ExtractedLink] = []
    seen: set[str] = set()

    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith(SKIP_PREFIXES):
            continue
        try:
            absolute = urljoin(final_url, href)
            origin = _origin(absolute)
        except ValueError:
            # Malformed netloc such as an unbalanced IPv6 bracket.
            continue
        if same_domain_only and origin != base_origin:
            continue
        if absolute in seen:
            continue
        seen.add(absolute)

        text = anchor.get_text().strip()[:MAX_LINK_TEXT_LEN]
        links.append(ExtractedLink(href=absolute, text=text or absolute))

    return links
