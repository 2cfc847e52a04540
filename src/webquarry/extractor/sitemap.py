"""
Sitemap and sitemap-index parsing.

Matching is by local element name, so documents with or without the
sitemaps.org namespace parse the same way. A document with neither a
``sitemapindex`` nor a ``urlset`` root parses as an empty urlset.
"""

from __future__ import annotations

from typing import Optional

from bs4 import BeautifulSoup, Tag

from .models import SitemapRef, SitemapResult, SitemapUrl


def _text(parent: Tag, name: str) -> Optional[str]:
    tag = parent.find(name, recursive=False)
    if tag is None:
        return None
    text = tag.get_text().strip()
    return text or None


def parse_sitemap_xml(xml: str) -> SitemapResult:
    soup = BeautifulSoup(xml, "xml")

    index = soup.find("sitemapindex")
    if index is not None:
        sitemaps = []
        for entry in index.find_all("sitemap", recursive=False):
            loc = _text(entry, "loc")
            if loc:
                sitemaps.append(SitemapRef(loc=loc, lastmod=_text(entry, "lastmod")))
        return SitemapResult(type="sitemapindex", sitemaps=sitemaps)

    urlset = soup.find("urlset")
    if urlset is not None:
        urls = []
        for entry in urlset.find_all("url", recursive=False):
            loc = _text(entry, "loc")
            if not loc:
                continue
            urls.append(
                SitemapUrl(
                    loc=loc,
                    lastmod=_text(entry, "lastmod"),
                    changefreq=_text(entry, "changefreq"),
                    priority=_text(entry, "priority"),
                )
            )
        return SitemapResult(type="urlset", urls=urls)

    return SitemapResult(type="urlset", urls=[])
