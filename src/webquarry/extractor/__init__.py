"""
Format parsers turning raw response text into structured results.

Each parser is a pure function of the document text (plus the URL it was
served from, where relative references need resolving):

- html_extractor: page title, main-content HTML and cleaned text
- metadata: og/twitter/standard meta tags
- links: absolute, de-duplicated anchors
- markdown: HTML fragment to Markdown
- feed: RSS 2.0, RSS 1.0 and Atom
- sitemap: urlset and sitemapindex
"""

from .feed import parse_feed_xml
from .html_extractor import ParsedHtmlContent, parse_html_to_content
from .links import extract_links_from_html
from .markdown import html_to_markdown
from .metadata import ParsedMetadata, parse_metadata_from_html
from .models import (
    ExtractedLink,
    FailedChild,
    FeedEntry,
    FeedResult,
    FetchResult,
    MetadataResult,
    SearchResult,
    SitemapRef,
    SitemapResult,
    SitemapUrl,
)
from .sitemap import parse_sitemap_xml

__all__ = [
    "ExtractedLink",
    "FailedChild",
    "FeedEntry",
    "FeedResult",
    "FetchResult",
    "MetadataResult",
    "ParsedHtmlContent",
    "ParsedMetadata",
    "SearchResult",
    "SitemapRef",
    "SitemapResult",
    "SitemapUrl",
    "extract_links_from_html",
    "html_to_markdown",
    "parse_feed_xml",
    "parse_html_to_content",
    "parse_metadata_from_html",
    "parse_sitemap_xml",
]
