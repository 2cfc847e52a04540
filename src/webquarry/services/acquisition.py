"""
Content acquisition: fetch pages, feeds and sitemaps under the "fetch" rate
limit and normalize them through the format parsers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, NoReturn, Optional
from urllib.parse import urlsplit

import structlog

from webquarry.config.config import Config
from webquarry.crawler.http_client import FetchResponse, HttpClient
from webquarry.crawler.rate_limiter import TokenBucketRateLimiter
from webquarry.errors import (
    FetchFailedError,
    InvalidURLError,
    ParseError,
    RateLimitedError,
    RedirectError,
    RequestTimeoutError,
    UpstreamHTTPError,
    WebQuarryError,
)
from webquarry.extractor.feed import parse_feed_xml
from webquarry.extractor.html_extractor import parse_html_to_content, truncate_text
from webquarry.extractor.links import extract_links_from_html
from webquarry.extractor.markdown import format_document, html_to_markdown
from webquarry.extractor.metadata import parse_metadata_from_html
from webquarry.extractor.models import (
    ExtractedLink,
    FailedChild,
    FeedResult,
    FetchResult,
    MetadataResult,
    SitemapResult,
    SitemapUrl,
)
from webquarry.extractor.sitemap import parse_sitemap_xml

logger = structlog.get_logger(__name__)

FETCH_CLASS = "fetch"
MAX_PLAIN_TEXT_LEN = 50_000
FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"
SITEMAP_ACCEPT = "application/xml, text/xml, */*"


@dataclass(frozen=True)
class _Operation:
    """Wording used when classifying failures of one acquisition operation."""

    timeout_label: str
    failure_prefix: str


_FETCH_URL = _Operation("URL fetch", "Failed to fetch URL")
_METADATA = _Operation("Metadata fetch", "Failed to fetch metadata")
_FEED = _Operation("Feed fetch", "Failed to fetch feed")
_LINKS = _Operation("Extract links", "Failed to extract links")
_SITEMAP = _Operation("Sitemap fetch", "Failed to fetch sitemap")


def normalize_url(url: str) -> str:
    """
    Trim and validate a caller-supplied URL.

    Raises:
        InvalidURLError: Unparseable, non-HTTP(S), or missing a host.
    """
    if not isinstance(url, str):
        raise InvalidURLError(str(url))
    cleaned = url.strip()
    try:
        parts = urlsplit(cleaned)
        host = parts.hostname
    except ValueError:
        raise InvalidURLError(url) from None
    if parts.scheme.lower() not in ("http", "https") or not host:
        raise InvalidURLError(url)
    return cleaned


def _status_message(response: FetchResponse) -> str:
    return f"HTTP {response.status}: {response.reason}".rstrip(": ")


class ContentAcquisitionService:
    """
    Orchestrates rate limiting, fetching and parsing for every content tool.

    One "fetch" token is taken before each network round-trip. Failures are
    re-raised as WebQuarryError subclasses whose messages name the operation.
    """

    def __init__(self, http_client: HttpClient, rate_limiter: TokenBucketRateLimiter, config: Config):
        self.http_client = http_client
        self.rate_limiter = rate_limiter
        self.config = config

        rule = config.rate_limits.fetch
        self.rate_limiter.configure(FETCH_CLASS, rule.max_requests, rule.window_ms)

    # ------------------------------------------------------------------
    # Error classification
    # ------------------------------------------------------------------

    def _raise_classified(self, operation: _Operation, exc: Exception, timeout: float) -> NoReturn:
        if isinstance(exc, RequestTimeoutError):
            raise RequestTimeoutError(
                f"{operation.timeout_label} request timed out after {timeout:g} seconds"
            ) from exc
        if isinstance(exc, RateLimitedError):
            raise RateLimitedError("Rate limit exceeded. Please wait before trying again.") from exc
        if isinstance(exc, RedirectError):
            raise RedirectError(f"{operation.failure_prefix}: {exc.message}") from exc
        if isinstance(exc, UpstreamHTTPError):
            raise UpstreamHTTPError(f"{operation.failure_prefix}: {exc.message}", status=exc.status) from exc
        if isinstance(exc, ParseError):
            raise ParseError(f"{operation.failure_prefix}: {exc.message}") from exc
        if isinstance(exc, FetchFailedError):
            raise FetchFailedError(f"{operation.failure_prefix}: {exc.message}") from exc
        if isinstance(exc, WebQuarryError):
            raise exc
        logger.error("Unexpected acquisition failure", operation=operation.failure_prefix, error=repr(exc))
        raise FetchFailedError(f"{operation.failure_prefix}: {exc}") from exc

    async def _get(
        self,
        url: str,
        *,
        timeout: float,
        headers: Optional[Dict[str, str]] = None,
        max_bytes: Optional[int] = None,
    ) -> FetchResponse:
        await self.rate_limiter.acquire(FETCH_CLASS)
        return await self.http_client.fetch(url, headers=headers, timeout=timeout, max_bytes=max_bytes)

    def _headers_with_accept(self, accept: str) -> Dict[str, str]:
        return {**self.http_client.default_headers, "Accept": accept}

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    async def fetch_url(self, url: str) -> FetchResult:
        """Fetch a page and reduce it to title, main-content HTML and text."""
        normalized = normalize_url(url)
        timeout = self.config.http.fetch_timeout

        try:
            response = await self._get(normalized, timeout=timeout)
            response = await self.http_client.follow_300_redirect(response, normalized, timeout=timeout)
            if not response.ok:
                raise UpstreamHTTPError(_status_message(response), status=response.status)

            content_type_header = response.headers.get("content-type", "")
            final_url = response.final_url or normalized

            if "text/html" not in content_type_header and "text/plain" not in content_type_header:
                return FetchResult(
                    url=final_url,
                    title="Non-text content",
                    content="",
                    text_content=(
                        f"Content type {content_type_header} is not supported. "
                        "Only HTML and plain text are supported."
                    ),
                )

            body = response.text()
            if "text/plain" in content_type_header:
                truncated = body[:MAX_PLAIN_TEXT_LEN]
                return FetchResult(
                    url=final_url,
                    title=final_url.split("/")[-1] or final_url,
                    content=truncated,
                    text_content=truncated,
                )

            parsed = parse_html_to_content(body, final_url)
            return FetchResult(
                url=final_url,
                title=parsed.title,
                content=parsed.content,
                text_content=parsed.text_content,
            )
        except Exception as e:
            self._raise_classified(_FETCH_URL, e, timeout)

    async def fetch_url_formatted(self, url: str) -> str:
        result = await self.fetch_url(url)
        return format_document(result.title, result.url, result.text_content)

    async def fetch_url_as_markdown(self, url: str) -> str:
        """
        Fetch a page and render its main content as Markdown.

        Falls back to the formatted plain text when the page has no main
        content fragment or conversion fails. The Markdown body is truncated
        like page text.
        """
        result = await self.fetch_url(url)
        if not result.content.strip():
            return format_document(result.title, result.url, result.text_content)
        try:
            markdown = html_to_markdown(result.content)
        except Exception as e:
            logger.warning("Markdown conversion failed, using plain text", url=result.url, error=str(e))
            return format_document(result.title, result.url, result.text_content)
        return format_document(result.title, result.url, truncate_text(markdown))

    async def fetch_metadata(self, url: str) -> MetadataResult:
        """
        Report status and content type, plus meta tags for successful HTML.

        Non-2xx responses are returned, not raised.
        """
        normalized = normalize_url(url)
        timeout = self.config.http.metadata_timeout

        try:
            response = await self._get(normalized, timeout=timeout, max_bytes=self.config.http.metadata_max_bytes)
            final_url = response.final_url or normalized
            content_type_header = response.headers.get("content-type", "")
            content_type = content_type_header.split(";")[0].strip()

            if not response.ok or "text/html" not in content_type_header:
                return MetadataResult(final_url=final_url, status_code=response.status, content_type=content_type)

            meta = parse_metadata_from_html(response.text(), final_url)
            return MetadataResult(
                final_url=final_url,
                status_code=response.status,
                content_type=content_type,
                title=meta.title,
                description=meta.description,
                image_url=meta.image_url,
            )
        except Exception as e:
            self._raise_classified(_METADATA, e, timeout)

    async def extract_links(self, url: str, same_domain_only: bool = False) -> List[ExtractedLink]:
        """List a page's links; non-HTML responses yield an empty list."""
        normalized = normalize_url(url)
        timeout = self.config.http.fetch_timeout

        try:
            response = await self._get(normalized, timeout=timeout)
            if not response.ok:
                raise UpstreamHTTPError(_status_message(response), status=response.status)
            if "text/html" not in response.headers.get("content-type", ""):
                return []
            final_url = response.final_url or normalized
            return extract_links_from_html(response.text(), final_url, same_domain_only)
        except Exception as e:
            self._raise_classified(_LINKS, e, timeout)

    # ------------------------------------------------------------------
    # Feeds and sitemaps
    # ------------------------------------------------------------------

    async def fetch_feed(self, url: str) -> FeedResult:
        normalized = normalize_url(url)
        timeout = self.config.http.fetch_timeout

        try:
            response = await self._get(normalized, timeout=timeout, headers=self._headers_with_accept(FEED_ACCEPT))
            if not response.ok:
                raise UpstreamHTTPError(
                    f"Feed fetch failed: HTTP {response.status} {response.reason}".rstrip(), status=response.status
                )
            return parse_feed_xml(response.text(), normalized)
        except Exception as e:
            self._raise_classified(_FEED, e, timeout)

    async def fetch_sitemap(self, url: str, expand_index: bool = False) -> SitemapResult:
        """
        Fetch a sitemap or sitemap index.

        With ``expand_index``, an index is flattened into one urlset built from
        its first children (``search.max_sitemap_children``), fetched one at a
        time. Children that fail are skipped and listed in ``failed_children``.
        """
        normalized = normalize_url(url)
        timeout = self.config.http.fetch_timeout

        try:
            parsed = await self._fetch_sitemap_document(normalized, timeout)
        except Exception as e:
            self._raise_classified(_SITEMAP, e, timeout)

        if parsed.type == "sitemapindex" and expand_index and parsed.sitemaps:
            return await self._expand_index(normalized, parsed)

        return SitemapResult(type=parsed.type, url=normalized, urls=parsed.urls, sitemaps=parsed.sitemaps)

    async def _fetch_sitemap_document(self, url: str, timeout: float) -> SitemapResult:
        response = await self._get(url, timeout=timeout, headers=self._headers_with_accept(SITEMAP_ACCEPT))
        if not response.ok:
            raise UpstreamHTTPError(
                f"Sitemap fetch failed: HTTP {response.status} {response.reason}".rstrip(), status=response.status
            )
        return parse_sitemap_xml(response.text())

    async def _expand_index(self, url: str, index: SitemapResult) -> SitemapResult:
        children = (index.sitemaps or [])[: self.config.search.max_sitemap_children]
        urls: List[SitemapUrl] = []
        failed: List[FailedChild] = []

        for child in children:
            try:
                result = await self.fetch_sitemap(child.loc, expand_index=False)
            except WebQuarryError as e:
                logger.warning("Skipping child sitemap", parent=url, child=child.loc, error=e.message)
                failed.append(FailedChild(loc=child.loc, error=e.message))
                continue
            urls.extend(result.urls or [])

        logger.info(
            "Expanded sitemap index",
            url=url,
            children=len(children),
            failed=len(failed),
            urls=len(urls),
        )
        return SitemapResult(type="urlset", url=url, urls=urls, failed_children=failed or None)

    def get_remaining_fetch_tokens(self) -> int:
        return self.rate_limiter.get_remaining_tokens(FETCH_CLASS)
