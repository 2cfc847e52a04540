"""
Proxy for a caller-supplied SearXNG instance.

Search uses a fail-fast pre-check on the "search" rate-limit class: when no
token is left the caller gets RateLimitedError immediately instead of waiting.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import urlencode

import structlog
from pydantic import BaseModel, Field

from webquarry.config.config import Config
from webquarry.crawler.http_client import HttpClient
from webquarry.crawler.rate_limiter import TokenBucketRateLimiter
from webquarry.errors import (
    FetchFailedError,
    RateLimitedError,
    RequestTimeoutError,
    ToolValidationError,
    UpstreamHTTPError,
    WebQuarryError,
)
from webquarry.extractor.models import SearchResult
from webquarry.observability.metrics import METRICS
from webquarry.services.acquisition import ContentAcquisitionService

logger = structlog.get_logger(__name__)

SEARCH_CLASS = "search"
MAX_SEARCH_RESULTS = 50
MAX_RESULT_FIELD_LEN = 500
MAX_RESULTS_TO_FETCH = 5
DEFAULT_RESULTS_TO_FETCH = 3


class SearchParams(BaseModel):
    """Query parameters accepted by the SearXNG search API."""

    searxng_base_url: str = Field(description="Base URL of the SearXNG instance, e.g. https://search.example.org")
    query: str = Field(description="The search query string")
    format: Literal["json", "csv", "rss"] = Field(default="json", description="Output format requested upstream")
    categories: Optional[str] = Field(default=None, description="Comma-separated categories, e.g. general,science")
    language: Optional[str] = Field(default=None, description="Language code, e.g. en-US")
    pageno: Optional[int] = Field(default=None, ge=1, description="Result page number")
    time_range: Optional[str] = Field(default=None, description="day, week, month or year")
    safesearch: Optional[int] = Field(default=None, ge=0, le=2, description="0=off, 1=moderate, 2=strict")
    max_results: Optional[int] = Field(default=None, description="Results to return (default 10, max 50)")


@dataclass(slots=True, frozen=True)
class SearchFetchItem:
    """One search hit with the fetched page text, or a failure marker."""

    url: str
    title: str
    snippet: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_search_url(params: SearchParams) -> str:
    """Normalize the instance base URL to its ``/search`` endpoint and add the query string."""
    base = params.searxng_base_url.strip().rstrip("/")
    search_path = base if base.endswith("/search") else f"{base}/search"

    query: Dict[str, Any] = {"q": params.query, "format": params.format or "json"}
    if params.categories:
        query["categories"] = params.categories
    if params.language:
        query["language"] = params.language
    if params.pageno is not None:
        query["pageno"] = params.pageno
    if params.time_range:
        query["time_range"] = params.time_range
    if params.safesearch is not None:
        query["safesearch"] = params.safesearch
    return f"{search_path}?{urlencode(query)}"


class SearchProxyService:
    def __init__(
        self,
        http_client: HttpClient,
        rate_limiter: TokenBucketRateLimiter,
        acquisition: ContentAcquisitionService,
        config: Config,
    ):
        self.http_client = http_client
        self.rate_limiter = rate_limiter
        self.acquisition = acquisition
        self.config = config

        rule = config.rate_limits.search
        self.rate_limiter.configure(SEARCH_CLASS, rule.max_requests, rule.window_ms)

    def _result_limit(self, params: SearchParams) -> int:
        return min(max(1, params.max_results or self.config.search.default_max_results), MAX_SEARCH_RESULTS)

    def _request_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json", "User-Agent": self.config.search.user_agent}

    async def search(self, params: SearchParams) -> List[SearchResult]:
        """
        Run one search against the instance named in ``params``.

        Raises:
            ToolValidationError: Missing base URL or query.
            RateLimitedError: No local token left, or the instance answered 429.
            UpstreamHTTPError: Any other non-2xx status, or a non-JSON body.
            RequestTimeoutError: The instance did not answer in time.
        """
        if not params.searxng_base_url or not params.searxng_base_url.strip():
            raise ToolValidationError("searxng_base_url is required and must be a non-empty string")
        if not params.query or not params.query.strip():
            raise ToolValidationError("query is required and must be a non-empty string")

        live = self.rate_limiter.get_stats()[SEARCH_CLASS]
        self.rate_limiter.check_available(
            SEARCH_CLASS,
            f"SearXNG search rate limited ({live['capacity']} requests per {live['window_ms'] / 1000:g} seconds). "
            "Try again later or check get_rate_limit_status for remaining tokens.",
        )
        await self.rate_limiter.acquire(SEARCH_CLASS)

        params = params.model_copy(
            update={"searxng_base_url": params.searxng_base_url.strip(), "query": params.query.strip()}
        )
        search_url = build_search_url(params)
        timeout = self.config.http.search_timeout

        try:
            response = await self.http_client.fetch(search_url, headers=self._request_headers(), timeout=timeout)
        except RequestTimeoutError as e:
            METRICS["search_requests_total"].labels(outcome="timeout").inc()
            raise RequestTimeoutError(f"SearXNG request timed out after {timeout:g} seconds") from e
        except FetchFailedError as e:
            METRICS["search_requests_total"].labels(outcome="failed").inc()
            logger.error("SearXNG search failed", url=search_url, error=e.message)
            raise FetchFailedError(f"SearXNG request failed: {e.message}") from e

        if self.config.rate_limits.respect_upstream_headers:
            await self.rate_limiter.update_from_headers(SEARCH_CLASS, response.headers)

        if not response.ok:
            if response.status == 403:
                METRICS["search_requests_total"].labels(outcome="forbidden").inc()
                raise UpstreamHTTPError(
                    "SearXNG returned 403. The instance may not allow JSON format or may block this client.",
                    status=403,
                )
            if response.status == 429:
                METRICS["search_requests_total"].labels(outcome="rate_limited").inc()
                METRICS["rate_limit_rejections_total"].labels(op_class=SEARCH_CLASS, source="upstream").inc()
                raise RateLimitedError("SearXNG instance rate limit exceeded (HTTP 429). Try again later.")
            METRICS["search_requests_total"].labels(outcome="upstream_error").inc()
            raise UpstreamHTTPError(
                f"SearXNG returned {response.status}: {response.reason}".rstrip(": "), status=response.status
            )

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            METRICS["search_requests_total"].labels(outcome="upstream_error").inc()
            raise UpstreamHTTPError(f"SearXNG returned non-JSON content type: {content_type}", status=response.status)

        try:
            data = json.loads(response.text())
        except ValueError as e:
            METRICS["search_requests_total"].labels(outcome="upstream_error").inc()
            raise UpstreamHTTPError(f"SearXNG returned invalid JSON: {e}", status=response.status) from e

        raw_results = (data.get("results") or []) if isinstance(data, dict) else None
        if not isinstance(raw_results, list):
            METRICS["search_requests_total"].labels(outcome="upstream_error").inc()
            raise UpstreamHTTPError("SearXNG returned an unexpected payload", status=response.status)

        results = []
        for raw in raw_results[: self._result_limit(params)]:
            if not isinstance(raw, dict) or not raw.get("url"):
                continue
            results.append(
                SearchResult(
                    title=str(raw.get("title") or "No title")[:MAX_RESULT_FIELD_LEN],
                    url=str(raw["url"]),
                    snippet=str(raw.get("content") or raw.get("snippet") or "")[:MAX_RESULT_FIELD_LEN],
                )
            )

        METRICS["search_requests_total"].labels(outcome="success").inc()
        logger.info("SearXNG search completed", query=params.query, results=len(results))
        return results

    async def search_formatted(self, params: SearchParams) -> str:
        results = await self.search(params)
        if not results:
            return "No search results found."
        return "\n\n".join(
            f"[{i}] {result.title}\nURL: {result.url}\nDescription: {result.snippet}"
            for i, result in enumerate(results, start=1)
        )

    async def search_then_fetch(
        self, params: SearchParams, max_results_to_fetch: Optional[int] = DEFAULT_RESULTS_TO_FETCH
    ) -> List[SearchFetchItem]:
        """
        Search once (first page) and fetch each hit's page text.

        A hit whose fetch fails is kept with ``[Failed to fetch: ...]`` as its
        content.
        """
        to_fetch = min(MAX_RESULTS_TO_FETCH, max(1, max_results_to_fetch or DEFAULT_RESULTS_TO_FETCH))
        results = await self.search(params.model_copy(update={"pageno": 1, "max_results": to_fetch}))

        items = []
        for result in results:
            try:
                content = await self.acquisition.fetch_url_formatted(result.url)
            except WebQuarryError as e:
                logger.warning("Search result fetch failed", url=result.url, error=e.message)
                content = f"[Failed to fetch: {e.message}]"
            items.append(SearchFetchItem(url=result.url, title=result.title, snippet=result.snippet, content=content))
        return items

    async def search_then_fetch_formatted(
        self, params: SearchParams, max_results_to_fetch: Optional[int] = DEFAULT_RESULTS_TO_FETCH
    ) -> str:
        items = await self.search_then_fetch(params, max_results_to_fetch)
        return "\n\n".join(
            f"--- Result {i}: {item.title} ---\nURL: {item.url}\n\n{item.content}"
            for i, item in enumerate(items, start=1)
        )

    def get_remaining_search_tokens(self) -> int:
        return self.rate_limiter.get_remaining_tokens(SEARCH_CLASS)
