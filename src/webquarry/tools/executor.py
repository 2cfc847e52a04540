"""
Tool dispatcher: maps tool names to acquisition and search operations.

Every tool takes a parameter object validated by a pydantic model and returns
a JSON-serializable value (a string, a dict or a list of dicts).
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

import structlog
from pydantic import BaseModel, Field, ValidationError

from webquarry.errors import ToolValidationError, UnknownToolError, WebQuarryError
from webquarry.extractor.models import FetchResult
from webquarry.observability.metrics import METRICS
from webquarry.services.acquisition import ContentAcquisitionService
from webquarry.services.search import DEFAULT_RESULTS_TO_FETCH, SearchParams, SearchProxyService

logger = structlog.get_logger(__name__)

MAX_TOOL_TEXT_LEN = 10_000
MAX_BATCH_URLS = 10
MAX_LOGGED_STRING = 200
MAX_LOGGED_ITEMS = 5


# --- Parameter models ---


class UrlParams(BaseModel):
    url: str = Field(min_length=1, description="HTTP or HTTPS URL")


class ExtractLinksParams(UrlParams):
    same_domain_only: bool = Field(default=False, description="Only return links on the page's own origin")


class FetchSitemapParams(UrlParams):
    expand_index: bool = Field(
        default=False, description="Follow a sitemap index and merge URLs from up to 10 child sitemaps"
    )


class BatchFetchParams(BaseModel):
    urls: List[str] = Field(min_length=1, max_length=MAX_BATCH_URLS, description="URLs to fetch (max 10)")


class SearchThenFetchParams(SearchParams):
    max_results_to_fetch: Optional[int] = Field(
        default=DEFAULT_RESULTS_TO_FETCH, description="Results to fetch full content for (default 3, max 5)"
    )


class NoParams(BaseModel):
    pass


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    params_model: Type[BaseModel]
    handler: Callable[[Any], Awaitable[Any]]


def sanitize_params_for_log(params: Any) -> Dict[str, Any]:
    """Shorten long strings and collapse lists and objects so params can be logged."""
    if not isinstance(params, dict):
        return {}
    out: Dict[str, Any] = {}
    for key, value in params.items():
        if isinstance(value, str):
            out[key] = value if len(value) <= MAX_LOGGED_STRING else value[:MAX_LOGGED_STRING] + "..."
        elif isinstance(value, (list, tuple)):
            out[key] = list(value) if len(value) <= MAX_LOGGED_ITEMS else f"[{len(value)} items]"
        elif isinstance(value, dict):
            out[key] = "[object]"
        else:
            out[key] = value
    return out


def _fetch_summary(result: FetchResult) -> Dict[str, Any]:
    return {
        "url": result.url,
        "title": result.title,
        "content_length": len(result.text_content),
        "text_content": result.text_content[:MAX_TOOL_TEXT_LEN],
        "has_more_content": len(result.text_content) > MAX_TOOL_TEXT_LEN,
    }


class ToolExecutor:
    """Validates parameters, dispatches to a service and logs every invocation."""

    def __init__(self, acquisition: ContentAcquisitionService, search: SearchProxyService):
        self.acquisition = acquisition
        self.search = search
        self._tools: Dict[str, ToolSpec] = {spec.name: spec for spec in self._build_specs()}

    def _build_specs(self) -> List[ToolSpec]:
        return [
            ToolSpec(
                "fetch_content",
                "Fetch a webpage and return one string with its title, URL and cleaned body text.",
                UrlParams,
                self._fetch_content,
            ),
            ToolSpec(
                "fetch_url",
                "Fetch a webpage and return url, title, content_length, text_content (max 10000 chars) "
                "and has_more_content.",
                UrlParams,
                self._fetch_url,
            ),
            ToolSpec(
                "fetch_content_as_markdown",
                "Fetch a webpage and return its main content as Markdown with a title and URL header.",
                UrlParams,
                self._fetch_content_as_markdown,
            ),
            ToolSpec(
                "fetch_metadata",
                "Return final URL, status code, content type and Open Graph/Twitter/meta title, "
                "description and image.",
                UrlParams,
                self._fetch_metadata,
            ),
            ToolSpec(
                "fetch_feed",
                "Fetch and parse an RSS or Atom feed into title, link, description and entries.",
                UrlParams,
                self._fetch_feed,
            ),
            ToolSpec(
                "extract_links",
                "Return the absolute, de-duplicated links of a page as {href, text} objects.",
                ExtractLinksParams,
                self._extract_links,
            ),
            ToolSpec(
                "fetch_sitemap",
                "Fetch a sitemap or sitemap index; expand_index merges URLs from up to 10 child sitemaps.",
                FetchSitemapParams,
                self._fetch_sitemap,
            ),
            ToolSpec(
                "batch_fetch",
                "Fetch up to 10 URLs; each item is a fetch_url summary or {url, error}.",
                BatchFetchParams,
                self._batch_fetch,
            ),
            ToolSpec(
                "search",
                "Search a SearXNG instance and return {query, results_count, results}.",
                SearchParams,
                self._search,
            ),
            ToolSpec(
                "search_formatted",
                "Search a SearXNG instance and return numbered results as one string.",
                SearchParams,
                self._search_formatted,
            ),
            ToolSpec(
                "search_then_fetch",
                "Search a SearXNG instance and fetch page text for the top results (default 3, max 5).",
                SearchThenFetchParams,
                self._search_then_fetch,
            ),
            ToolSpec(
                "search_then_fetch_formatted",
                "Like search_then_fetch but returns all results concatenated into one string.",
                SearchThenFetchParams,
                self._search_then_fetch_formatted,
            ),
            ToolSpec(
                "get_rate_limit_status",
                "Return remaining fetch and search rate-limit tokens without consuming any.",
                NoParams,
                self._get_rate_limit_status,
            ),
        ]

    # --- Registry ---

    @property
    def tool_names(self) -> List[str]:
        return list(self._tools)

    def list_tools(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": spec.name,
                "description": spec.description,
                "parameters": spec.params_model.model_json_schema(),
            }
            for spec in self._tools.values()
        ]

    def _validate(self, spec: ToolSpec, params: Any) -> BaseModel:
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise ToolValidationError(f"Parameters for {spec.name} must be an object")
        try:
            return spec.params_model.model_validate(params)
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or 'params'}: {error['msg']}" for error in e.errors()
            )
            raise ToolValidationError(f"Invalid parameters for {spec.name}: {details}") from e

    async def execute(self, name: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Run one tool.

        Raises:
            UnknownToolError: ``name`` is not a registered tool.
            ToolValidationError: ``params`` do not match the tool's model.
            WebQuarryError: The operation failed.
        """
        logger.info("Tool invoked", tool=name, params=sanitize_params_for_log(params))
        start = time.perf_counter()

        try:
            spec = self._tools.get(name)
            if spec is None:
                raise UnknownToolError(f"Unknown tool: {name}")
            result = await spec.handler(self._validate(spec, params))
        except WebQuarryError as e:
            duration_ms = round((time.perf_counter() - start) * 1000)
            METRICS["tool_invocations_total"].labels(
                tool=name if name in self._tools else "unknown", outcome="error"
            ).inc()
            logger.warning("Tool failed", tool=name, duration_ms=duration_ms, error=e.message)
            raise

        duration_ms = round((time.perf_counter() - start) * 1000)
        METRICS["tool_invocations_total"].labels(tool=name, outcome="success").inc()
        logger.info("Tool completed", tool=name, duration_ms=duration_ms)
        return result

    # --- Handlers ---

    async def _fetch_content(self, params: UrlParams) -> str:
        return await self.acquisition.fetch_url_formatted(params.url)

    async def _fetch_url(self, params: UrlParams) -> Dict[str, Any]:
        return _fetch_summary(await self.acquisition.fetch_url(params.url))

    async def _fetch_content_as_markdown(self, params: UrlParams) -> str:
        return await self.acquisition.fetch_url_as_markdown(params.url)

    async def _fetch_metadata(self, params: UrlParams) -> Dict[str, Any]:
        return (await self.acquisition.fetch_metadata(params.url)).to_dict()

    async def _fetch_feed(self, params: UrlParams) -> Dict[str, Any]:
        return (await self.acquisition.fetch_feed(params.url)).to_dict()

    async def _extract_links(self, params: ExtractLinksParams) -> List[Dict[str, Any]]:
        links = await self.acquisition.extract_links(params.url, params.same_domain_only)
        return [link.to_dict() for link in links]

    async def _fetch_sitemap(self, params: FetchSitemapParams) -> Dict[str, Any]:
        return (await self.acquisition.fetch_sitemap(params.url, params.expand_index)).to_dict()

    async def _batch_fetch(self, params: BatchFetchParams) -> List[Dict[str, Any]]:
        urls = [url.strip() for url in params.urls if url.strip()]
        if not urls:
            raise ToolValidationError("urls must contain at least one non-empty URL string")

        out: List[Dict[str, Any]] = []
        for url in urls:
            try:
                out.append(_fetch_summary(await self.acquisition.fetch_url(url)))
            except WebQuarryError as e:
                out.append({"url": url, "error": e.message})
        return out

    async def _search(self, params: SearchParams) -> Dict[str, Any]:
        results = await self.search.search(params)
        return {
            "query": params.query,
            "results_count": len(results),
            "results": [result.to_dict() for result in results],
        }

    async def _search_formatted(self, params: SearchParams) -> str:
        return await self.search.search_formatted(params)

    async def _search_then_fetch(self, params: SearchThenFetchParams) -> List[Dict[str, Any]]:
        items = await self.search.search_then_fetch(params, params.max_results_to_fetch)
        return [item.to_dict() for item in items]

    async def _search_then_fetch_formatted(self, params: SearchThenFetchParams) -> str:
        return await self.search.search_then_fetch_formatted(params, params.max_results_to_fetch)

    async def _get_rate_limit_status(self, params: NoParams) -> Dict[str, int]:
        return {
            "fetch_remaining": self.acquisition.get_remaining_fetch_tokens(),
            "search_remaining": self.search.get_remaining_search_tokens(),
        }
