"""
Timeout-bounded HTTP fetch primitive over a shared aiohttp session.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Dict, Mapping, Optional
from urllib.parse import urljoin

import aiohttp
import structlog

from webquarry.config.config import Config
from webquarry.errors import FetchFailedError, RedirectError, RequestTimeoutError
from webquarry.observability.metrics import METRICS

logger = structlog.get_logger(__name__)

DEFAULT_FETCH_HEADERS: Dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


@dataclass
class FetchResponse:
    """One completed HTTP exchange. Header names are lower-cased."""

    status: int
    reason: str
    headers: Dict[str, str]
    body: bytes
    url: str
    final_url: str
    start_ts: float
    end_ts: float

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> str:
        """Media type without parameters, lower-cased."""
        return self.headers.get("content-type", "").split(";")[0].strip().lower()

    @property
    def charset(self) -> Optional[str]:
        for param in self.headers.get("content-type", "").split(";")[1:]:
            key, _, value = param.partition("=")
            if key.strip().lower() == "charset" and value:
                return value.strip().strip('"')
        return None

    def text(self) -> str:
        """Decode the body with the declared charset, falling back to UTF-8."""
        encoding = self.charset or "utf-8"
        try:
            return self.body.decode(encoding, errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")


class HttpClient:
    """
    GET-only client used by every acquisition and search operation.

    Standard redirects (301/302/303/307/308) are followed by aiohttp. HTTP 300
    is not, so callers that want it followed use ``follow_300_redirect``.
    No retries happen at this layer.
    """

    def __init__(self, config: Config):
        self.config = config
        self.default_headers = {
            **DEFAULT_FETCH_HEADERS,
            "User-Agent": config.http.user_agent,
            "Accept-Language": config.http.accept_language,
        }
        self.session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        """Initialize the HTTP client session."""
        if self.session is None:
            connector = aiohttp.TCPConnector(
                limit=self.config.http.connection_limit,
                ttl_dns_cache=30,
                enable_cleanup_closed=True,
            )
            # Per-call deadlines are applied in fetch().
            self.session = aiohttp.ClientSession(connector=connector, timeout=aiohttp.ClientTimeout(total=None))
            logger.info("HTTP client session initialized", connection_limit=self.config.http.connection_limit)

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        if self.session:
            await self.session.close()
            self.session = None
            logger.info("HTTP client closed")

    async def __aenter__(self) -> "HttpClient":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def fetch(
        self,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        timeout: float = 15.0,
        max_bytes: Optional[int] = None,
    ) -> FetchResponse:
        """
        GET ``url`` and read the body.

        Args:
            url: Absolute URL to fetch
            headers: Request headers; the browser-like defaults when omitted
            timeout: Deadline in seconds for connect, headers and body read
            max_bytes: Stop reading the body after this many bytes

        Raises:
            RequestTimeoutError: The deadline expired.
            FetchFailedError: The transport failed before a response arrived.
        """
        if self.session is None:
            raise RuntimeError("HTTP client not initialized")

        request_headers = dict(headers) if headers is not None else dict(self.default_headers)
        start_time = time.time()

        try:
            async with asyncio.timeout(timeout):
                async with self.session.get(url, headers=request_headers, allow_redirects=True) as response:
                    if max_bytes is None:
                        body = await response.read()
                    else:
                        body = await self._read_limited(response, max_bytes)
                    status = response.status
                    reason = response.reason or ""
                    response_headers = {k.lower(): v for k, v in response.headers.items()}
                    final_url = str(response.url)
        except TimeoutError:
            METRICS["fetch_failures_total"].labels(reason="timeout").inc()
            logger.warning("Request timed out", url=url, timeout=timeout)
            raise RequestTimeoutError(f"Request timed out after {timeout}s") from None
        except aiohttp.ClientError as e:
            METRICS["fetch_failures_total"].labels(reason="transport").inc()
            logger.warning("Request failed", url=url, error=str(e))
            raise FetchFailedError(str(e) or e.__class__.__name__) from e

        end_time = time.time()
        status_class = f"{status // 100}xx"
        METRICS["fetch_requests_total"].labels(status_class=status_class).inc()
        METRICS["fetch_latency_seconds"].observe(end_time - start_time)
        logger.debug(
            "Fetched URL",
            url=url,
            final_url=final_url,
            status=status,
            bytes=len(body),
            duration=round(end_time - start_time, 3),
        )

        return FetchResponse(
            status=status,
            reason=reason,
            headers=response_headers,
            body=body,
            url=url,
            final_url=final_url,
            start_ts=start_time,
            end_ts=end_time,
        )

    @staticmethod
    async def _read_limited(response: aiohttp.ClientResponse, max_bytes: int) -> bytes:
        chunks = []
        remaining = max_bytes
        while remaining > 0:
            chunk = await response.content.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    async def follow_300_redirect(
        self,
        response: FetchResponse,
        original_url: str,
        *,
        timeout: float = 15.0,
        headers: Optional[Mapping[str, str]] = None,
    ) -> FetchResponse:
        """
        Follow an HTTP 300 response once via its Location header.

        Any other status is returned unchanged.

        Raises:
            RedirectError: The 300 response carries no Location header.
        """
        if response.status != 300:
            return response

        location = response.headers.get("location")
        if not location:
            raise RedirectError()

        target = urljoin(original_url, location)
        logger.info("Following HTTP 300 redirect", url=original_url, location=target)
        return await self.fetch(target, headers=headers, timeout=timeout)
