"""
Shared fixtures for webquarry tests.

Network access is always mocked with aioresponses; rate limiters run on a
FakeClock so waits complete instantly.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from aioresponses import aioresponses

from webquarry.config.config import Config
from webquarry.crawler.http_client import HttpClient
from webquarry.crawler.rate_limiter import TokenBucketRateLimiter
from webquarry.services.acquisition import ContentAcquisitionService
from webquarry.services.search import SearchProxyService
from webquarry.tools.executor import ToolExecutor

from tests.helpers import FakeClock


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")


# ============================================================================
# Core Test Fixtures
# ============================================================================


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rate_limiter(clock: FakeClock) -> TokenBucketRateLimiter:
    return TokenBucketRateLimiter(clock=clock, sleep=clock.sleep)


@pytest_asyncio.fixture
async def http_client(config: Config) -> AsyncGenerator[HttpClient, None]:
    """Create and initialize HTTP client."""
    client = HttpClient(config)
    await client.initialize()
    yield client
    await client.close()


@pytest_asyncio.fixture
async def acquisition(http_client, rate_limiter, config) -> ContentAcquisitionService:
    return ContentAcquisitionService(http_client, rate_limiter, config)


@pytest_asyncio.fixture
async def search_service(http_client, rate_limiter, acquisition, config) -> SearchProxyService:
    return SearchProxyService(http_client, rate_limiter, acquisition, config)


@pytest_asyncio.fixture
async def executor(acquisition, search_service) -> ToolExecutor:
    return ToolExecutor(acquisition, search_service)


@pytest.fixture
def mock_http():
    """Intercept every aiohttp request made during the test."""
    with aioresponses() as m:
        yield m


# ============================================================================
# Sample Documents
# ============================================================================


@pytest.fixture
def sample_html() -> str:
    return """
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <title>Test Article Title</title>
        <meta property="og:title" content="OG Title">
        <meta name="description" content="A short description of the article">
        <script>var tracking = "should not appear";</script>
        <style>.hidden { display: none; }</style>
    </head>
    <body>
        <header><h1>Site Header</h1></header>
        <nav><a href="/home">Home</a><a href="/about">About</a></nav>
        <main>
            <h2>Main heading</h2>
            <p>This is the first paragraph of the main content.</p>
            <!-- an html comment -->
            <div class="ad-banner">Buy things now!</div>
            <p>This is the second paragraph with <a href="/more">a link</a>.</p>
            <ul><li>First item</li><li>Second item</li></ul>
        </main>
        <aside>Related stories sidebar</aside>
        <footer>Copyright notice</footer>
    </body>
    </html>
    """


@pytest.fixture
def rss_feed() -> str:
    return """<?xml version="1.0" encoding="UTF-8"?>
    <rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">
      <channel>
        <title>Example Blog</title>
        <atom:link href="https://blog.example.com/feed.xml" rel="self" type="application/rss+xml"/>
        <link>https://blog.example.com/</link>
        <description>Posts about examples</description>
        <item>
          <title>First post</title>
          <link>https://blog.example.com/first</link>
          <description><![CDATA[<p>Hello <b>world</b></p>]]></description>
          <pubDate>Mon, 06 Jan 2025 10:00:00 GMT</pubDate>
        </item>
        <item>
          <title>Second post</title>
          <guid>https://blog.example.com/second</guid>
          <description>Plain summary</description>
        </item>
      </channel>
    </rss>
    """


@pytest.fixture
def urlset_xml() -> str:
    return """<?xml version="1.0" encoding="UTF-8"?>
    <urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
      <url><loc>https://example.com/a</loc><lastmod>2025-01-01</lastmod><priority>0.8</priority></url>
      <url><loc>https://example.com/b</loc><changefreq>weekly</changefreq></url>
      <url><loc>https://example.com/c</loc></url>
    </urlset>
    """


@pytest.fixture
def sitemap_index_xml() -> str:
    return """<?xml version="1.0" encoding="UTF-8"?>
    <sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
      <sitemap><loc>https://example.com/sitemap-1.xml</loc><lastmod>2025-02-01</lastmod></sitemap>
      <sitemap><loc>https://example.com/sitemap-2.xml</loc></sitemap>
    </sitemapindex>
    """
