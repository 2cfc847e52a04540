"""
Dependency container wiring one rate limiter, one HTTP client and the services.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional
from uuid import uuid4

import structlog

from webquarry.config import Config, load_config
from webquarry.crawler.http_client import HttpClient
from webquarry.crawler.rate_limiter import TokenBucketRateLimiter
from webquarry.services.acquisition import FETCH_CLASS, ContentAcquisitionService
from webquarry.services.search import SEARCH_CLASS, SearchProxyService
from webquarry.tools.executor import ToolExecutor


class ServiceContainer:
    """
    Owns the shared limiter and client and the services built on them.

    Both services receive the same TokenBucketRateLimiter, so "fetch" and
    "search" buckets live on one instance per process.
    """

    def __init__(self, config: Optional[Config] = None, config_path: Optional[Path] = None) -> None:
        self.config_path = config_path
        self.config = config if config is not None else load_config(config_path)
        self.logger = structlog.get_logger(self.__class__.__name__)
        self.instance_id = str(uuid4())
        self.is_running = False

        self.rate_limiter = TokenBucketRateLimiter()
        self.http_client = HttpClient(self.config)
        self.acquisition = ContentAcquisitionService(self.http_client, self.rate_limiter, self.config)
        self.search = SearchProxyService(self.http_client, self.rate_limiter, self.acquisition, self.config)
        self.executor = ToolExecutor(self.acquisition, self.search)

    async def initialize(self) -> None:
        """Open the HTTP session."""
        if self.is_running:
            return
        await self.http_client.initialize()
        self.is_running = True
        self.logger.info(
            "Service container initialized",
            instance_id=self.instance_id,
            config_path=str(self.config_path) if self.config_path else "default",
            tools=len(self.executor.tool_names),
        )

    async def shutdown(self) -> None:
        """Close the HTTP session."""
        if not self.is_running:
            return
        await self.http_client.close()
        self.is_running = False
        self.logger.info("Service container shutdown complete", instance_id=self.instance_id)

    @asynccontextmanager
    async def lifecycle(self) -> AsyncIterator[ServiceContainer]:
        """Context manager for proper lifecycle management."""
        try:
            await self.initialize()
            yield self
        finally:
            await self.shutdown()

    async def __aenter__(self) -> ServiceContainer:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()

    def get_health_status(self) -> Dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "is_running": self.is_running,
            "rate_limits": self.rate_limiter.get_stats(),
            "fetch_remaining": self.rate_limiter.get_remaining_tokens(FETCH_CLASS),
            "search_remaining": self.rate_limiter.get_remaining_tokens(SEARCH_CLASS),
        }
