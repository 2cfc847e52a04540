"""Configuration models and loaders."""

from __future__ import annotations

from .config import (
    Config,
    HttpConfig,
    MonitoringConfig,
    RateLimitRule,
    RateLimitsConfig,
    SearchConfig,
    WebConfig,
    load_config,
)

__all__ = [
    "Config",
    "HttpConfig",
    "MonitoringConfig",
    "RateLimitRule",
    "RateLimitsConfig",
    "SearchConfig",
    "WebConfig",
    "load_config",
]
