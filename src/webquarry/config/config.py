"""
Configuration management for webquarry using Pydantic.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger(__name__)

# --- Nested Configuration Models ---


class RateLimitRule(BaseModel):
    """Token-bucket sizing for one operation class."""

    max_requests: int = Field(default=20, gt=0, description="Bucket capacity.")
    window_ms: int = Field(default=60_000, gt=0, description="Window over which capacity refills.")


class RateLimitsConfig(BaseModel):
    fetch: RateLimitRule = Field(default_factory=lambda: RateLimitRule(max_requests=20, window_ms=60_000))
    search: RateLimitRule = Field(default_factory=lambda: RateLimitRule(max_requests=30, window_ms=60_000))
    respect_upstream_headers: bool = Field(
        default=True,
        description="Reconfigure the search class from X-RateLimit-Limit response headers.",
    )


class HttpConfig(BaseModel):
    """Outbound HTTP configuration."""

    fetch_timeout: float = Field(default=15.0, description="Timeout for page, feed, link and sitemap fetches.")
    metadata_timeout: float = Field(default=10.0, description="Timeout for metadata fetches.")
    search_timeout: float = Field(default=20.0, description="Timeout for search endpoint calls.")
    metadata_max_bytes: int = Field(default=150_000, description="Body bytes read for metadata parsing.")
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        description="User-Agent sent with page fetches.",
    )
    accept_language: str = Field(default="en-US,en;q=0.9")
    connection_limit: int = Field(default=100, description="Connection pool size for the shared session.")


class SearchConfig(BaseModel):
    user_agent: str = Field(default="webquarry/0.1 (SearXNG proxy)")
    default_max_results: int = Field(default=10, ge=1, le=50)
    max_sitemap_children: int = Field(default=10, ge=0, description="Children fetched when expanding an index.")


class WebConfig(BaseModel):
    """Configuration for the tool transport."""

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3003)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class MonitoringConfig(BaseModel):
    """Configuration for logging and metrics."""

    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(default=None, description="Path to log file. If None, logs to console.")
    metrics_enabled: bool = True

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)

    @field_validator("log_level")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {v}")
        return level


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "webquarry"
    version: str = "0.1.0"
    http: HttpConfig = Field(default_factory=HttpConfig)
    rate_limits: RateLimitsConfig = Field(default_factory=RateLimitsConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(env_prefix="WEBQUARRY_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)


def find_config_file() -> Optional[Path]:
    current_dir = Path.cwd()
    for path in (current_dir / "webquarry.yaml", current_dir / "webquarry.yml", current_dir / "config.yaml"):
        if path.exists():
            return path
    return None


def load_config(path: Optional[Path] = None) -> Config:
    """Load configuration from an explicit path, a discovered file, or defaults."""
    config_path = path or find_config_file()
    if config_path:
        log.info("Loading configuration from: %s", config_path)
        return Config.from_yaml(config_path)
    log.info("No config file found. Using default settings.")
    return Config()
