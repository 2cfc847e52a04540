"""
Classified errors raised by the acquisition and search layers.

Every failure that reaches a tool caller is one of these, so transports can
map them to status codes without inspecting low-level exceptions.
"""

from __future__ import annotations

from typing import Optional


class WebQuarryError(Exception):
    """Base exception for all classified webquarry failures."""

    code: int | str = -32000

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ToolValidationError(WebQuarryError, ValueError):
    """Raised when a required parameter is missing or malformed."""

    code = -32602


class UnknownToolError(ToolValidationError):
    """Raised when a tool name is not registered."""

    code = -32601


class InvalidURLError(WebQuarryError, ValueError):
    """Raised when a URL cannot be parsed or uses an unsupported scheme."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid URL: {url}")
        self.url = url


class RequestTimeoutError(WebQuarryError, TimeoutError):
    """Raised when a network call exceeds its deadline."""

    pass


class RateLimitedError(WebQuarryError):
    """Raised when a local or upstream rate limit rejects a call."""

    code = "RATE_LIMITED"


class RateLimiterConfigError(WebQuarryError):
    """Raised when a rate-limit class is unconfigured or misconfigured."""

    pass


class UpstreamHTTPError(WebQuarryError):
    """Raised when the fetched resource or search endpoint returns non-2xx."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class RedirectError(UpstreamHTTPError):
    """Raised for an HTTP 300 response without a Location header."""

    def __init__(self, message: str = "HTTP 300: Multiple Choices - No Location header provided") -> None:
        super().__init__(message, status=300)


class FetchFailedError(WebQuarryError):
    """Raised when the transport fails before a response arrives."""

    pass


class ParseError(WebQuarryError):
    """Raised when a feed or sitemap document cannot be parsed at all."""

    pass
