"""
Outbound HTTP layer: the token-bucket rate limiter and the fetch primitive
shared by every acquisition and search operation.
"""

from .http_client import DEFAULT_FETCH_HEADERS, FetchResponse, HttpClient
from .rate_limiter import TokenBucketRateLimiter

__all__ = [
    "DEFAULT_FETCH_HEADERS",
    "FetchResponse",
    "HttpClient",
    "TokenBucketRateLimiter",
]
