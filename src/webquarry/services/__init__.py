"""Acquisition and search orchestration on top of the crawler and extractor layers."""

from .acquisition import ContentAcquisitionService, normalize_url
from .search import SearchFetchItem, SearchParams, SearchProxyService

__all__ = [
    "ContentAcquisitionService",
    "SearchFetchItem",
    "SearchParams",
    "SearchProxyService",
    "normalize_url",
]
