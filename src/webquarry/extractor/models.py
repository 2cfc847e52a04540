"""
Data models for acquisition and parsing results.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value is not None}


@dataclass(slots=True, frozen=True)
class FetchResult:
    """A fetched page reduced to its main content."""

    url: str  # final URL after redirects
    title: str
    content: str  # main-content HTML fragment, may be empty
    text_content: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class MetadataResult:
    """Response facts plus og/twitter/standard meta tags."""

    final_url: str
    status_code: int
    content_type: str
    title: str | None = None
    description: str | None = None
    image_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(asdict(self))


@dataclass(slots=True, frozen=True)
class FeedEntry:
    title: str
    link: str
    summary: str
    date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(asdict(self))


@dataclass(slots=True, frozen=True)
class FeedResult:
    """A parsed RSS, Atom or RDF feed. Entries keep document order."""

    title: str
    link: str
    description: str | None = None
    entries: list[FeedEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"title": self.title, "link": self.link}
        if self.description is not None:
            data["description"] = self.description
        data["entries"] = [entry.to_dict() for entry in self.entries]
        return data


@dataclass(slots=True, frozen=True)
class SitemapUrl:
    loc: str
    lastmod: str | None = None
    changefreq: str | None = None
    priority: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(asdict(self))


@dataclass(slots=True, frozen=True)
class SitemapRef:
    loc: str
    lastmod: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(asdict(self))


@dataclass(slots=True, frozen=True)
class FailedChild:
    """A child sitemap skipped during index expansion."""

    loc: str
    error: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class SitemapResult:
    """
    Either a ``urlset`` (``urls`` populated) or a ``sitemapindex``
    (``sitemaps`` populated), never both.
    """

    type: Literal["urlset", "sitemapindex"]
    url: str | None = None
    urls: list[SitemapUrl] | None = None
    sitemaps: list[SitemapRef] | None = None
    failed_children: list[FailedChild] | None = None

    def __post_init__(self) -> None:
        """Validate the result."""
        if self.type == "urlset" and self.sitemaps is not None:
            raise ValueError("A urlset result cannot carry sitemaps")
        if self.type == "sitemapindex" and self.urls is not None:
            raise ValueError("A sitemapindex result cannot carry urls")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type}
        if self.url is not None:
            data["url"] = self.url
        if self.urls is not None:
            data["urls"] = [entry.to_dict() for entry in self.urls]
        if self.sitemaps is not None:
            data["sitemaps"] = [ref.to_dict() for ref in self.sitemaps]
        if self.failed_children:
            data["failed_children"] = [child.to_dict() for child in self.failed_children]
        return data


@dataclass(slots=True, frozen=True)
class ExtractedLink:
    href: str  # absolute
    text: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class SearchResult:
    title: str
    url: str
    snippet: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
