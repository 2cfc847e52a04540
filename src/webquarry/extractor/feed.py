"""
RSS 2.0, RSS 1.0 (RDF) and Atom feed parsing.
"""

from __future__ import annotations

from typing import Iterable, Optional

from bs4 import BeautifulSoup, Tag

from webquarry.errors import ParseError

from .models import FeedEntry, FeedResult

MAX_FEED_TITLE_LEN = 500
MAX_FEED_DESCRIPTION_LEN = 1000
MAX_ENTRY_TITLE_LEN = 500
MAX_ENTRY_SUMMARY_LEN = 2000
DEFAULT_FEED_TITLE = "Untitled feed"


def _child(parent: Tag, name: str) -> Optional[Tag]:
    """First direct child called ``name``, ignoring foreign-namespace lookalikes."""
    for tag in parent.find_all(name, recursive=False):
        if not tag.prefix or name.startswith(f"{tag.prefix}:"):
            return tag
    return None


def _child_text(parent: Tag, *names: str) -> str:
    for name in names:
        tag = _child(parent, name)
        if tag is not None:
            text = tag.get_text().strip()
            if text:
                return text
    return ""


def _strip_markup(raw: str) -> str:
    if "<" not in raw:
        return raw.strip()
    return BeautifulSoup(raw, "html.parser").get_text().strip()


def _atom_link(parent: Tag) -> str:
    fallback = ""
    for link in parent.find_all("link", recursive=False):
        if link.prefix:
            continue
        href = (link.get("href") or "").strip()
        if not href:
            continue
        if link.get("rel") in (None, "alternate"):
            return href
        fallback = fallback or href
    return fallback


def _entry_link(item: Tag) -> str:
    return _child_text(item, "link") or _atom_link(item) or _child_text(item, "guid", "id")


def _parse_entries(items: Iterable[Tag]) -> list[FeedEntry]:
    entries = []
    for item in items:
        summary = _strip_markup(_child_text(item, "description", "summary", "content", "content:encoded"))
        entries.append(
            FeedEntry(
                title=_child_text(item, "title")[:MAX_ENTRY_TITLE_LEN],
                link=_entry_link(item),
                summary=summary[:MAX_ENTRY_SUMMARY_LEN],
                date=_child_text(item, "pubDate", "published", "updated", "dc:date") or None,
            )
        )
    return entries


def parse_feed_xml(xml: str, base_url: str) -> FeedResult:
    """
    Parse a feed document.

    Args:
        xml: Raw feed XML
        base_url: Requested URL; used when the feed declares no link

    Raises:
        ParseError: The document is not a recognisable RSS, RDF or Atom feed.
    """
    soup = BeautifulSoup(xml, "xml")

    rss = soup.find("rss")
    atom = soup.find("feed")
    rdf = soup.find("RDF")

    if rss is not None:
        channel = _child(rss, "channel")
        if channel is None:
            raise ParseError("RSS document has no channel")
        header = channel
        items = channel.find_all("item", recursive=False)
        description = _child_text(channel, "description")
        link = _child_text(channel, "link")
    elif atom is not None:
        header = atom
        items = atom.find_all("entry", recursive=False)
        description = _child_text(atom, "subtitle")
        link = _atom_link(atom)
    elif rdf is not None:
        channel = _child(rdf, "channel")
        header = channel if channel is not None else rdf
        items = rdf.find_all("item", recursive=False)
        description = _child_text(header, "description")
        link = _child_text(header, "link")
    else:
        raise ParseError("Feed not recognized as RSS 1.0, RSS 2.0 or Atom")

    return FeedResult(
        title=(_child_text(header, "title") or DEFAULT_FEED_TITLE)[:MAX_FEED_TITLE_LEN],
        link=link or base_url.strip(),
        description=description[:MAX_FEED_DESCRIPTION_LEN] or None,
        entries=_parse_entries(items),
    )
