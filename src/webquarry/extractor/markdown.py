"""
HTML fragment to Markdown conversion.
"""

from __future__ import annotations

from markdownify import ATX, markdownify


def html_to_markdown(html: str) -> str:
    """Convert an HTML fragment to Markdown with ``#``-style headings."""
    return markdownify(html, heading_style=ATX).strip()


def format_document(title: str, url: str, body: str) -> str:
    """Render the ``Title:``/``URL:`` header used by every formatted result."""
    return f"Title: {title}\nURL: {url}\n\n{body}"
