"""
Tests for RSS 2.0, Atom and RSS 1.0 (RDF) parsing.
"""

import pytest

from webquarry.errors import ParseError
from webquarry.extractor.feed import (
    DEFAULT_FEED_TITLE,
    MAX_ENTRY_SUMMARY_LEN,
    MAX_FEED_DESCRIPTION_LEN,
    parse_feed_xml,
)

FEED_URL = "https://blog.example.com/feed.xml"

ATOM_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Example</title>
  <subtitle>Notes from the field</subtitle>
  <link rel="self" href="https://atom.example.org/feed.atom"/>
  <link href="https://atom.example.org/"/>
  <entry>
    <title>Entry one</title>
    <link rel="alternate" href="https://atom.example.org/1"/>
    <id>urn:uuid:1</id>
    <updated>2025-01-01T00:00:00Z</updated>
    <summary>Summary one</summary>
  </entry>
  <entry>
    <title>Entry two</title>
    <id>urn:uuid:2</id>
    <published>2025-01-02T00:00:00Z</published>
    <content type="html">&lt;p&gt;Body &lt;em&gt;two&lt;/em&gt;&lt;/p&gt;</content>
  </entry>
</feed>
"""

RDF_FEED = """<?xml version="1.0"?>
<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"
         xmlns="http://purl.org/rss/1.0/"
         xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel rdf:about="https://rdf.example.com/">
    <title>RDF Feed</title>
    <link>https://rdf.example.com/</link>
    <description>Old school syndication</description>
  </channel>
  <item rdf:about="https://rdf.example.com/x">
    <title>Item X</title>
    <link>https://rdf.example.com/x</link>
    <dc:date>2024-05-01</dc:date>
  </item>
</rdf:RDF>
"""


@pytest.mark.unit
class TestRss:
    def test_channel_fields(self, rss_feed):
        feed = parse_feed_xml(rss_feed, FEED_URL)

        assert feed.title == "Example Blog"
        # The atom:link self reference is not the channel link
        assert feed.link == "https://blog.example.com/"
        assert feed.description == "Posts about examples"

    def test_entries(self, rss_feed):
        feed = parse_feed_xml(rss_feed, FEED_URL)

        assert [entry.to_dict() for entry in feed.entries] == [
            {
                "title": "First post",
                "link": "https://blog.example.com/first",
                "summary": "Hello world",
                "date": "Mon, 06 Jan 2025 10:00:00 GMT",
            },
            {
                "title": "Second post",
                "link": "https://blog.example.com/second",
                "summary": "Plain summary",
            },
        ]

    def test_content_encoded_summary(self):
        xml = """<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">
          <channel><title>T</title><link>https://t.example/</link>
            <item><title>A</title><link>https://t.example/a</link>
              <content:encoded><![CDATA[<div>Full <i>body</i></div>]]></content:encoded>
            </item>
          </channel></rss>"""

        assert parse_feed_xml(xml, FEED_URL).entries[0].summary == "Full body"

    def test_defaults_for_sparse_channel(self):
        xml = "<rss version='2.0'><channel><item><title>Lonely</title></item></channel></rss>"
        feed = parse_feed_xml(xml, FEED_URL)

        assert feed.title == DEFAULT_FEED_TITLE
        assert feed.link == FEED_URL
        assert feed.description is None
        assert feed.to_dict() == {
            "title": DEFAULT_FEED_TITLE,
            "link": FEED_URL,
            "entries": [{"title": "Lonely", "link": "", "summary": ""}],
        }

    def test_lengths_are_bounded(self):
        xml = f"""<rss version="2.0"><channel>
          <title>T</title><description>{"d" * 3000}</description>
          <item><title>A</title><description>{"s" * 5000}</description></item>
        </channel></rss>"""
        feed = parse_feed_xml(xml, FEED_URL)

        assert len(feed.description) == MAX_FEED_DESCRIPTION_LEN
        assert len(feed.entries[0].summary) == MAX_ENTRY_SUMMARY_LEN

    def test_rss_without_channel(self):
        with pytest.raises(ParseError):
            parse_feed_xml("<rss version='2.0'></rss>", FEED_URL)


@pytest.mark.unit
class TestAtom:
    def test_feed_fields(self):
        feed = parse_feed_xml(ATOM_FEED, FEED_URL)

        assert feed.title == "Atom Example"
        assert feed.link == "https://atom.example.org/"
        assert feed.description == "Notes from the field"

    def test_entries(self):
        first, second = parse_feed_xml(ATOM_FEED, FEED_URL).entries

        assert first.link == "https://atom.example.org/1"
        assert first.summary == "Summary one"
        assert first.date == "2025-01-01T00:00:00Z"
        # No link element: the id stands in
        assert second.link == "urn:uuid:2"
        assert second.summary == "Body two"
        assert second.date == "2025-01-02T00:00:00Z"


@pytest.mark.unit
class TestRdf:
    def test_rss_1_0(self):
        feed = parse_feed_xml(RDF_FEED, FEED_URL)

        assert feed.title == "RDF Feed"
        assert feed.link == "https://rdf.example.com/"
        assert feed.description == "Old school syndication"
        assert [entry.to_dict() for entry in feed.entries] == [
            {"title": "Item X", "link": "https://rdf.example.com/x", "summary": "", "date": "2024-05-01"}
        ]


@pytest.mark.unit
class TestUnrecognized:
    @pytest.mark.parametrize(
        "document",
        [
            "<html><body><p>Not a feed</p></body></html>",
            "plain text that is not xml",
        ],
    )
    def test_raises_parse_error(self, document):
        with pytest.raises(ParseError, match="Feed not recognized as RSS 1.0, RSS 2.0 or Atom"):
            parse_feed_xml(document, FEED_URL)
