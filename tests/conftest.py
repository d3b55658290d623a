"""Shared test fixtures."""

from __future__ import annotations

import socketserver
import threading
from datetime import timedelta

import pytest
from structlog.testing import capture_logs

from feedkit.cache import CacheGateway
from feedkit.config import FeedConfig
from feedkit.errors import FeedConnectionError
from feedkit.fetchers import FetchRequest, Transport, TransportChain
from feedkit.loader import FeedLoader, parse_xml

RSS_SINGLE = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>T</title><item><title>A</title><link>http://x/a</link><pubDate>Mon, 01 Jan 2024 00:00:00 GMT</pubDate></item></channel></rss>
"""

RSS_MULTI = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:dc="http://purl.org/dc/elements/1.1/"
     xmlns:content="http://purl.org/rss/1.0/modules/content/"
     xmlns:atom="http://www.w3.org/2005/Atom">
  <channel>
    <title>Example News</title>
    <link>https://example.com/</link>
    <description>All the news</description>
    <atom:link href="https://example.com/feed.xml" rel="self" type="application/rss+xml"/>
    <item>
      <title>First</title>
      <link>
        https://example.com/first
      </link>
      <dc:creator>Alice</dc:creator>
      <dc:date>2024-02-01T00:00:00Z</dc:date>
      <pubDate>Mon, 01 Jan 2024 00:00:00 GMT</pubDate>
      <content:encoded><![CDATA[<p>Hello <b>world</b></p>]]></content:encoded>
    </item>
    <item>
      <title>Second</title>
      <link>https://example.com/second</link>
      <pubDate>Tue, 02 Jan 2024 12:30:00 +0000</pubDate>
      <category>one</category>
      <category>two</category>
    </item>
    <item>
      <title>Third</title>
      <link>https://example.com/third</link>
    </item>
  </channel>
</rss>
"""

RSS_RDF = b"""<?xml version="1.0"?>
<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"
         xmlns="http://purl.org/rss/1.0/"
         xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel rdf:about="https://example.org/">
    <title>RDF Site</title>
    <link>https://example.org/</link>
  </channel>
  <item rdf:about="https://example.org/1">
    <title>One</title>
    <link>https://example.org/1</link>
    <dc:date>2024-03-01T10:00:00+00:00</dc:date>
  </item>
  <item rdf:about="https://example.org/2">
    <title>Two</title>
    <link>https://example.org/2</link>
  </item>
</rdf:RDF>
"""

ATOM = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:media="http://search.yahoo.com/mrss/">
  <title>Atom Example</title>
  <subtitle>Entries</subtitle>
  <updated>2024-01-05T00:00:00Z</updated>
  <author><name>Bob</name></author>
  <entry>
    <title>Entry one</title>
    <link rel="edit" href="https://example.net/edit/1"/>
    <link rel="alternate" type="text/html" href="https://example.net/1"/>
    <id>urn:uuid:1</id>
    <updated>2024-01-01T00:00:00Z</updated>
    <media:thumbnail url="https://example.net/1.png"/>
  </entry>
  <entry>
    <title>Entry two</title>
    <link href="https://example.net/2"/>
    <id>urn:uuid:2</id>
    <published>2024-01-02T00:00:00Z</published>
  </entry>
</feed>
"""

ATOM_03 = b"""<?xml version="1.0" encoding="utf-8"?>
<feed version="0.3" xmlns="http://purl.org/atom/ns#">
  <title>Legacy</title>
  <entry>
    <title>Old entry</title>
    <link rel="alternate" type="text/html" href="https://legacy.example/1"/>
    <modified>2004-06-01T12:00:00Z</modified>
  </entry>
</feed>
"""

ATOM_NO_NS = b"""<?xml version="1.0"?>
<feed><title>Nope</title><entry><title>x</title><link href="http://x/1"/></entry></feed>
"""


@pytest.fixture(autouse=True)
def captured_logs():
    """Capture structlog events instead of printing them."""
    with capture_logs() as logs:
        yield logs


class FakeTransport(Transport):
    """Records requests and returns a canned body (or raises)."""

    name = 'fake'

    def __init__(self, body: bytes = b'', error: Exception | None = None):
        self.body = body
        self.error = error
        self.requests: list[FetchRequest] = []

    def fetch(self, request: FetchRequest) -> bytes:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.body


@pytest.fixture
def fake_transport():
    """Factory for FakeTransport instances."""

    def _make(body: bytes = RSS_SINGLE, error: Exception | None = None) -> FakeTransport:
        return FakeTransport(body, error)

    return _make


@pytest.fixture
def make_loader(tmp_path):
    """Factory for a FeedLoader over a fake transport, caching in tmp_path/cache."""

    def _make(transport: Transport, cached: bool = True, **config) -> FeedLoader:
        cfg = FeedConfig(cache_dir=tmp_path / 'cache' if cached else None, **config)
        cache = CacheGateway(cfg.cache_dir, timedelta(days=1)) if cached else CacheGateway(None)
        return FeedLoader(cfg, chain=TransportChain([transport]), cache=cache)

    return _make


@pytest.fixture
def rss_root():
    return parse_xml(RSS_MULTI)


@pytest.fixture
def atom_root():
    return parse_xml(ATOM)


@pytest.fixture
def connection_error():
    return FeedConnectionError('Cannot fetch http://x/feed: connection refused')


class RawServer(socketserver.ThreadingTCPServer):
    """Local TCP server that answers every connection with fixed raw bytes."""

    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, reply: bytes):
        self.reply = reply
        self.connections = 0
        super().__init__(('127.0.0.1', 0), _RawHandler)

    @property
    def port(self) -> int:
        return self.server_address[1]


class _RawHandler(socketserver.BaseRequestHandler):
    def handle(self):
        self.server.connections += 1
        self.request.settimeout(2)
        try:
            self.request.recv(65536)
            self.request.sendall(self.server.reply)
        except OSError:
            pass


@pytest.fixture
def raw_server():
    """Factory for RawServer instances running in a background thread."""
    servers = []

    def _start(reply: bytes) -> RawServer:
        server = RawServer(reply)
        threading.Thread(target=server.serve_forever, daemon=True).start()
        servers.append(server)
        return server

    yield _start
    for server in servers:
        server.shutdown()
        server.server_close()
