'''Fetch, cache and normalize RSS / Atom feeds into a read-only tree.'''

from feedkit.cache import CacheGateway
from feedkit.config import FeedConfig, parse_expiry
from feedkit.errors import (
    CacheError,
    FeedConnectionError,
    FeedError,
    FeedLoadError,
    FormatError,
    ParseError,
    ReadOnlyPropertyError,
)
from feedkit.loader import FeedLoader, load, load_atom, load_rss, parse_xml
from feedkit.model import Feed, Item, Node, Nodes
from feedkit.normalize import parse_feed, parse_timestamp

__all__ = [
    'CacheError',
    'CacheGateway',
    'Feed',
    'FeedConfig',
    'FeedConnectionError',
    'FeedError',
    'FeedLoadError',
    'FeedLoader',
    'FormatError',
    'Item',
    'Node',
    'Nodes',
    'ParseError',
    'ReadOnlyPropertyError',
    'load',
    'load_atom',
    'load_rss',
    'parse_expiry',
    'parse_feed',
    'parse_timestamp',
    'parse_xml',
]
