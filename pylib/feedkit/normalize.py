'''
Format detection and normalization of parsed RSS / Atom documents into Feed
objects: namespace flattening plus synthesized url and timestamp per item.
'''

from __future__ import annotations

import contextlib

import dateparser
import structlog
from lxml import etree

from feedkit.errors import FormatError
from feedkit.model import Feed, Item, Node, Nodes, plain_name

logger = structlog.get_logger()

ATOM_NS = 'http://www.w3.org/2005/Atom'
ATOM_03_NS = 'http://purl.org/atom/ns#'  # pre-standard Atom 0.3
ATOM_NAMESPACES = (ATOM_NS, ATOM_03_NS)
DC_NS = 'http://purl.org/dc/elements/1.1/'

# Atom 0.3 used modified/issued where Atom 1.0 has updated/published
ATOM_DATE_FIELDS = ('updated', 'published', 'modified', 'issued')

_DATE_SETTINGS = {
    'TIMEZONE': 'UTC',
    'TO_TIMEZONE': 'UTC',
    'RETURN_AS_TIMEZONE_AWARE': True,
}


def parse_timestamp(value: str | None) -> int | None:
    '''
    Permissive date parse to Unix time. Values without a zone are taken as
    UTC. Returns None for empty or unparseable input.
    '''
    if not value or not value.strip():
        return None
    with contextlib.suppress(ValueError, OverflowError, TypeError):
        dt = dateparser.parse(value.strip(), settings=_DATE_SETTINGS)
        if dt is not None:
            return int(dt.timestamp())
    logger.debug('unparseable date', value=value)
    return None


def _channel(root: etree._Element) -> etree._Element | None:
    for child in root:
        if isinstance(child.tag, str) and plain_name(child) == 'channel':
            return child
    return None


def is_atom(root: etree._Element) -> bool:
    '''Root element is in, or declares, an Atom namespace.'''
    if etree.QName(root).namespace in ATOM_NAMESPACES:
        return True
    return any(uri in ATOM_NAMESPACES for uri in root.nsmap.values())


def detect(root: etree._Element) -> str:
    '''Classify a parsed document as 'rss' or 'atom'.'''
    if _channel(root) is not None:
        return 'rss'
    if is_atom(root):
        return 'atom'
    raise FormatError('Invalid feed: neither RSS nor Atom')


def flatten_namespaces(node: Node) -> None:
    '''
    Give every prefixed child a 'prefix.local' entry on its parent, right after
    its '{uri}local' entry, throughout the subtree. Each node records the
    namespaces it has flattened, so repeated passes add nothing.
    '''
    seen: set[int] = set()
    entries = node.children()
    for _, child in entries:
        if isinstance(child, Node) and id(child) not in seen:
            seen.add(id(child))
            flatten_namespaces(child)

    done = set(node._flattened)
    flattened: list[tuple[str, object]] = []
    added: set[str] = set()
    for name, child in entries:
        flattened.append((name, child))
        if not name.startswith('{') or not isinstance(child, Node):
            continue
        qname = etree.QName(child.element)
        if qname.namespace in done:
            continue
        flattened.append((f'{child.element.prefix}.{qname.localname}', child))
        added.add(qname.namespace)
    if added:
        node._replace_entries(flattened)
        node._flattened.update(added)


def _normalize_rss_item(item: Item) -> None:
    item._set_scalar('url', item.get('link').text.strip())
    dc_date = item.get(f'{{{DC_NS}}}date')
    if dc_date:
        raw = dc_date.text
    elif item.get('pubDate'):
        raw = item.get('pubDate').text
    else:
        raw = None
    item._set_scalar('timestamp', parse_timestamp(raw))


def _atom_link(entry: Item) -> str:
    links: Nodes = entry.get('link')
    for link in links:
        if link['rel'] in (None, 'alternate') and link['href']:
            return link['href'].strip()
    return (links['href'] or '').strip()


def _normalize_atom_entry(entry: Item) -> None:
    entry._set_scalar('url', _atom_link(entry))
    raw = None
    for field in ATOM_DATE_FIELDS:
        value = entry.get(field)
        if value:
            raw = value.text
            break
    entry._set_scalar('timestamp', parse_timestamp(raw))


def from_rss(root: etree._Element) -> Feed:
    '''Normalize an RSS 0.9x / 1.0 / 2.0 document. The Feed wraps <channel>.'''
    channel = _channel(root)
    if channel is None:
        raise FormatError('Invalid feed: missing RSS channel')
    feed = Feed(channel, kind='rss')
    if not feed.get('item'):
        # RSS 1.0 (RDF) keeps items beside the channel rather than inside it
        for child in root:
            if isinstance(child.tag, str) and plain_name(child) == 'item':
                feed._append('item', Item(child))
    flatten_namespaces(feed)
    items = feed.get('item')
    for item in items:
        _normalize_rss_item(item)
    logger.debug('normalized feed', kind='rss', items=len(items))
    return feed


def from_atom(root: etree._Element) -> Feed:
    '''Normalize an Atom 1.0 or 0.3 document. The Feed wraps the root.'''
    if not is_atom(root):
        raise FormatError('Invalid feed: missing Atom namespace')
    feed = Feed(root, kind='atom')
    flatten_namespaces(feed)
    entries = feed.get('entry')
    for entry in entries:
        _normalize_atom_entry(entry)
    logger.debug('normalized feed', kind='atom', items=len(entries))
    return feed


def parse_feed(root: etree._Element, kind: str | None = None) -> Feed:
    '''
    Normalize a parsed document. kind: 'rss' or 'atom' to force a dialect;
    detected from the document when None.
    '''
    kind = kind or detect(root)
    if kind == 'rss':
        return from_rss(root)
    if kind == 'atom':
        return from_atom(root)
    raise ValueError(f'Unknown feed kind: {kind}')
