'''
Read-only view over a normalized feed document.

A Node wraps one XML element and exposes its children by name, so
``feed.title``, ``feed.get('title')`` and ``item.get('dc.creator')`` all work.
Repeated children come back as a Nodes set, which reads like its first member:

    str(feed.title)            # 'Example'
    for item in feed.item:     # every <item>
        item.url, item.timestamp

Children in a prefixed namespace are reachable by Clark name ('{uri}local')
and, after normalization, by 'prefix.local' (or 'prefix:local').

A few attribute names belong to the wrapper and shadow same-named children:
``element``, ``text``, ``attrs``, ``children`` and ``get`` on every node, and
``kind`` and ``items`` on feeds. Reach such children with get(), e.g.
``feed.get('items')`` for the RSS 1.0 <items> list. On items, ``url`` and
``timestamp`` are the normalized values and replace any same-named child.
'''

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Any

from lxml import etree

from feedkit.errors import ReadOnlyPropertyError

# Children wrapped as Item rather than Node
ENTRY_TAGS = frozenset({'item', 'entry'})


def plain_name(element: etree._Element) -> str:
    '''
    Name of an element as seen from its parent: the local name for elements
    without a prefix (no namespace or a default namespace), Clark notation
    for prefixed ones.
    '''
    if element.prefix is None:
        return etree.QName(element).localname
    return element.tag


def lookup_key(name: str) -> str:
    '''Map 'prefix:local' to the 'prefix.local' synthetic name.'''
    if not name.startswith('{') and ':' in name:
        prefix, local = name.split(':', 1)
        return f'{prefix}.{local}'
    return name


def wrap(element: etree._Element) -> Node:
    name = plain_name(element)
    if name in ENTRY_TAGS:
        return Item(element)
    return Node(element)


class Node:
    '''A single element of the feed tree. Immutable to callers.'''

    __slots__ = ('_element', '_entries', '_flattened')

    def __init__(self, element: etree._Element):
        object.__setattr__(self, '_element', element)
        object.__setattr__(
            self,
            '_entries',
            [(plain_name(child), wrap(child)) for child in element if isinstance(child.tag, str)],
        )
        object.__setattr__(self, '_flattened', set())

    @property
    def element(self) -> etree._Element:
        '''The underlying lxml element, for namespace-aware callers.'''
        return self._element

    @property
    def text(self) -> str:
        '''Direct text content (CDATA included), without descendants' text.'''
        el = self._element
        return (el.text or '') + ''.join(child.tail or '' for child in el)

    @property
    def attrs(self) -> dict[str, str]:
        return dict(self._element.attrib)

    def children(self) -> list[tuple[str, Any]]:
        '''(name, value) pairs in document order, synthesized entries last.'''
        return list(self._entries)

    def get(self, name: str) -> Any:
        '''
        Field by name: a Nodes set for element fields, the value itself for
        synthesized scalar fields, an empty Nodes when absent.
        '''
        key = lookup_key(name)
        values = [value for entry_name, value in self._entries if entry_name == key]
        if values and not isinstance(values[0], Node):
            return values[0]
        return Nodes(values)

    def to_tree(self, node: Node | Nodes | None = None) -> Any:
        '''
        Convert a subtree (default: this node) to plain Python data. A leaf
        becomes its text; a branch becomes a dict from child name to the
        converted child, or a list of them when the name repeats. Keys keep
        first-occurrence order.
        '''
        if node is None:
            node = self
        if isinstance(node, Nodes):
            converted = [self.to_tree(n) for n in node]
            return converted[0] if len(converted) == 1 else converted
        if not isinstance(node, Node):
            return node

        groups: dict[str, list[Any]] = {}
        for name, value in node._entries:
            if name.startswith('{'):
                # Reachable through its prefix.local entry
                continue
            groups.setdefault(name, []).append(self.to_tree(value))
        if not groups:
            return node.text
        return {name: values[0] if len(values) == 1 else values for name, values in groups.items()}

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            raise AttributeError(name)
        return self.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        raise ReadOnlyPropertyError(name)

    def __delattr__(self, name: str) -> None:
        raise ReadOnlyPropertyError(name)

    def __getitem__(self, attr: str) -> str | None:
        '''XML attribute value, e.g. link['href'].'''
        if not isinstance(attr, str):
            raise TypeError(f'attribute name must be str, not {type(attr).__name__}')
        return self._element.get(attr)

    def __contains__(self, name: str) -> bool:
        key = lookup_key(name)
        return any(entry_name == key for entry_name, _ in self._entries)

    def __iter__(self) -> Iterator[tuple[str, Any]]:
        return iter(self.children())

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {plain_name(self._element)!r}>'

    # Used by feedkit.normalize while building the feed; not part of the public API

    def _append(self, name: str, value: Any) -> None:
        self._entries.append((name, value))

    def _replace_entries(self, entries: list[tuple[str, Any]]) -> None:
        self._entries[:] = entries

    def _set_scalar(self, name: str, value: Any) -> None:
        '''Replace every entry called name with one scalar (or none, for None).'''
        self._entries[:] = [(n, v) for n, v in self._entries if n != name]
        if value is not None:
            self._entries.append((name, value))


class Nodes(tuple):
    '''
    Sibling nodes sharing one name. Text and field lookups go to the first
    member; iteration and indexing reach all of them. Empty when absent.
    '''

    __slots__ = ()

    @property
    def text(self) -> str:
        return self[0].text if self else ''

    def get(self, name: str) -> Any:
        return self[0].get(name) if self else Nodes()

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_'):
            raise AttributeError(name)
        return self.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        raise ReadOnlyPropertyError(name)

    def __delattr__(self, name: str) -> None:
        raise ReadOnlyPropertyError(name)

    def __getitem__(self, key):
        if isinstance(key, str):
            return self[0][key] if self else None
        result = super().__getitem__(key)
        return Nodes(result) if isinstance(key, slice) else result

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f'Nodes({list(self)!r})'


class Item(Node):
    '''One RSS item or Atom entry, with synthesized url and timestamp fields.'''

    __slots__ = ()

    @property
    def url(self) -> str:
        value = self.get('url')
        return value if isinstance(value, str) else value.text

    @property
    def timestamp(self) -> int | None:
        '''Unix time (UTC) of the best available date, or None.'''
        value = self.get('timestamp')
        return value if isinstance(value, int) else None

    @property
    def published_at(self) -> datetime | None:
        ts = self.timestamp
        return datetime.fromtimestamp(ts, tz=timezone.utc) if ts is not None else None


class Feed(Node):
    '''
    A normalized feed. Wraps the <channel> element for RSS and the document
    root for Atom.
    '''

    __slots__ = ('_kind',)

    def __init__(self, element: etree._Element, kind: str):
        super().__init__(element)
        object.__setattr__(self, '_kind', kind)

    @property
    def kind(self) -> str:
        '''Feed dialect: 'rss' or 'atom'.'''
        return self._kind

    @property
    def items(self) -> Nodes:
        '''Every item (RSS) or entry (Atom).'''
        return self.get('item' if self._kind == 'rss' else 'entry')

    def __repr__(self) -> str:
        return f'<Feed {self._kind} {self.get("title").text.strip()!r}>'
