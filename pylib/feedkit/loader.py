'''
Feed loader: cache lookup, network fetch on miss, write-through, lenient XML
parse, then RSS/Atom normalization.
'''

import asyncio

import structlog
from lxml import etree

from feedkit.cache import CacheGateway
from feedkit.config import FeedConfig
from feedkit.errors import FeedConnectionError, FeedLoadError, ParseError
from feedkit.fetchers import FetchRequest, TransportChain
from feedkit.model import Feed
from feedkit.normalize import from_atom, from_rss, parse_feed


logger = structlog.get_logger()


def _xml_parser() -> etree.XMLParser:
    # Recover from malformed markup, fold CDATA into text, never touch the network
    return etree.XMLParser(
        recover=True,
        strip_cdata=True,
        resolve_entities=False,
        no_network=True,
        collect_ids=False,
    )


def parse_xml(data: bytes) -> etree._Element:
    '''Parse a feed body into an element tree. Raises ParseError.'''
    try:
        root = etree.fromstring(data, parser=_xml_parser())
    except (etree.XMLSyntaxError, ValueError) as e:
        raise ParseError(f'Cannot parse feed XML: {e}') from e
    if root is None:
        preview = data[:200].decode('utf-8', errors='replace').strip()
        raise ParseError(f'Cannot parse feed XML (starts with: {preview!r})')
    return root


class FeedLoader:
    '''
    Loads feeds according to one FeedConfig. Construct once and reuse.

    chain: transport chain (default: built from config.transports)
    cache: cache gateway (default: built from config.cache_dir / cache_expire)
    '''

    def __init__(
        self,
        config: FeedConfig | None = None,
        *,
        chain: TransportChain | None = None,
        cache: CacheGateway | None = None,
    ) -> None:
        self.config = config or FeedConfig()
        self.chain = chain or TransportChain.from_names(self.config.transports)
        self.cache = cache or CacheGateway.from_config(self.config)

    def _request(self, url: str, user: str | None, password: str | None) -> FetchRequest:
        return FetchRequest(
            url=url,
            user=user,
            password=password,
            user_agent=self.config.user_agent,
            timeout=self.config.timeout,
            verify=self.config.verify,
            follow_redirects=self.config.follow_redirects,
        )

    def _stale(self, url: str, user: str | None, password: str | None) -> bytes | None:
        if not self.config.stale_on_error:
            return None
        data = self.cache.read_stale(url, user, password)
        if data is not None:
            logger.warning('serving stale cache', url=url)
        return data

    def load_bytes(self, url: str, user: str | None = None, password: str | None = None) -> bytes:
        '''
        Raw feed body from a fresh cache entry or the network.
        Raises FeedConnectionError, FeedLoadError or CacheError.
        '''
        data = self.cache.read(url, user, password)
        if data is not None:
            return data

        try:
            body = self.chain.fetch(self._request(url, user, password))
        except FeedConnectionError:
            stale = self._stale(url, user, password)
            if stale is not None:
                return stale
            raise

        data = body.strip()
        if not data:
            stale = self._stale(url, user, password)
            if stale is not None:
                return stale
            raise FeedLoadError(f'Cannot load feed {url}: empty response')
        logger.info('fetched feed', url=url, bytes=len(data))
        self.cache.write(url, user, password, data)
        return data

    def load_xml(self, url: str, user: str | None = None, password: str | None = None) -> etree._Element:
        return parse_xml(self.load_bytes(url, user, password))

    def load(self, url: str, user: str | None = None, password: str | None = None) -> Feed:
        '''Load an RSS or Atom feed, detecting the dialect.'''
        return parse_feed(self.load_xml(url, user, password))

    def load_rss(self, url: str, user: str | None = None, password: str | None = None) -> Feed:
        return from_rss(self.load_xml(url, user, password))

    def load_atom(self, url: str, user: str | None = None, password: str | None = None) -> Feed:
        return from_atom(self.load_xml(url, user, password))

    async def aload(self, url: str, user: str | None = None, password: str | None = None) -> Feed:
        '''load() in a worker thread, for use from async code.'''
        return await asyncio.to_thread(self.load, url, user, password)


def load(url: str, user: str | None = None, password: str | None = None, config: FeedConfig | None = None) -> Feed:
    return FeedLoader(config).load(url, user, password)


def load_rss(url: str, user: str | None = None, password: str | None = None, config: FeedConfig | None = None) -> Feed:
    return FeedLoader(config).load_rss(url, user, password)


def load_atom(url: str, user: str | None = None, password: str | None = None, config: FeedConfig | None = None) -> Feed:
    return FeedLoader(config).load_atom(url, user, password)
