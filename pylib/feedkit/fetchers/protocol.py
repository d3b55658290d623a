'''
Transport protocol for retrieving raw feed bytes over HTTP.

Provides a pluggable interface over different HTTP client libraries, tried in
priority order by TransportChain.
'''

import importlib.util
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from feedkit.config import DEFAULT_USER_AGENT
from feedkit.errors import FeedConnectionError


logger = structlog.get_logger()

DEFAULT_TIMEOUT = 20.0


@dataclass(frozen=True)
class FetchRequest:
    '''A single GET request for a feed.'''

    url: str
    user: str | None = None
    password: str | None = None
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = DEFAULT_TIMEOUT
    verify: bool = True
    follow_redirects: bool = True

    @property
    def basic_auth(self) -> tuple[str, str] | None:
        '''(user, password) when both are given, else None.'''
        if self.user is not None and self.password is not None:
            return (self.user, self.password)
        return None

    def __repr__(self) -> str:
        # Keep credentials out of logs and tracebacks
        return f'FetchRequest(url={self.url!r}, user={self.user!r}, timeout={self.timeout})'


class Transport(ABC):
    '''Protocol for HTTP transports.'''

    name: str = ''
    requires: str | None = None  # importable module backing this transport

    @classmethod
    def available(cls) -> bool:
        '''Whether the library this transport needs is installed.'''
        if cls.requires is None:
            return True
        return importlib.util.find_spec(cls.requires) is not None

    @abstractmethod
    def fetch(self, request: FetchRequest) -> bytes:
        '''
        Perform the GET and return the response body.

        Args:
            request: what to fetch and how

        Returns:
            Body bytes

        Raises:
            FeedConnectionError: on any transport, TLS or HTTP status failure
        '''


class TransportChain:
    '''
    Ordered transports. Only the first available one is attempted: its
    failure is raised and lower-priority transports are never tried.
    '''

    def __init__(self, transports: Iterable[Transport]):
        self.transports = list(transports)

    @classmethod
    def from_names(cls, names: Iterable[str]) -> 'TransportChain':
        return cls(create_transport(name) for name in names)

    def select(self) -> Transport:
        for transport in self.transports:
            if transport.available():
                return transport
            logger.debug('transport unavailable', transport=transport.name)
        raise FeedConnectionError('No HTTP transport available')

    def fetch(self, request: FetchRequest) -> bytes:
        transport = self.select()
        logger.debug('fetching', url=request.url, transport=transport.name)
        try:
            return transport.fetch(request)
        except FeedConnectionError:
            logger.info('fetch failed', url=request.url, transport=transport.name)
            raise


def create_transport(kind: str, **kwargs) -> Transport:
    '''
    Factory function to create a transport.

    Args:
        kind: 'httpx', 'urllib3' or 'stream' (stdlib urllib)
        **kwargs: Additional arguments for the transport

    Returns:
        Transport instance
    '''
    kind = kind.strip().lower()
    if kind == 'httpx':
        from feedkit.fetchers.http import HttpxTransport
        return HttpxTransport(**kwargs)
    if kind == 'urllib3':
        from feedkit.fetchers.urllib3_impl import Urllib3Transport
        return Urllib3Transport(**kwargs)
    if kind in ('stream', 'urllib'):
        from feedkit.fetchers.stream import StreamTransport
        return StreamTransport(**kwargs)
    raise ValueError(f'Unknown transport type: {kind}')
