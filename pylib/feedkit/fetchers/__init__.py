'''HTTP transports for feed retrieval: httpx, urllib3, stdlib stream fallback.'''

from feedkit.fetchers.protocol import (
    DEFAULT_TIMEOUT,
    FetchRequest,
    Transport,
    TransportChain,
    create_transport,
)

__all__ = [
    'DEFAULT_TIMEOUT',
    'FetchRequest',
    'Transport',
    'TransportChain',
    'create_transport',
]
