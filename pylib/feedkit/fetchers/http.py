'''HTTP transport using httpx.'''

import httpx

from feedkit.errors import FeedConnectionError
from feedkit.fetchers.protocol import FetchRequest, Transport


class HttpxTransport(Transport):
    '''
    Full-featured transport using httpx. Highest priority.

    transport: optional httpx transport (e.g. httpx.MockTransport) for the client
    '''

    name = 'httpx'
    requires = 'httpx'

    def __init__(self, transport: httpx.BaseTransport | None = None):
        self.transport = transport

    def fetch(self, request: FetchRequest) -> bytes:
        '''GET with httpx; basic auth via httpx's auth tuple.'''
        try:
            with httpx.Client(
                timeout=request.timeout,
                follow_redirects=request.follow_redirects,
                verify=request.verify,
                headers={'User-Agent': request.user_agent},
                transport=self.transport,
            ) as client:
                resp = client.get(request.url, auth=request.basic_auth)
                resp.raise_for_status()
                return resp.content
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FeedConnectionError(f'Cannot fetch {request.url}: {e}') from e
