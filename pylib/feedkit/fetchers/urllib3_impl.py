'''Lower-level HTTP transport using urllib3. Used when httpx is not installed.'''

from typing import Any

from feedkit.errors import FeedConnectionError
from feedkit.fetchers.protocol import FetchRequest, Transport

MAX_REDIRECTS = 10


class Urllib3Transport(Transport):
    '''
    Transport using a urllib3 PoolManager.

    pool: optional preconfigured PoolManager (one is created and closed per request otherwise)
    '''

    name = 'urllib3'
    requires = 'urllib3'

    def __init__(self, pool: Any | None = None):
        self.pool = pool

    def fetch(self, request: FetchRequest) -> bytes:
        '''GET with urllib3; basic auth via urllib3.make_headers.'''
        import urllib3

        if self.pool is not None:
            return self._get(self.pool, request)
        cert_reqs = 'CERT_REQUIRED' if request.verify else 'CERT_NONE'
        with urllib3.PoolManager(cert_reqs=cert_reqs) as pool:
            return self._get(pool, request)

    def _get(self, pool: Any, request: FetchRequest) -> bytes:
        import urllib3

        auth = request.basic_auth
        headers = urllib3.make_headers(
            user_agent=request.user_agent,
            basic_auth=':'.join(auth) if auth else None,
        )
        # No retries for any error kind; redirects only when allowed
        retries = urllib3.Retry(
            total=None,
            connect=0,
            read=0,
            status=0,
            other=0,
            redirect=MAX_REDIRECTS if request.follow_redirects else False,
        )
        try:
            resp = pool.request(
                'GET',
                request.url,
                headers=headers,
                timeout=urllib3.Timeout(total=request.timeout),
                retries=retries,
                redirect=request.follow_redirects,
            )
        except urllib3.exceptions.HTTPError as e:
            raise FeedConnectionError(f'Cannot fetch {request.url}: {e}') from e
        # Unfollowed 3xx counts as a failure, same as 4xx/5xx
        if resp.status >= 300:
            raise FeedConnectionError(f'Cannot fetch {request.url}: HTTP {resp.status}')
        return resp.data
