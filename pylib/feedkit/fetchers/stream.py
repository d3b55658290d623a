'''Minimal stream-based GET using the standard library. Always available.'''

import base64
import ssl
from http.client import HTTPException
from urllib.error import URLError
from urllib.request import HTTPRedirectHandler, HTTPSHandler, Request, build_opener

from feedkit.errors import FeedConnectionError
from feedkit.fetchers.protocol import FetchRequest, Transport


class _NoRedirect(HTTPRedirectHandler):
    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


class StreamTransport(Transport):
    '''Universal fallback: urllib.request with a streamed read of the body.'''

    name = 'stream'
    requires = None

    def __init__(self, chunk_size: int = 64 * 1024):
        self.chunk_size = chunk_size

    def fetch(self, request: FetchRequest) -> bytes:
        headers = {'User-Agent': request.user_agent}
        auth = request.basic_auth
        if auth:
            token = base64.b64encode(':'.join(auth).encode('utf-8')).decode('ascii')
            headers['Authorization'] = f'Basic {token}'

        context = ssl.create_default_context()
        if not request.verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        handlers = [HTTPSHandler(context=context)]
        if not request.follow_redirects:
            handlers.append(_NoRedirect())
        opener = build_opener(*handlers)

        chunks: list[bytes] = []
        try:
            with opener.open(Request(request.url, headers=headers), timeout=request.timeout) as resp:
                while chunk := resp.read(self.chunk_size):
                    chunks.append(chunk)
        except (URLError, HTTPException, OSError, ValueError) as e:
            raise FeedConnectionError(f'Cannot fetch {request.url}: {e}') from e
        return b''.join(chunks)
