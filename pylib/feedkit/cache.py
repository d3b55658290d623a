'''
On-disk response cache. One file per (url, user, password) fingerprint, stored
flat in the cache directory. Freshness comes from the file modification time.

No cross-process locking: concurrent writers to the same entry race and the
last write wins.
'''

import hashlib
import json
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

import structlog

from feedkit.config import FeedConfig, parse_expiry
from feedkit.errors import CacheError


logger = structlog.get_logger()


class CacheGateway:
    '''
    Reads and writes cached feed bodies.

    cache_dir: directory for cache files; None disables caching entirely
    expiry: freshness window; a phrase such as '1 month' is resolved against the
      clock at each check
    clock: returns the current time as a Unix timestamp (injectable for tests)
    '''

    def __init__(
        self,
        cache_dir: Path | None,
        expiry: str | float | timedelta = timedelta(days=1),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        self.expiry = expiry
        self.clock = clock

    @classmethod
    def from_config(cls, config: FeedConfig) -> 'CacheGateway':
        if config.cache_dir is None:
            return cls(None)
        config.expiry()  # reject a bad phrase up front
        return cls(config.cache_dir, config.cache_expire)

    @property
    def enabled(self) -> bool:
        return self.cache_dir is not None

    @staticmethod
    def key(url: str, user: str | None = None, password: str | None = None) -> str:
        '''Stable fingerprint of the request parameters.'''
        payload = json.dumps([url, user, password], separators=(',', ':'))
        return hashlib.sha256(payload.encode('utf-8')).hexdigest()

    def path_for(self, url: str, user: str | None = None, password: str | None = None) -> Path | None:
        if self.cache_dir is None:
            return None
        return self.cache_dir / f'feed.{self.key(url, user, password)}.xml'

    def window(self, now: float | None = None) -> timedelta:
        '''Freshness window resolved at now (defaults to the clock).'''
        now = self.clock() if now is None else now
        return parse_expiry(self.expiry, now=datetime.fromtimestamp(now))

    def is_fresh(self, path: Path) -> bool:
        '''True when the entry exists and its age is within the expiry.'''
        try:
            mtime = path.stat().st_mtime
        except OSError:
            return False
        now = self.clock()
        return now - mtime <= self.window(now).total_seconds()

    def read(self, url: str, user: str | None = None, password: str | None = None) -> bytes | None:
        '''Cached body if fresh and readable, else None.'''
        path = self.path_for(url, user, password)
        if path is None:
            return None
        if not self.is_fresh(path):
            logger.debug('cache miss', url=url, path=str(path))
            return None
        data = _read_bytes(path)
        if data:
            logger.debug('cache hit', url=url, path=str(path))
        return data or None

    def read_stale(self, url: str, user: str | None = None, password: str | None = None) -> bytes | None:
        '''Cached body regardless of age, or None.'''
        path = self.path_for(url, user, password)
        if path is None:
            return None
        return _read_bytes(path) or None

    def write(self, url: str, user: str | None, password: str | None, data: bytes) -> None:
        '''Store a fetched body. No-op when caching is disabled.'''
        path = self.path_for(url, user, password)
        if path is None:
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise CacheError(f'Cannot write cache file {path}: {e}') from e
        logger.debug('cache write', url=url, path=str(path), bytes=len(data))


def _read_bytes(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except OSError:
        return None
