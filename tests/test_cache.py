"""Tests for the on-disk cache gateway."""

import os
import time
from datetime import datetime, timedelta

import pytest

from feedkit.cache import CacheGateway
from feedkit.config import FeedConfig
from feedkit.errors import CacheError

URL = 'https://example.com/feed.xml'


def _age(path, seconds: float) -> None:
    old = time.time() - seconds
    os.utime(path, (old, old))


class TestKey:
    def test_stable(self):
        assert CacheGateway.key(URL) == CacheGateway.key(URL)
        assert CacheGateway.key(URL, 'u', 'p') == CacheGateway.key(URL, 'u', 'p')

    def test_depends_on_every_parameter(self):
        keys = {
            CacheGateway.key(URL),
            CacheGateway.key(URL + '?x'),
            CacheGateway.key(URL, 'u', None),
            CacheGateway.key(URL, 'u', 'p'),
            CacheGateway.key(URL, 'u', 'q'),
            CacheGateway.key(URL, 'up', ''),
        }
        assert len(keys) == 6

    def test_file_layout(self, tmp_path):
        cache = CacheGateway(tmp_path)
        path = cache.path_for(URL, 'u', 'p')
        assert path.parent == tmp_path
        assert path.name == f'feed.{CacheGateway.key(URL, "u", "p")}.xml'


class TestDisabled:
    def test_no_directory_disables_cache(self):
        cache = CacheGateway(None)
        assert not cache.enabled
        assert cache.path_for(URL) is None
        cache.write(URL, None, None, b'<rss/>')
        assert cache.read(URL) is None
        assert cache.read_stale(URL) is None

    def test_from_config_without_dir(self):
        assert not CacheGateway.from_config(FeedConfig()).enabled


class TestReadWrite:
    def test_round_trip(self, tmp_path):
        cache = CacheGateway(tmp_path / 'feeds')
        cache.write(URL, None, None, b'<rss/>')
        assert cache.read(URL) == b'<rss/>'

    def test_credentials_are_separate_entries(self, tmp_path):
        cache = CacheGateway(tmp_path)
        cache.write(URL, 'alice', 'pw', b'alice')
        assert cache.read(URL) is None
        assert cache.read(URL, 'alice', 'pw') == b'alice'

    def test_expired_entry_misses(self, tmp_path):
        cache = CacheGateway(tmp_path, timedelta(hours=1))
        cache.write(URL, None, None, b'<rss/>')
        _age(cache.path_for(URL), 2 * 3600)
        assert cache.read(URL) is None
        assert cache.read_stale(URL) == b'<rss/>'

    def test_entry_within_expiry_hits(self, tmp_path):
        cache = CacheGateway(tmp_path, timedelta(hours=1))
        cache.write(URL, None, None, b'<rss/>')
        _age(cache.path_for(URL), 30 * 60)
        assert cache.read(URL) == b'<rss/>'

    def test_injected_clock(self, tmp_path):
        now = time.time()
        cache = CacheGateway(tmp_path, timedelta(minutes=5), clock=lambda: now + 600)
        cache.write(URL, None, None, b'<rss/>')
        assert cache.read(URL) is None

    def test_calendar_phrase_resolved_at_each_check(self, tmp_path):
        now = {'t': datetime(2024, 3, 1, 12).timestamp()}
        cache = CacheGateway(tmp_path, '1 month', clock=lambda: now['t'])
        assert cache.window() == timedelta(days=29)
        cache.write(URL, None, None, b'<rss/>')
        path = cache.path_for(URL)
        written = now['t'] - 30 * 86400
        os.utime(path, (written, written))
        assert cache.read(URL) is None

        now['t'] = datetime(2024, 3, 31, 12).timestamp()
        assert cache.window() == timedelta(days=31)
        written = now['t'] - 30 * 86400
        os.utime(path, (written, written))
        assert cache.read(URL) == b'<rss/>'

    def test_missing_entry(self, tmp_path):
        assert CacheGateway(tmp_path).read(URL) is None

    def test_empty_entry_is_a_miss(self, tmp_path):
        cache = CacheGateway(tmp_path)
        cache.path_for(URL).write_bytes(b'')
        assert cache.read(URL) is None

    def test_from_config(self, tmp_path):
        cache = CacheGateway.from_config(FeedConfig(cache_dir=tmp_path, cache_expire=3600))
        assert cache.enabled
        assert cache.cache_dir == tmp_path
        assert cache.window() == timedelta(hours=1)

    def test_from_config_rejects_bad_phrase(self, tmp_path):
        with pytest.raises(ValueError):
            CacheGateway.from_config(FeedConfig(cache_dir=tmp_path, cache_expire='whenever'))


class TestWriteFailure:
    def test_unwritable_directory_raises_cache_error(self, tmp_path):
        blocker = tmp_path / 'not-a-dir'
        blocker.write_text('file, not directory')
        cache = CacheGateway(blocker)
        with pytest.raises(CacheError):
            cache.write(URL, None, None, b'<rss/>')


class TestConcurrentWriters:
    def test_last_write_wins(self, tmp_path):
        """
        Known race: entries are not locked, so two loaders sharing a cache
        directory overwrite each other's entry for the same request. Whichever
        write lands last is what later reads see.
        """
        first = CacheGateway(tmp_path)
        second = CacheGateway(tmp_path)
        first.write(URL, None, None, b'<rss>first</rss>')
        second.write(URL, None, None, b'<rss>second</rss>')
        assert first.read(URL) == b'<rss>second</rss>'
