'''
Loader configuration: cache location and expiry, user agent, transport order.

A FeedConfig is an immutable value held by a FeedLoader. Build one directly, or
from FEEDKIT_* environment variables (optionally layered over a .env file).
'''

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from datetime import datetime, timedelta
from pathlib import Path

import dateparser
from dotenv import dotenv_values

DEFAULT_USER_AGENT = 'FeedFetcher-Google'
DEFAULT_TRANSPORTS = ('httpx', 'urllib3', 'stream')

ENV_PREFIX = 'FEEDKIT_'

_TRUE = {'1', 'true', 'yes', 'on'}
_FALSE = {'0', 'false', 'no', 'off'}


@dataclass(frozen=True)
class FeedConfig:
    '''Configuration for feed loading.'''

    cache_expire: str | float | timedelta = '1 day'  # phrase ('5 hours'), seconds, or timedelta
    cache_dir: Path | None = None  # None disables caching
    user_agent: str = DEFAULT_USER_AGENT
    timeout: float = 20.0
    verify: bool = True
    follow_redirects: bool = True
    transports: tuple[str, ...] = DEFAULT_TRANSPORTS  # priority order
    stale_on_error: bool = False  # serve an expired cache entry when the fetch fails

    def __post_init__(self) -> None:
        if self.cache_dir is not None and not isinstance(self.cache_dir, Path):
            object.__setattr__(self, 'cache_dir', Path(self.cache_dir))
        if isinstance(self.transports, str):
            object.__setattr__(self, 'transports', _split_list(self.transports))
        else:
            object.__setattr__(self, 'transports', tuple(self.transports))

    def expiry(self, now: datetime | None = None) -> timedelta:
        '''Freshness window for cache entries, resolved relative to now.'''
        return parse_expiry(self.cache_expire, now=now)

    def with_overrides(self, **overrides) -> FeedConfig:
        '''Copy with the given fields replaced. None values are ignored.'''
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls, env_file: str | Path | None = None, **overrides) -> FeedConfig:
        '''
        Build config from FEEDKIT_* env vars. Values in env_file (if given and
        present) are used where the process environment has no value.
        Keyword overrides win over both.
        '''
        env: dict[str, str] = {}
        if env_file and Path(env_file).exists():
            env.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
        env.update(os.environ)

        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f'Unknown config field(s): {", ".join(sorted(unknown))}')

        values: dict[str, object] = {}
        raw = env.get(ENV_PREFIX + 'CACHE_DIR', '').strip()
        if raw:
            values['cache_dir'] = Path(raw).expanduser()
        raw = env.get(ENV_PREFIX + 'CACHE_EXPIRE', '').strip()
        if raw:
            values['cache_expire'] = float(raw) if _is_number(raw) else raw
        raw = env.get(ENV_PREFIX + 'USER_AGENT', '').strip()
        if raw:
            values['user_agent'] = raw
        raw = env.get(ENV_PREFIX + 'TIMEOUT', '').strip()
        if raw:
            try:
                values['timeout'] = float(raw)
            except ValueError as e:
                raise ValueError(f'{ENV_PREFIX}TIMEOUT must be a number, got {raw!r}') from e
        raw = env.get(ENV_PREFIX + 'VERIFY', '').strip()
        if raw:
            values['verify'] = _parse_bool(ENV_PREFIX + 'VERIFY', raw)
        raw = env.get(ENV_PREFIX + 'TRANSPORTS', '').strip()
        if raw:
            values['transports'] = _split_list(raw)
        raw = env.get(ENV_PREFIX + 'STALE_ON_ERROR', '').strip()
        if raw:
            values['stale_on_error'] = _parse_bool(ENV_PREFIX + 'STALE_ON_ERROR', raw)

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def parse_expiry(value: str | float | timedelta, now: datetime | None = None) -> timedelta:
    '''
    Resolve a cache expiry to a duration.

    value: a timedelta, a number of seconds, or a relative phrase such as
      '1 day', '5 hours' or '+30 minutes', resolved against now.
    '''
    if isinstance(value, timedelta):
        return value
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    phrase = str(value).strip().lstrip('+').strip()
    if not phrase:
        raise ValueError('Cache expiry must not be empty')
    if _is_number(phrase):
        return timedelta(seconds=float(phrase))
    base = now or datetime.now()
    if base.tzinfo is not None:
        base = base.replace(tzinfo=None)
    query = phrase if phrase.lower().endswith(' ago') else f'{phrase} ago'
    then = dateparser.parse(query, settings={'RELATIVE_BASE': base})
    if then is None:
        raise ValueError(f'Unrecognized cache expiry: {value!r}')
    return base - then.replace(tzinfo=None)


def _is_number(raw: str) -> bool:
    try:
        float(raw)
    except ValueError:
        return False
    return True


def _parse_bool(key: str, raw: str) -> bool:
    low = raw.lower()
    if low in _TRUE:
        return True
    if low in _FALSE:
        return False
    raise ValueError(f'{key} must be a boolean, got {raw!r}')


def _split_list(raw: str) -> tuple[str, ...]:
    return tuple(p.strip().lower() for p in raw.split(',') if p.strip())
