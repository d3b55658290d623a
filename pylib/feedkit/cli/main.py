'''CLI for loading RSS / Atom feeds and inspecting the normalized result.'''

import json
import logging
import sys

import fire
import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from feedkit.config import FeedConfig
from feedkit.errors import FeedError
from feedkit.loader import FeedLoader


def _configure_plain_tracebacks() -> None:
    '''Use standard Python tracebacks instead of Rich's fancy format.'''
    from structlog.contextvars import merge_contextvars
    from structlog.dev import ConsoleRenderer, plain_traceback, set_exc_info
    from structlog.processors import StackInfoRenderer, TimeStamper, add_log_level

    structlog.configure(
        processors=[
            merge_contextvars,
            add_log_level,
            StackInfoRenderer(),
            set_exc_info,
            TimeStamper(fmt='%Y-%m-%d %H:%M:%S', utc=False),
            ConsoleRenderer(exception_formatter=plain_traceback),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )


def _build_loader(cache_dir: str = '', cache_expire: str = '', user_agent: str = '', env_file: str = '.env') -> FeedLoader:
    '''Build a FeedLoader from env (and .env), with optional CLI overrides.'''
    cfg = FeedConfig.from_env(
        env_file=env_file or None,
        cache_dir=cache_dir or None,
        cache_expire=cache_expire or None,
        user_agent=user_agent or None,
    )
    return FeedLoader(cfg)


def _credentials(user, password) -> tuple[str | None, str | None]:
    # fire turns numeric-looking values into numbers
    return (str(user) if user != '' else None, str(password) if password != '' else None)


def main() -> None:
    '''feedkit: fetch and inspect RSS / Atom feeds.'''
    _configure_plain_tracebacks()
    fire.Fire({
        'show': show,
        'tree': tree,
    })


def show(
    url: str,
    user: str = '',
    password: str = '',
    cache_dir: str = '',
    cache_expire: str = '',
    user_agent: str = '',
    limit: int = 20,
) -> None:
    '''
    Load a feed and print its title and items.
    user, password: HTTP basic auth credentials (both required to be used)
    cache_dir: cache directory (default from FEEDKIT_CACHE_DIR; caching off if unset)
    cache_expire: freshness window, e.g. "1 day" or "5 hours"
    limit: maximum number of items to list
    '''
    console = Console()
    loader = _build_loader(cache_dir, cache_expire, user_agent)
    try:
        feed = loader.load(url, *_credentials(user, password))
    except FeedError as e:
        console.print(f'[red]Error:[/red] {e}')
        raise SystemExit(1) from e

    title = feed.title.text.strip() or url
    subtitle = (feed.description if feed.kind == 'rss' else feed.subtitle).text.strip()
    console.print(Panel(subtitle or url, title=f'{title} ({feed.kind})'))

    table = Table('Published (UTC)', 'Title', 'URL')
    for item in list(feed.items)[:limit]:
        published = item.published_at.strftime('%Y-%m-%d %H:%M') if item.published_at else ''
        table.add_row(published, item.title.text.strip(), item.url)
    console.print(table)


def tree(
    url: str,
    user: str = '',
    password: str = '',
    cache_dir: str = '',
    cache_expire: str = '',
    user_agent: str = '',
) -> None:
    '''Load a feed and print it as JSON (nested objects / arrays).'''
    console = Console()
    loader = _build_loader(cache_dir, cache_expire, user_agent)
    try:
        feed = loader.load(url, *_credentials(user, password))
    except FeedError as e:
        console.print(f'[red]Error:[/red] {e}')
        raise SystemExit(1) from e
    console.print_json(json.dumps(feed.to_tree(), ensure_ascii=False))
