'''Exception hierarchy. Catch FeedError for everything raised by feedkit.'''


class FeedError(Exception):
    '''Base class for all feedkit errors.'''


class FeedLoadError(FeedError):
    '''Raised when neither the cache nor the network yields usable bytes.'''


class FeedConnectionError(FeedLoadError):
    '''Raised when the selected transport cannot retrieve the feed.'''


class CacheError(FeedError):
    '''Raised when a cache entry cannot be written while caching is enabled.'''


class ParseError(FeedError):
    '''Raised when the response body cannot be parsed as XML.'''


class FormatError(FeedError):
    '''Raised when parsed XML is neither an RSS nor an Atom document.'''


class ReadOnlyPropertyError(FeedError, AttributeError):
    '''Raised on any attempt to assign a property of a loaded feed.'''

    def __init__(self, name: str):
        super().__init__(f'Cannot assign to read-only property {name!r}')
        self.name = name
