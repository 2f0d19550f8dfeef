from .errors import (
    ConfigurationError,
    DebridNotConfiguredError,
    DebridRateLimitedError,
    DebridRequestError,
    IndexerNotConfiguredError,
    IndexerRequestError,
    SchroDriveError,
    UnknownDebridProviderError,
)
from .media_request import (
    MediaSearch,
    build_query_from_payload,
    build_search_from_request,
    request_identifier,
)
from .processed_set import ProcessedRequestSet
from .search import IndexerProvider, SearchOptions, SearchResult

__all__ = [
    "ConfigurationError",
    "DebridNotConfiguredError",
    "DebridRateLimitedError",
    "DebridRequestError",
    "IndexerNotConfiguredError",
    "IndexerProvider",
    "IndexerRequestError",
    "MediaSearch",
    "ProcessedRequestSet",
    "SchroDriveError",
    "SearchOptions",
    "SearchResult",
    "UnknownDebridProviderError",
    "build_query_from_payload",
    "build_search_from_request",
    "request_identifier",
]
