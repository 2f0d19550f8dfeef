from .debrid import DebridProviderPort
from .indexer import IndexerPort
from .media_requests import MediaRequestSourcePort

__all__ = ["DebridProviderPort", "IndexerPort", "MediaRequestSourcePort"]
