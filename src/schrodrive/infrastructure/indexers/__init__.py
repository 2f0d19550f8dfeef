from .base import IndexerBackend
from .facade import IndexerFacade
from .jackett import JackettBackend
from .prowlarr import ProwlarrBackend
from .redirect_walker import RedirectWalker

__all__ = [
    "IndexerBackend",
    "IndexerFacade",
    "JackettBackend",
    "ProwlarrBackend",
    "RedirectWalker",
]
