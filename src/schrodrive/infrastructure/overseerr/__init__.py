from .client import OverseerrClient

__all__ = ["OverseerrClient"]
