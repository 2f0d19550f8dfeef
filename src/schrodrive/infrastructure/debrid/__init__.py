from .base import DebridClient
from .realdebrid import RealDebridClient
from .torbox import TorBoxClient

__all__ = ["DebridClient", "RealDebridClient", "TorBoxClient"]
