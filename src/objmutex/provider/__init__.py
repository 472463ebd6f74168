"""Storage providers implementing the conditional update primitive."""

from objmutex.provider.base import ObjectLocation, StorageProvider, UpdateObjectFunc
from objmutex.provider.filesystem import FileProvider
from objmutex.provider.memory import MemoryProvider
from objmutex.provider.resilience import RetryingProvider

__all__ = [
    "FileProvider",
    "MemoryProvider",
    "ObjectLocation",
    "RetryingProvider",
    "StorageProvider",
    "UpdateObjectFunc",
]
