"""objmutex - distributed mutex on object storage conditional writes.

Example:
    from objmutex import MemoryProvider, Mutex

    mutex = Mutex(MemoryProvider(), "locks", "leader")
    fence = mutex.lock(10, timeout=30)
    try:
        ...
    finally:
        mutex.unlock()
"""

from objmutex.core import (
    AdapterError,
    BackoffConfig,
    ConfigurationError,
    ConflictError,
    LockCancelledError,
    LockRecordError,
    LockTimeoutError,
    LogConfig,
    MutexConfig,
    ObjMutexError,
    ProviderUnavailableError,
    RetryConfig,
    __version__,
    setup_logging,
)
from objmutex.core.locks import LockRecord, Mutex, initialize_lock_object
from objmutex.provider import (
    FileProvider,
    MemoryProvider,
    ObjectLocation,
    RetryingProvider,
    StorageProvider,
)

__all__ = [
    "AdapterError",
    "BackoffConfig",
    "ConfigurationError",
    "ConflictError",
    "FileProvider",
    "LockCancelledError",
    "LockRecord",
    "LockRecordError",
    "LockTimeoutError",
    "LogConfig",
    "MemoryProvider",
    "Mutex",
    "MutexConfig",
    "ObjMutexError",
    "ObjectLocation",
    "ProviderUnavailableError",
    "RetryConfig",
    "StorageProvider",
    "__version__",
    "initialize_lock_object",
    "setup_logging",
]
