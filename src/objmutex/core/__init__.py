"""Core module - exceptions, configuration and logging.

This module provides the building blocks used throughout the package:
- Version information
- Custom exceptions
- Configuration dataclasses
- Logging helpers
"""

from objmutex.core.version import __version__

from objmutex.core.exceptions import (
    ObjMutexError,
    ConfigurationError,
    ConflictError,
    AdapterError,
    ProviderUnavailableError,
    LockRecordError,
    LockCancelledError,
    LockTimeoutError,
)

from objmutex.core.config import (
    BackoffConfig,
    RetryConfig,
    LogConfig,
    MutexConfig,
)

from objmutex.core.logging import (
    JSONFormatter,
    ContextLoggerAdapter,
    setup_logging,
    with_log_context,
)

__all__ = [
    # Version
    '__version__',
    # Exceptions
    'ObjMutexError',
    'ConfigurationError',
    'ConflictError',
    'AdapterError',
    'ProviderUnavailableError',
    'LockRecordError',
    'LockCancelledError',
    'LockTimeoutError',
    # Config dataclasses
    'BackoffConfig',
    'RetryConfig',
    'LogConfig',
    'MutexConfig',
    # Logging
    'JSONFormatter',
    'ContextLoggerAdapter',
    'setup_logging',
    'with_log_context',
]
