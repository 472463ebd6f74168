"""Constants and default values for objmutex.

This module centralizes the magic numbers, environment variable names and
persisted field names used throughout the package.
"""

import errno

# ==================== BACKOFF DEFAULTS ====================

# Many object stores rate-limit writes to roughly one per second per object,
# so contended acquisition backs off towards a few seconds.
DEFAULT_BACKOFF_BASE_DELAY: float = 0.25
DEFAULT_BACKOFF_MAX_DELAY: float = 5.0
DEFAULT_BACKOFF_EXPONENTIAL_BASE: int = 2
JITTER_RANGE: tuple[float, float] = (0.5, 1.5)

# Exponent cap so long waits never overflow float conversion
MAX_BACKOFF_EXPONENT: int = 32

# ==================== ADAPTER RETRY DEFAULTS ====================

DEFAULT_ADAPTER_MAX_RETRIES: int = 3
DEFAULT_ADAPTER_BASE_DELAY: float = 0.1
DEFAULT_ADAPTER_MAX_DELAY: float = 2.0

# OS error numbers treated as transient by the filesystem provider
RETRYABLE_ERRNOS: frozenset[int] = frozenset(
    err_no
    for err_no in (
        getattr(errno, "EAGAIN", None),
        getattr(errno, "EINTR", None),
        getattr(errno, "EBUSY", None),
        getattr(errno, "ETIMEDOUT", None),
    )
    if err_no is not None
)

# ==================== LOGGING DEFAULTS ====================

DEFAULT_LOG_LEVEL: str = "INFO"
DEFAULT_LOG_FORMAT: str = "text"
VALID_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_LOG_FORMATS: tuple[str, ...] = ("text", "json")
LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB max per log file
LOG_FILE_BACKUP_COUNT: int = 5

# ==================== ENVIRONMENT VARIABLES ====================

ENV_BACKOFF_BASE_DELAY = "OBJMUTEX_BACKOFF_BASE_DELAY"
ENV_BACKOFF_MAX_DELAY = "OBJMUTEX_BACKOFF_MAX_DELAY"
ENV_BACKOFF_JITTER = "OBJMUTEX_BACKOFF_JITTER"
ENV_MAX_RETRIES = "OBJMUTEX_MAX_RETRIES"
ENV_LOG_LEVEL = "OBJMUTEX_LOG_LEVEL"
ENV_LOG_FORMAT = "OBJMUTEX_LOG_FORMAT"
ENV_LOG_FILE = "OBJMUTEX_LOG_FILE"

TRUTHY_VALUES: frozenset[str] = frozenset({"1", "true", "yes", "on"})
FALSY_VALUES: frozenset[str] = frozenset({"0", "false", "no", "off"})

# ==================== LOCK RECORD FORMAT ====================

# JSON field names of the persisted lock record
RECORD_HOLDER_FIELD = "id"
RECORD_EXPIRES_FIELD = "expires"
RECORD_FENCE_FIELD = "fence"
