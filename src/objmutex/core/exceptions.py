"""Custom exceptions for objmutex.

Contention (a held lock or a lost write race) is never surfaced by the
mutex; everything raised from here reaches the caller.
"""

from __future__ import annotations


class ObjMutexError(Exception):
    """Base exception for all objmutex errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(ObjMutexError):
    """Exception raised for invalid configuration values.

    Examples:
        - Non-positive backoff delays
        - Max delay below base delay
        - Exponential base below 1
        - Negative retry count
    """

    def __init__(self, message: str, field: str | None = None, details: str | None = None):
        self.field = field
        super().__init__(message, details)


class ConflictError(ObjMutexError):
    """Raised when a conditional write loses the race against another writer.

    Expected whenever several clients contend for the same lock object.
    """

    def __init__(self, location: object | None = None, details: str | None = None):
        self.location = location
        message = "write conflict"
        if location is not None:
            message = f"write conflict on {location}"
        super().__init__(message, details)


class AdapterError(ObjMutexError):
    """Exception raised for storage provider failures.

    Wraps I/O, transport and protocol errors with context about the
    operation that failed. ``retryable`` marks transient failures that a
    provider wrapper may retry.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        location: object | None = None,
        details: str | None = None,
        original_error: Exception | None = None,
        retryable: bool = False,
    ):
        self.operation = operation
        self.location = location
        self.original_error = original_error
        self.retryable = retryable
        super().__init__(message, details)

    def __str__(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.append(f"during {self.operation}")
        if self.location is not None:
            parts.append(f"on {self.location}")
        if self.details:
            parts.append(self.details)
        return " - ".join(parts)


class ProviderUnavailableError(AdapterError):
    """Raised when a provider cannot operate on the current platform."""


class LockRecordError(ObjMutexError):
    """Raised when stored lock content cannot be understood.

    Safe mutation is impossible without knowing the current state, so
    this is always fatal.
    """

    def __init__(self, message: str, content: bytes | None = None, details: str | None = None):
        self.content = content
        super().__init__(message, details)


class LockCancelledError(ObjMutexError):
    """Raised when a blocking acquisition is cancelled by the caller.

    The mutex handle stays usable after this error.
    """

    def __init__(self, location: object | None = None, attempts: int = 0, message: str | None = None):
        self.location = location
        self.attempts = attempts
        if message is None:
            message = "lock acquisition cancelled"
            if location is not None:
                message = f"lock acquisition cancelled for {location}"
        details = f"after {attempts} attempt(s)" if attempts else None
        super().__init__(message, details)


class LockTimeoutError(LockCancelledError):
    """Raised when a blocking acquisition does not succeed before its timeout."""

    def __init__(self, location: object | None = None, timeout: float = 0.0, attempts: int = 0):
        self.timeout = timeout
        message = f"timed out after {timeout:.2f}s waiting for lock"
        if location is not None:
            message = f"timed out after {timeout:.2f}s waiting for lock {location}"
        super().__init__(location, attempts=attempts, message=message)
