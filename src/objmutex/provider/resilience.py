"""Provider resilience utilities.

Transient adapter failures (timeouts, interrupted system calls, busy
resources) may be retried below the mutex. Write conflicts and errors
raised by the update function are never retried here: conflicts are
contention the mutex handles itself, and update function errors carry
protocol decisions.
"""

import logging
import time

from objmutex.core.config import RetryConfig
from objmutex.core.exceptions import AdapterError
from objmutex.provider.base import ObjectLocation, StorageProvider, UpdateObjectFunc


class RetryingProvider:
    """
    Provider wrapper that retries retryable ``AdapterError``s with backoff.

    Each attempt is a complete ``atomic_update`` call, so the update
    function runs once per attempt and always sees freshly read state.

    Example:
        provider = RetryingProvider(FileProvider("/mnt/shared"), RetryConfig(max_retries=5))
        mutex = Mutex(provider, "locks", "leader")

    Backoff Formula:
        delay = min(base_delay * (exponential_base ** attempt), max_delay)
        if jitter: delay = min(delay * random.uniform(0.5, 1.5), max_delay)
    """

    def __init__(
        self,
        provider: StorageProvider,
        config: RetryConfig | None = None,
        logger: logging.Logger | None = None,
    ):
        self.provider = provider
        self.config = config or RetryConfig()
        self.config.validate()
        self.logger = logger or logging.getLogger(__name__)

    @property
    def name(self) -> str:
        return f"retrying-{self.provider.name}"

    def atomic_update(self, location: ObjectLocation, fn: UpdateObjectFunc) -> str:
        max_retries = self.config.max_retries

        for attempt in range(max_retries + 1):  # +1 for initial attempt
            try:
                result = self.provider.atomic_update(location, fn)
                if attempt > 0:
                    self.logger.info(f"Update of {location} succeeded on attempt {attempt + 1}/{max_retries + 1}")
                return result
            except AdapterError as e:
                if not e.retryable:
                    raise
                if attempt == max_retries:
                    self.logger.error(f"All {max_retries + 1} attempts failed for update of {location}: {e!s}")
                    raise

                delay = self.config.backoff.compute_delay(attempt)
                self.logger.warning(
                    f"Update of {location} attempt {attempt + 1}/{max_retries + 1} failed: {e!s}. "
                    f"Retrying in {delay:.2f}s..."
                )
                time.sleep(delay)

        # Unreachable: the last attempt always returns or raises.
        raise RuntimeError(f"Retry loop exited unexpectedly for {location}")
