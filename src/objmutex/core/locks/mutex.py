"""Distributed mutex over a conditional object update."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from objmutex.core.config import MutexConfig
from objmutex.core.exceptions import AdapterError, ConflictError, LockCancelledError, LockTimeoutError
from objmutex.core.locks.record import LockRecord
from objmutex.core.logging import with_log_context
from objmutex.provider.base import ObjectLocation, StorageProvider
from objmutex.provider.resilience import RetryingProvider


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_lease(lease: float | timedelta) -> timedelta:
    if isinstance(lease, timedelta):
        length = lease
    else:
        length = timedelta(seconds=lease)
    if length <= timedelta(0):
        raise ValueError(f"lease length must be positive, got {lease!r}")
    return length


class _LockHeld(Exception):
    """Raised inside the acquire transform when another holder's lease is live."""

    def __init__(self, holder: str, expires_at: datetime | None):
        self.holder = holder
        self.expires_at = expires_at
        super().__init__(f"lock is held by {holder}")


class Mutex:
    """Lease-based mutual exclusion shared through one storage object.

    Every handle gets a random identity at construction. A handle is a
    single logical holder and must not be shared between concurrent
    callers; run one handle per thread, task or process instead.

    Example:
        mutex = Mutex(provider, "locks", "nightly-report")
        fence = mutex.lock(30, timeout=120)
        try:
            write_report(fencing_token=fence)
        finally:
            mutex.unlock()
    """

    def __init__(
        self,
        provider: StorageProvider,
        bucket: str,
        key: str,
        *,
        config: MutexConfig | None = None,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.location = ObjectLocation(bucket, key)
        self.config = config or MutexConfig()
        self.config.validate()
        self.identity = str(uuid.uuid4())
        self.logger = with_log_context(
            logger or logging.getLogger(__name__),
            lock_bucket=bucket,
            lock_key=key,
            lock_holder=self.identity,
        )

        if self.config.retry is not None:
            provider = RetryingProvider(provider, self.config.retry, logger=self.logger)
        self.provider = provider

        self._clock = clock or _utcnow
        self._version: str | None = None

    @property
    def version(self) -> str | None:
        """Version tag written by this handle's last acquisition, if still held."""
        return self._version

    def try_lock(self, lease: float | timedelta) -> tuple[bool, int | None]:
        """Attempt to acquire the lock once, without waiting.

        Args:
            lease: Seconds (or timedelta) until the lock counts as abandoned

        Returns:
            ``(True, fence)`` when acquired, ``(False, None)`` when another
            holder has a live lease or a concurrent writer won the race.

        Raises:
            AdapterError: The provider failed
            LockRecordError: The stored lock content is corrupt
        """
        length = _as_lease(lease)
        fence: int | None = None

        def _claim(_version: str | None, content: bytes) -> bytes:
            nonlocal fence
            record = LockRecord.decode(content)
            now = self._clock()
            if record.is_held(now):
                raise _LockHeld(record.holder, record.expires_at)

            claimed = record.acquired_by(self.identity, now + length)
            fence = claimed.fence
            return claimed.encode()

        try:
            new_version = self.provider.atomic_update(self.location, _claim)
        except _LockHeld as e:
            self.logger.debug("Lock %s is held by %s until %s", self.location, e.holder, e.expires_at)
            return False, None
        except ConflictError:
            self.logger.debug("Lost write race for lock %s", self.location)
            return False, None
        except AdapterError as e:
            self.logger.error("Acquiring lock %s failed: %s", self.location, e)
            raise

        self._version = new_version
        self.logger.info("Acquired lock %s (fence %s, lease %.1fs)", self.location, fence, length.total_seconds())
        return True, fence

    def lock(
        self,
        lease: float | timedelta,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> int:
        """Block until the lock is acquired and return its fencing token.

        Retries only while the lock is contended, backing off between
        attempts according to ``config.backoff``. Provider and encoding
        errors end the wait immediately.

        Args:
            lease: Seconds (or timedelta) until the lock counts as abandoned
            timeout: Give up after this many seconds (default: wait forever)
            cancel: Event that aborts the wait when set

        Raises:
            LockTimeoutError: ``timeout`` elapsed before acquisition
            LockCancelledError: ``cancel`` was set before acquisition
        """
        _as_lease(lease)
        deadline = time.monotonic() + timeout if timeout is not None else None
        attempt = 0

        while True:
            self._check_cancelled(cancel, deadline, timeout, attempt)

            acquired, fence = self.try_lock(lease)
            attempt += 1
            if acquired:
                if attempt > 1:
                    self.logger.debug("Lock %s acquired after %d attempts", self.location, attempt)
                return fence

            delay = self.config.backoff.compute_delay(attempt - 1)
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise LockTimeoutError(self.location, timeout=timeout, attempts=attempt)
                delay = min(delay, remaining)

            if cancel is not None:
                if cancel.wait(delay):
                    raise LockCancelledError(self.location, attempts=attempt)
            else:
                time.sleep(delay)

    def unlock(self) -> None:
        """Release the lock if this handle still holds it.

        Does nothing when the handle holds no lock. If another holder took
        the lock over after this handle's lease expired, the release is
        skipped and the new holder's record is left intact.

        Raises:
            AdapterError: The provider failed; the handle keeps its claim
                so the release can be retried
            LockRecordError: The stored lock content is corrupt
        """
        if self._version is None:
            return
        expected_version = self._version

        def _release(current_version: str | None, content: bytes) -> bytes:
            if current_version != expected_version:
                raise ConflictError(self.location, details="lock was reassigned")
            return LockRecord.decode(content).released().encode()

        try:
            self.provider.atomic_update(self.location, _release)
        except ConflictError:
            self.logger.info("Lock %s was already taken over; nothing to release", self.location)
        except AdapterError as e:
            self.logger.error("Releasing lock %s failed: %s", self.location, e)
            raise
        else:
            self.logger.info("Released lock %s", self.location)

        self._version = None

    def _check_cancelled(
        self,
        cancel: threading.Event | None,
        deadline: float | None,
        timeout: float | None,
        attempts: int,
    ) -> None:
        if cancel is not None and cancel.is_set():
            raise LockCancelledError(self.location, attempts=attempts)
        if deadline is not None and time.monotonic() >= deadline:
            raise LockTimeoutError(self.location, timeout=timeout or 0.0, attempts=attempts)
