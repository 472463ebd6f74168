"""Locking subsystem for cross-host coordination over object storage.

This package holds the persisted lock record and the mutex protocol that
mutates it through a provider's conditional update.
"""

from objmutex.core.locks.mutex import Mutex
from objmutex.core.locks.record import LockRecord, initialize_lock_object

__all__ = [
    "LockRecord",
    "Mutex",
    "initialize_lock_object",
]
