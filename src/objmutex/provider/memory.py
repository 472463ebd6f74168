"""In-process storage provider.

Keeps objects in a dictionary guarded by a lock. The read and the
conditional write take the lock separately, so threads contending through
this provider race the same way remote clients race against object
storage and observe real write conflicts.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from objmutex.core.exceptions import AdapterError, ConflictError
from objmutex.provider.base import ObjectLocation, UpdateObjectFunc


@dataclass
class _StoredObject:
    data: bytes
    generation: int


class MemoryProvider:
    """Thread-safe in-memory implementation of the provider contract.

    Version tags are per-object generation numbers, rendered as strings.
    """

    name = "memory"

    def __init__(self, logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(__name__)
        self._objects: dict[ObjectLocation, _StoredObject] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def atomic_update(self, location: ObjectLocation, fn: UpdateObjectFunc) -> str:
        data, version = self.read(location)

        new_data = fn(version, data)
        if not isinstance(new_data, (bytes, bytearray)):
            raise AdapterError(
                "update function returned non-bytes content",
                operation="atomic_update",
                location=location,
                details=type(new_data).__name__,
            )

        with self._lock:
            current = self._objects.get(location)
            current_version = str(current.generation) if current is not None else None
            if current_version != version:
                raise ConflictError(location)
            self._generation += 1
            self._objects[location] = _StoredObject(data=bytes(new_data), generation=self._generation)
            new_version = str(self._generation)

        self.logger.debug("Wrote %s (version %s -> %s)", location, version, new_version)
        return new_version

    def read(self, location: ObjectLocation) -> tuple[bytes, str | None]:
        """Return the current content and version tag of an object."""
        with self._lock:
            current = self._objects.get(location)
            if current is None:
                return b"", None
            return current.data, str(current.generation)
