"""Storage provider contract consumed by the mutex.

A provider exposes a single primitive: an atomic, conditional
read-modify-write of one named object. It is the only point of
serialization between contending mutex handles.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

# fn(current_version_tag, current_bytes) -> new_bytes
UpdateObjectFunc = Callable[[str | None, bytes], bytes]


@dataclass(frozen=True)
class ObjectLocation:
    """A bucket/container and an object key within it."""

    bucket: str
    key: str

    def __str__(self) -> str:
        return f"{self.bucket}/{self.key}"


class StorageProvider(Protocol):
    """Backend abstraction for the conditional update primitive."""

    name: str

    def atomic_update(self, location: ObjectLocation, fn: UpdateObjectFunc) -> str:
        """Read the object, transform it and write it back conditionally.

        Contract:
        - An absent object reads as ``b""`` with version tag ``None``.
        - ``fn`` is called exactly once per call.
        - The write succeeds only if the object's version tag is unchanged
          since the read (or the object is still absent).
        - A lost condition raises ``ConflictError``; any other provider
          failure raises ``AdapterError``.
        - Exceptions raised by ``fn`` propagate unchanged and nothing is
          written.

        Returns:
            The version tag of the newly written object.
        """
