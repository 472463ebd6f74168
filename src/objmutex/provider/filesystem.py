"""Filesystem storage provider.

Design principles:
- A bucket is an existing directory under the provider root; keys are
  relative paths inside it.
- Version tags are the MD5 digest of the object content, as with S3 ETags.
- The compare-and-write step runs under an exclusive ``flock`` on a
  sidecar file, and objects are replaced atomically, so readers never see
  a partial write.
"""

from __future__ import annotations

import contextlib
import hashlib
import logging
import os
import uuid
from pathlib import Path

from objmutex.core.constants import RETRYABLE_ERRNOS
from objmutex.core.exceptions import AdapterError, ConflictError, ProviderUnavailableError
from objmutex.provider.base import ObjectLocation, UpdateObjectFunc

try:
    import fcntl
except ImportError:  # pragma: no cover - exercised on non-POSIX only
    fcntl = None


def _version_tag(data: bytes) -> str:
    return hashlib.md5(data, usedforsecurity=False).hexdigest()


def _write_all(fd: int, payload: bytes) -> None:
    """Write complete payload to fd, handling short writes."""
    total_written = 0
    while total_written < len(payload):
        written = os.write(fd, payload[total_written:])
        if written <= 0:
            raise OSError("short write while persisting object")
        total_written += written


class FileProvider:
    """Provider backed by a local or shared POSIX directory tree."""

    name = "filesystem"

    def __init__(self, root: str | Path, logger: logging.Logger | None = None):
        if not self.is_supported():
            raise ProviderUnavailableError("fcntl locking is unavailable on this platform", operation="init")
        self.root = Path(root)
        self.logger = logger or logging.getLogger(__name__)

    @staticmethod
    def is_supported() -> bool:
        return fcntl is not None

    def atomic_update(self, location: ObjectLocation, fn: UpdateObjectFunc) -> str:
        path = self._resolve(location)
        data, version = self._read(path, location)

        new_data = fn(version, data)
        if not isinstance(new_data, (bytes, bytearray)):
            raise AdapterError(
                "update function returned non-bytes content",
                operation="atomic_update",
                location=location,
                details=type(new_data).__name__,
            )
        new_data = bytes(new_data)

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(str(self._sidecar_path(path)), os.O_CREAT | os.O_RDWR, 0o600)
        except OSError as e:
            raise self._adapter_error("cannot open lock sidecar", "write", location, e) from e

        try:
            try:
                assert fcntl is not None  # For type checkers.
                fcntl.flock(fd, fcntl.LOCK_EX)
            except OSError as e:
                raise self._adapter_error("cannot lock object", "write", location, e) from e

            _, current_version = self._read(path, location)
            if current_version != version:
                raise ConflictError(location, details=f"expected version {version}, found {current_version}")

            try:
                self._replace(path, new_data)
            except OSError as e:
                raise self._adapter_error("cannot write object", "write", location, e) from e
        finally:
            with contextlib.suppress(OSError):
                assert fcntl is not None  # For type checkers.
                fcntl.flock(fd, fcntl.LOCK_UN)
            with contextlib.suppress(OSError):
                os.close(fd)

        new_version = _version_tag(new_data)
        self.logger.debug("Wrote %s (version %s -> %s)", location, version, new_version)
        return new_version

    def _resolve(self, location: ObjectLocation) -> Path:
        bucket_dir = self.root / location.bucket
        if not location.bucket or not bucket_dir.is_dir():
            raise AdapterError("bucket not found", operation="resolve", location=location)
        if not location.key or location.key.endswith("/"):
            raise AdapterError("invalid object key", operation="resolve", location=location)

        path = (bucket_dir / location.key).resolve()
        if not path.is_relative_to(bucket_dir.resolve()):
            raise AdapterError("object key escapes bucket", operation="resolve", location=location)
        return path

    @staticmethod
    def _sidecar_path(path: Path) -> Path:
        return path.with_name(f".{path.name}.lock")

    def _read(self, path: Path, location: ObjectLocation) -> tuple[bytes, str | None]:
        try:
            with open(path, "rb") as f:
                data = f.read()
        except FileNotFoundError:
            return b"", None
        except OSError as e:
            raise self._adapter_error("cannot read object", "read", location, e) from e
        return data, _version_tag(data)

    @staticmethod
    def _replace(path: Path, payload: bytes) -> None:
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        fd = os.open(str(tmp_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        try:
            _write_all(fd, payload)
            os.fsync(fd)
        except OSError:
            os.close(fd)
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            raise
        os.close(fd)
        try:
            os.replace(tmp_path, path)
        except OSError:
            with contextlib.suppress(OSError):
                tmp_path.unlink()
            raise

    @staticmethod
    def _adapter_error(message: str, operation: str, location: ObjectLocation, error: OSError) -> AdapterError:
        return AdapterError(
            message,
            operation=operation,
            location=location,
            details=str(error),
            original_error=error,
            retryable=error.errno in RETRYABLE_ERRNOS,
        )
