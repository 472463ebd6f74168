"""Persisted lock state.

The lock object's entire content is one small JSON document::

    {"expires": "2024-05-01T12:00:05.123456Z", "fence": 42, "id": "<holder>"}

``id`` and ``expires`` are omitted while the lock is unheld. ``fence`` is
always written and only ever increases.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any

from objmutex.core.constants import RECORD_EXPIRES_FIELD, RECORD_FENCE_FIELD, RECORD_HOLDER_FIELD
from objmutex.core.exceptions import ConflictError, LockRecordError
from objmutex.provider.base import ObjectLocation, StorageProvider

_TIMESTAMP_PATTERN = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<offset>[Zz]|[+-]\d{2}:\d{2})?$"
)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` in UTC. Naive datetimes are taken as UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def format_timestamp(value: datetime) -> str:
    """Render a datetime as RFC 3339 in UTC with a ``Z`` suffix."""
    return as_utc(value).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware datetime.

    Fractions beyond microseconds (as written by nanosecond clocks) are
    truncated. Timestamps without an offset are taken as UTC.
    """
    match = _TIMESTAMP_PATTERN.match(value.strip())
    if match is None:
        raise ValueError(f"invalid timestamp: {value!r}")

    text = match.group("base").replace("t", "T").replace(" ", "T")
    fraction = match.group("fraction")
    if fraction:
        text += "." + fraction[:6].ljust(6, "0")
    offset = match.group("offset")
    if offset and offset not in ("Z", "z"):
        text += offset

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


@dataclass(frozen=True)
class LockRecord:
    """Lock state as stored in the lock object."""

    holder: str = ""
    expires_at: datetime | None = None
    fence: int = 0

    def is_held(self, now: datetime) -> bool:
        """True while a holder is recorded and its lease has not passed.

        An expired record keeps its holder but counts as free.
        """
        if not self.holder or self.expires_at is None:
            return False
        return as_utc(now) <= as_utc(self.expires_at)

    def acquired_by(self, holder: str, expires_at: datetime) -> LockRecord:
        return replace(self, holder=holder, expires_at=as_utc(expires_at), fence=self.fence + 1)

    def released(self) -> LockRecord:
        return replace(self, holder="", expires_at=None)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {RECORD_FENCE_FIELD: self.fence}
        if self.holder:
            data[RECORD_HOLDER_FIELD] = self.holder
        if self.expires_at is not None:
            data[RECORD_EXPIRES_FIELD] = format_timestamp(self.expires_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LockRecord:
        holder = data.get(RECORD_HOLDER_FIELD) or ""
        if not isinstance(holder, str):
            raise LockRecordError("lock holder must be a string", details=repr(holder))

        expires_at = None
        raw_expires = data.get(RECORD_EXPIRES_FIELD)
        if raw_expires is not None:
            if not isinstance(raw_expires, str):
                raise LockRecordError("lock expiry must be a timestamp string", details=repr(raw_expires))
            try:
                expires_at = parse_timestamp(raw_expires)
            except ValueError as e:
                raise LockRecordError("lock expiry is not a valid timestamp", details=str(e)) from e

        fence = data.get(RECORD_FENCE_FIELD, 0)
        if fence is None:
            fence = 0
        if isinstance(fence, bool) or not isinstance(fence, int) or fence < 0:
            raise LockRecordError("fence must be a non-negative integer", details=repr(fence))

        return cls(holder=holder, expires_at=expires_at, fence=fence)

    def encode(self) -> bytes:
        return json.dumps(self.to_dict(), sort_keys=True).encode("utf-8")

    @classmethod
    def decode(cls, content: bytes) -> LockRecord:
        """Decode stored content; empty content is the zero (unheld) record."""
        if not content or not content.strip():
            return cls()
        try:
            data = json.loads(content)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise LockRecordError("lock object is not valid JSON", content=content, details=str(e)) from e

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise LockRecordError(
                "lock object must contain a JSON object", content=content, details=type(data).__name__
            )
        try:
            return cls.from_dict(data)
        except LockRecordError as e:
            e.content = content
            raise


class _ObjectExists(Exception):
    pass


def initialize_lock_object(
    provider: StorageProvider,
    location: ObjectLocation,
    logger: logging.Logger | None = None,
) -> bool:
    """Seed an unheld lock record at ``location`` if no object exists there.

    Existing content is never touched, so this is safe to call while other
    processes already use the lock.

    Returns:
        True if the object was created, False if it already existed.
    """
    log = logger or logging.getLogger(__name__)

    def _seed(version: str | None, content: bytes) -> bytes:
        if version is not None or content:
            raise _ObjectExists()
        return LockRecord().encode()

    try:
        provider.atomic_update(location, _seed)
    except (_ObjectExists, ConflictError):
        log.debug("Lock object %s already exists", location)
        return False

    log.info("Initialized lock object %s", location)
    return True
