"""
Exception types raised by the ingestion core.

- MalformedReading: one feed entry failed to parse; the entry is dropped.
- FetchFailed: the external feed could not be fetched or decoded.
- PersistenceConflict: a concurrent writer already stored the entry_id.
- BatchNotFound: a lifecycle transition or admin call named an unknown batch.
- TankNotFound: a new batch named an unknown tank.
- ReadingNotFound: a manual alert named a reading that is missing or
  belongs to another batch.

CHANGELOG:
- 2026-10-17: Add TankNotFound and ReadingNotFound for batch and alert admin
- 2026-10-17: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import uuid


class MalformedReading(ValueError):
    """A raw feed entry could not be normalized.

    Attributes:
        field: Feed field name that failed to parse.
        value: The offending raw value.
        reason: Short human-readable description.
    """

    def __init__(self, field: str, value: object, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"{field}: {reason} (got {value!r})")


class FetchFailed(Exception):
    """The feed request failed, timed out, or returned an unusable body."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(reason)


class PersistenceConflict(Exception):
    """A reading with the same entry_id was written by another poller."""

    def __init__(self, entry_id: int) -> None:
        self.entry_id = entry_id
        super().__init__(f"entry_id {entry_id} already stored")


class BatchNotFound(LookupError):
    """No batch exists with the requested identifier."""

    def __init__(self, batch_id: uuid.UUID) -> None:
        self.batch_id = batch_id
        super().__init__(f"Batch '{batch_id}' not found")


class TankNotFound(LookupError):
    """No tank exists with the requested identifier."""

    def __init__(self, tank_id: uuid.UUID) -> None:
        self.tank_id = tank_id
        super().__init__(f"Tank '{tank_id}' not found")


class ReadingNotFound(LookupError):
    """A reading is missing or does not belong to the expected batch."""

    def __init__(self, reading_id: uuid.UUID, batch_id: uuid.UUID) -> None:
        self.reading_id = reading_id
        self.batch_id = batch_id
        super().__init__(f"Reading '{reading_id}' not found for batch '{batch_id}'")
