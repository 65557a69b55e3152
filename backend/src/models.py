"""
Pydantic models shared by the ingestion core.

Defines the NormalizedReading produced by the normalizer from one raw feed
entry, and the PollOutcome returned by every pipeline run.

CHANGELOG:
- 2026-10-17: Add DroppedEntry so malformed entries are reported (STORY-005)
- 2026-10-17: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class NormalizedReading(BaseModel):
    """A single iSpindel sample after parsing, before persistence.

    Attributes:
        entry_id: External feed entry identifier (global dedup key).
        batch_id: Batch the reading is stored against.
        created_at: Timestamp reported by the feed, not ingestion time.
        angle_tilt: Tilt angle in degrees.
        temperature: Temperature in degrees Celsius.
        unit: Temperature unit label as sent by the device.
        battery: Battery voltage in volts.
        gravity: Specific gravity.
        interval: Device sampling interval in seconds.
        rssi: WiFi signal strength in dBm (typically negative).
        ssid: WiFi network name, or None when not reported.
    """

    entry_id: int
    batch_id: uuid.UUID
    created_at: datetime
    angle_tilt: float
    temperature: float
    unit: str
    battery: float
    gravity: float
    interval: int
    rssi: int
    ssid: str | None = None


class PollStatus(StrEnum):
    """Result category of a single batch poll."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    FETCH_FAILED = "fetch_failed"
    FAILED = "failed"


class DroppedEntry(BaseModel):
    """A feed entry rejected by the normalizer."""

    entry_id: str | None
    field: str
    reason: str


class PollOutcome(BaseModel):
    """Outcome of one pipeline run for one batch.

    Attributes:
        batch_id: The polled batch.
        status: Completed, skipped, fetch_failed or failed.
        reason: Why the run was skipped or failed (None when completed).
        inserted: Readings newly persisted.
        alerts: Alerts created for the new readings.
        skipped: Entries already stored (dedup skips and lost races).
        dropped: Entries rejected as malformed.
    """

    batch_id: uuid.UUID
    status: PollStatus
    reason: str | None = None
    inserted: int = 0
    alerts: int = 0
    skipped: int = 0
    dropped: list[DroppedEntry] = Field(default_factory=list)

    @classmethod
    def skipped_run(cls, batch_id: uuid.UUID, reason: str) -> PollOutcome:
        """Build a SKIPPED outcome."""
        return cls(batch_id=batch_id, status=PollStatus.SKIPPED, reason=reason)

    @property
    def ok(self) -> bool:
        """True unless the run failed to fetch or persist."""
        return self.status in (PollStatus.COMPLETED, PollStatus.SKIPPED)
