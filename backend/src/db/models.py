"""
SQLAlchemy ORM models for the fermentation backend database.

Ownership chain: Farm -> Tank -> Batch -> SpindelReading / Alert.

SpindelReading.entry_id carries a database-level UNIQUE constraint: it is
the authoritative guard against storing the same feed entry twice, even
when two pollers race between the existence check and the insert.

Column types are portable between PostgreSQL (production, asyncpg) and
SQLite (tests and local runs, aiosqlite).

CHANGELOG:
- 2026-10-17: Add end_date >= start_date check on batches (STORY-009)
- 2026-10-17: Initial creation (STORY-002)

TODO:
- None
"""

import datetime
import enum
import uuid

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Double,
    Enum,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime.datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.datetime.now(tz=datetime.UTC)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all backend ORM models."""

    pass


class AlertLevel(enum.StrEnum):
    """Severity of an alert."""

    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class Farm(Base):
    """A coffee farm owning one or more fermentation tanks."""

    __tablename__ = "farms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    tanks: Mapped[list["Tank"]] = relationship(back_populates="farm")

    def __repr__(self) -> str:
        """Return string representation of the Farm."""
        return f"Farm(id={self.id!r}, name={self.name!r})"


class Tank(Base):
    """A physical fermentation vessel.

    Attributes:
        spindel_api_url: Telemetry feed URL for the tank's iSpindel. A tank
            without one is never polled.
    """

    __tablename__ = "tanks"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    farm_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("farms.id"), nullable=False, index=True
    )
    spindel_api_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    farm: Mapped[Farm] = relationship(back_populates="tanks")
    batches: Mapped[list["Batch"]] = relationship(back_populates="tank")

    def __repr__(self) -> str:
        """Return string representation of the Tank."""
        return f"Tank(id={self.id!r}, name={self.name!r})"


class Batch(Base):
    """One fermentation run in a tank.

    Only batches with ``is_active`` set are polled. A batch is never
    hard-deleted while readings reference it.

    Attributes:
        batch_code: Human-facing batch code.
        coffee_variety: Coffee variety being fermented.
        weight_kg: Cherry weight in kilograms (positive).
        start_date: When fermentation (re)started.
        end_date: When fermentation stopped; never before start_date.
        is_active: Whether the batch is currently polled.
    """

    __tablename__ = "batches"
    __table_args__ = (
        CheckConstraint("weight_kg > 0", name="ck_batches_weight_positive"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="ck_batches_end_after_start",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    batch_code: Mapped[str] = mapped_column(Text, nullable=False)
    coffee_variety: Mapped[str] = mapped_column(Text, nullable=False)
    weight_kg: Mapped[float] = mapped_column(Double, nullable=False)
    start_date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    end_date: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, index=True
    )
    tank_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tanks.id"), nullable=False, index=True
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    tank: Mapped[Tank] = relationship(back_populates="batches")

    def __repr__(self) -> str:
        """Return string representation of the Batch."""
        return (
            f"Batch(id={self.id!r}, batch_code={self.batch_code!r}, "
            f"is_active={self.is_active!r})"
        )


class SpindelReading(Base):
    """One iSpindel telemetry sample. Insert-only.

    Attributes:
        entry_id: External feed entry identifier, unique across all batches.
        created_at: Sample timestamp reported by the feed.
        angle_tilt: Tilt angle in degrees.
        temperature: Temperature in Celsius.
        unit: Temperature unit label.
        battery: Battery voltage.
        gravity: Specific gravity.
        interval: Sampling interval in seconds.
        rssi: WiFi signal strength in dBm.
        ssid: WiFi network name, if reported.
    """

    __tablename__ = "spindel_readings"
    __table_args__ = (
        UniqueConstraint("entry_id", name="uq_spindel_readings_entry_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    entry_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    angle_tilt: Mapped[float] = mapped_column(Double, nullable=False)
    temperature: Mapped[float] = mapped_column(Double, nullable=False)
    unit: Mapped[str] = mapped_column(Text, nullable=False, default="")
    battery: Mapped[float] = mapped_column(Double, nullable=False)
    gravity: Mapped[float] = mapped_column(Double, nullable=False)
    interval: Mapped[int] = mapped_column(Integer, nullable=False)
    rssi: Mapped[int] = mapped_column(Integer, nullable=False)
    ssid: Mapped[str | None] = mapped_column(Text, nullable=True)
    batch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("batches.id"), nullable=False, index=True
    )

    def __repr__(self) -> str:
        """Return string representation of the SpindelReading."""
        return (
            f"SpindelReading(entry_id={self.entry_id!r}, "
            f"batch_id={self.batch_id!r}, created_at={self.created_at!r})"
        )


class Alert(Base):
    """A warning derived from a reading that violated a threshold."""

    __tablename__ = "alerts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    batch_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("batches.id"), nullable=False, index=True
    )
    reading_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("spindel_readings.id"), nullable=True
    )
    level: Mapped[AlertLevel] = mapped_column(
        Enum(AlertLevel, name="alert_level"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now()
    )

    def __repr__(self) -> str:
        """Return string representation of the Alert."""
        return f"Alert(batch_id={self.batch_id!r}, level={self.level!r})"
