"""
Initial schema: farms, tanks, batches, spindel_readings and alerts.

spindel_readings.entry_id gets a UNIQUE constraint; it is the storage-level
guard that makes concurrent ingestion of the same feed entry a no-op.

Revision ID: 001
Revises: None
Create Date: 2026-10-17

CHANGELOG:
- 2026-10-17: Initial creation (STORY-002)

TODO:
- None
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# Revision identifiers used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_alert_level = sa.Enum("INFO", "WARNING", "CRITICAL", name="alert_level")


def _created_at() -> sa.Column:
    """Return a fresh created_at column definition."""
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Create the farm -> tank -> batch -> reading/alert tables."""
    op.create_table(
        "farms",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("location", sa.Text(), nullable=True),
        _created_at(),
    )

    op.create_table(
        "tanks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("farm_id", sa.Uuid(), sa.ForeignKey("farms.id"), nullable=False),
        sa.Column("spindel_api_url", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_tanks_farm_id", "tanks", ["farm_id"])

    op.create_table(
        "batches",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("batch_code", sa.Text(), nullable=False),
        sa.Column("coffee_variety", sa.Text(), nullable=False),
        sa.Column("weight_kg", sa.Double(), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("tank_id", sa.Uuid(), sa.ForeignKey("tanks.id"), nullable=False),
        _created_at(),
        sa.CheckConstraint("weight_kg > 0", name="ck_batches_weight_positive"),
        sa.CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="ck_batches_end_after_start",
        ),
    )
    op.create_index("ix_batches_tank_id", "batches", ["tank_id"])
    op.create_index("ix_batches_is_active", "batches", ["is_active"])

    op.create_table(
        "spindel_readings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("entry_id", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("angle_tilt", sa.Double(), nullable=False),
        sa.Column("temperature", sa.Double(), nullable=False),
        sa.Column("unit", sa.Text(), nullable=False),
        sa.Column("battery", sa.Double(), nullable=False),
        sa.Column("gravity", sa.Double(), nullable=False),
        sa.Column("interval", sa.Integer(), nullable=False),
        sa.Column("rssi", sa.Integer(), nullable=False),
        sa.Column("ssid", sa.Text(), nullable=True),
        sa.Column("batch_id", sa.Uuid(), sa.ForeignKey("batches.id"), nullable=False),
        sa.UniqueConstraint("entry_id", name="uq_spindel_readings_entry_id"),
    )
    op.create_index("ix_spindel_readings_batch_id", "spindel_readings", ["batch_id"])

    op.create_table(
        "alerts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("batch_id", sa.Uuid(), sa.ForeignKey("batches.id"), nullable=False),
        sa.Column(
            "reading_id",
            sa.Uuid(),
            sa.ForeignKey("spindel_readings.id"),
            nullable=True,
        ),
        sa.Column("level", _alert_level, nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_alerts_batch_id", "alerts", ["batch_id"])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table("alerts")
    op.drop_table("spindel_readings")
    op.drop_table("batches")
    op.drop_table("tanks")
    op.drop_table("farms")
    _alert_level.drop(op.get_bind(), checkfirst=True)
