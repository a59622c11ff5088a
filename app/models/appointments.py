"""Appointment store table using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
)

# Metadata for the appointment store database
metadata = MetaData()

# Authoritative record of booking status
appointments = Table(
    "appointments",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("insured_id", String(5), nullable=False),
    Column("schedule_id", Integer, nullable=False),
    Column("country_iso", String(2), nullable=False),
    # Status management
    Column("status", String(16), nullable=False, server_default="pending"),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    # Constraints
    CheckConstraint(
        "status IN ('pending', 'completed', 'failed')",
        name="appointments_status_check",
    ),
    # Secondary lookup by insured person
    Index("ix_appointments_insured_id", "insured_id"),
)
