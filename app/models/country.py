"""Per-jurisdiction tables: the country ledger and the schedule directory.

Every supported country has its own database holding both tables.
"""

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
)

# Metadata shared by every country database
metadata = MetaData()

# Replica of successfully processed appointments, keyed by appointment id
ledger_appointments = Table(
    "appointments",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("insured_id", String(5), nullable=False),
    Column("schedule_id", Integer, nullable=False),
    Column("country_iso", String(2), nullable=False),
    Column("status", String(16), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# Read-only reference data owned by the scheduling system
schedules = Table(
    "schedules",
    metadata,
    Column("id", Integer, nullable=False, autoincrement=False),
    Column("country_iso", String(2), nullable=False),
    Column("center_id", Integer, nullable=False),
    Column("specialty_id", Integer, nullable=False),
    Column("medic_id", Integer, nullable=False),
    Column("date", DateTime(timezone=True), nullable=False),
    PrimaryKeyConstraint("id", "country_iso", name="schedules_pkey"),
)
