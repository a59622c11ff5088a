"""Per-jurisdiction ledger and schedule directory adapters."""

from typing import Any

import structlog
from sqlalchemy import and_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import translate_database_errors
from app.domain.appointment import Appointment, Schedule, validate_country
from app.models.country import ledger_appointments, schedules
from app.repositories.appointment_repository import appointment_to_values

logger = structlog.get_logger(__name__)

# Columns refreshed when a redelivered snapshot hits an existing ledger row
_MUTABLE_COLUMNS = ("status", "updated_at")


def build_upsert(dialect_name: str, values: dict[str, Any]) -> Any:
    """Insert-or-update statement keyed on the ledger primary key."""
    if dialect_name == "postgresql":
        stmt = postgresql.insert(ledger_appointments).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=[ledger_appointments.c.id],
            set_={name: stmt.excluded[name] for name in _MUTABLE_COLUMNS},
        )
    if dialect_name == "sqlite":
        stmt = sqlite.insert(ledger_appointments).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=[ledger_appointments.c.id],
            set_={name: stmt.excluded[name] for name in _MUTABLE_COLUMNS},
        )
    raise NotImplementedError(f"Ledger upsert not supported for dialect {dialect_name}")


class SqlCountryLedger:
    """Ledger of processed appointments for one jurisdiction."""

    def __init__(self, country_iso: str, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize ledger for ``country_iso``."""
        self.country_iso = validate_country(country_iso)
        self.session_factory = session_factory

    async def upsert(self, appointment: Appointment) -> None:
        """
        Write the appointment keyed by id.

        Redelivered or duplicated messages update the existing row instead of
        inserting a second one.

        Args:
            appointment: Appointment for this ledger's jurisdiction
        """
        async with translate_database_errors(
            "ledger_upsert", appointment_id=appointment.id, country_iso=self.country_iso
        ):
            async with self.session_factory() as session:
                dialect_name = session.bind.dialect.name
                stmt = build_upsert(dialect_name, appointment_to_values(appointment))
                await session.execute(stmt)
                await session.commit()

        logger.debug(
            "ledger_upserted",
            appointment_id=appointment.id,
            country_iso=self.country_iso,
        )

    async def count(self, appointment_id: str) -> int:
        """Number of ledger rows for an appointment id (0 or 1)."""
        stmt = select(ledger_appointments.c.id).where(ledger_appointments.c.id == appointment_id)

        async with translate_database_errors("ledger_count", appointment_id=appointment_id):
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return len(result.fetchall())


class SqlScheduleDirectory:
    """Schedule lookup for one jurisdiction."""

    def __init__(self, country_iso: str, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize directory for ``country_iso``."""
        self.country_iso = validate_country(country_iso)
        self.session_factory = session_factory

    async def find(self, schedule_id: int, country_iso: str) -> Schedule | None:
        """
        Look up a schedule by (id, country).

        Args:
            schedule_id: Schedule ID
            country_iso: Jurisdiction code

        Returns:
            The schedule, or None if it does not exist

        Raises:
            TransientInfrastructureException: If the directory is unreachable
        """
        stmt = select(schedules).where(
            and_(
                schedules.c.id == schedule_id,
                schedules.c.country_iso == country_iso,
            )
        )

        async with translate_database_errors(
            "schedule_find", schedule_id=schedule_id, country_iso=country_iso
        ):
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                row = result.fetchone()

        if row is None:
            return None

        data = row._mapping
        return Schedule(
            id=data["id"],
            center_id=data["center_id"],
            specialty_id=data["specialty_id"],
            medic_id=data["medic_id"],
            date=data["date"],
            country_iso=data["country_iso"],
        )
