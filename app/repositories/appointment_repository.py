"""Appointment store backed by SQLAlchemy Core."""

from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import and_, case, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import InvalidStatusTransitionException
from app.database import translate_database_errors
from app.domain.appointment import Appointment, AppointmentStatus
from app.models.appointments import appointments

logger = structlog.get_logger(__name__)


def row_to_appointment(row: Any) -> Appointment:
    """Materialize (and so validate) an appointment from a table row."""
    data = row._mapping
    return Appointment(
        id=data["id"],
        insured_id=data["insured_id"],
        schedule_id=data["schedule_id"],
        country_iso=data["country_iso"],
        status=data["status"],
        created_at=data["created_at"],
        updated_at=data["updated_at"],
    )


def appointment_to_values(appointment: Appointment) -> dict[str, Any]:
    """Column values for an appointment row."""
    return {
        "id": appointment.id,
        "insured_id": appointment.insured_id,
        "schedule_id": appointment.schedule_id,
        "country_iso": appointment.country_iso,
        "status": appointment.status.value,
        "created_at": appointment.created_at,
        "updated_at": appointment.updated_at,
    }


class SqlAppointmentRepository:
    """Repository for the appointments table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize repository with a session factory."""
        self.session_factory = session_factory

    async def save(self, appointment: Appointment) -> Appointment:
        """
        Insert a new appointment.

        Args:
            appointment: Validated appointment entity

        Returns:
            The stored appointment
        """
        stmt = insert(appointments).values(**appointment_to_values(appointment))

        async with translate_database_errors("appointment_save", appointment_id=appointment.id):
            async with self.session_factory() as session:
                await session.execute(stmt)
                await session.commit()

        return appointment

    async def get(self, appointment_id: str) -> Appointment | None:
        """Get appointment by ID."""
        stmt = select(appointments).where(appointments.c.id == appointment_id)

        async with translate_database_errors("appointment_get", appointment_id=appointment_id):
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                row = result.fetchone()

        return row_to_appointment(row) if row else None

    async def find_by_insured_id(self, insured_id: str) -> list[Appointment]:
        """
        List every appointment of an insured person, oldest first.

        Args:
            insured_id: 5-digit insured identifier

        Returns:
            Appointments, possibly empty
        """
        stmt = (
            select(appointments)
            .where(appointments.c.insured_id == insured_id)
            .order_by(appointments.c.created_at.asc())
        )

        async with translate_database_errors("appointment_find_by_insured_id"):
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = result.fetchall()

        return [row_to_appointment(row) for row in rows]

    async def set_status(
        self,
        appointment_id: str,
        status: AppointmentStatus,
        now: datetime,
    ) -> Appointment | None:
        """
        Overwrite the status of an appointment without a version check.

        Re-applying the current status only moves updated_at forward. A record
        in a different terminal status is left untouched.

        Args:
            appointment_id: Appointment ID
            status: Target terminal status
            now: Transition time

        Returns:
            Updated appointment, or None if the id is unknown

        Raises:
            InvalidStatusTransitionException: If the record is in another terminal status
        """
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.status.in_([AppointmentStatus.PENDING.value, status.value]),
                )
            )
            .values(
                status=status.value,
                updated_at=case(
                    (appointments.c.updated_at > now, appointments.c.updated_at),
                    else_=now,
                ),
            )
        )

        async with translate_database_errors("appointment_set_status", appointment_id=appointment_id):
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()

                row = (
                    await session.execute(
                        select(appointments).where(appointments.c.id == appointment_id)
                    )
                ).fetchone()

        if row is None:
            return None

        appointment = row_to_appointment(row)
        if result.rowcount == 0 and appointment.status is not status:
            raise InvalidStatusTransitionException(
                f"Appointment {appointment_id} is {appointment.status.value} "
                f"and cannot become {status.value}"
            )
        return appointment
