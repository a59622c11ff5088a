"""Collaborator interfaces the saga services depend on.

Production adapters live in ``app.repositories`` and ``app.messaging``; tests
supply their own doubles.
"""

from datetime import datetime
from typing import Protocol

from app.domain.appointment import Appointment, AppointmentStatus, Schedule


class AppointmentStore(Protocol):
    """Authoritative keyed record of booking status."""

    async def save(self, appointment: Appointment) -> Appointment: ...

    async def get(self, appointment_id: str) -> Appointment | None: ...

    async def find_by_insured_id(self, insured_id: str) -> list[Appointment]: ...

    async def set_status(
        self,
        appointment_id: str,
        status: AppointmentStatus,
        now: datetime,
    ) -> Appointment | None:
        """Overwrite status and updatedAt; None if the id is unknown."""
        ...


class ScheduleDirectory(Protocol):
    """Read-only per-jurisdiction schedule lookup."""

    async def find(self, schedule_id: int, country_iso: str) -> Schedule | None: ...


class CountryLedger(Protocol):
    """Per-jurisdiction replica of processed appointments."""

    async def upsert(self, appointment: Appointment) -> None: ...


class MessageBroker(Protocol):
    """Publishes Created events to the per-jurisdiction lanes."""

    async def publish_created(self, appointment: Appointment) -> list[str]: ...


class EventBus(Protocol):
    """Publishes Completed events."""

    async def publish_completed(self, appointment: Appointment) -> str: ...
