"""Completion listener: closes the saga in the appointment store."""

import asyncio
from typing import Any

import structlog

from app.core.clock import Clock
from app.core.exceptions import AppException, NotFoundException, ValidationException
from app.domain.appointment import Appointment, AppointmentStatus
from app.messaging.streams import Message
from app.schemas.events import parse_completed_event
from app.services.ports import AppointmentStore

logger = structlog.get_logger(__name__)


class CompletionListener:
    """Marks appointments completed when their Completed event arrives."""

    def __init__(self, store: AppointmentStore, clock: Clock, grace_seconds: float = 1.0):
        """
        Initialize listener.

        Args:
            store: Appointment store
            clock: Time source for updatedAt
            grace_seconds: How long to wait for a not-yet-visible record before
                giving up on it
        """
        self.store = store
        self.clock = clock
        self.grace_seconds = grace_seconds

    async def handle_message(self, message: Message) -> Appointment:
        """Stream-consumer entry point."""
        return await self.handle(message.body)

    async def handle(self, payload: Any) -> Appointment:
        """
        Complete the appointment named in a Completed event.

        Args:
            payload: Completed event, bare or wrapped in one transport envelope

        Returns:
            The completed appointment

        Raises:
            ValidationException: If the event is malformed
            NotFoundException: If the appointment is still unknown after the grace period
        """
        detail = parse_completed_event(payload)
        appointment_id = detail.get("id")
        if not isinstance(appointment_id, str) or not appointment_id:
            raise ValidationException("Completed event does not carry an appointment id")

        log = logger.bind(appointment_id=appointment_id)

        try:
            appointment = await self._complete(appointment_id)
            if appointment is None:
                # The intake write may not be visible yet
                log.warning("appointment_not_visible_yet", grace_seconds=self.grace_seconds)
                await asyncio.sleep(self.grace_seconds)
                appointment = await self._complete(appointment_id)

            if appointment is None:
                raise NotFoundException(f"Appointment with id {appointment_id} not found")
        except AppException as e:
            log.error("appointment_completion_failed", error=e.message, error_type=type(e).__name__)
            raise

        log.info("appointment_completed", updated_at=appointment.updated_at.isoformat())
        return appointment

    async def _complete(self, appointment_id: str) -> Appointment | None:
        return await self.store.set_status(
            appointment_id, AppointmentStatus.COMPLETED, self.clock.now()
        )
