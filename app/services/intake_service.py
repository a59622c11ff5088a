"""Intake: accepts booking requests and starts the saga."""

import structlog

from app.core.clock import Clock
from app.core.exceptions import AppException, BadRequestException, ValidationException
from app.domain.appointment import Appointment, validate_insured_id
from app.schemas.appointments import (
    AppointmentAccepted,
    AppointmentListResponse,
    AppointmentResponse,
)
from app.services.ports import AppointmentStore, MessageBroker

logger = structlog.get_logger(__name__)

ACCEPTED_MESSAGE = "Appointment scheduling is in progress"


class IntakeService:
    """Service for submitting and querying appointments."""

    def __init__(self, store: AppointmentStore, broker: MessageBroker, clock: Clock):
        """Initialize service with its collaborators."""
        self.store = store
        self.broker = broker
        self.clock = clock

    async def submit(
        self,
        insured_id: str,
        schedule_id: int,
        country_iso: str,
    ) -> AppointmentAccepted:
        """
        Create a pending appointment and publish its Created event.

        Fulfillment continues asynchronously; this returns as soon as the
        event is published.

        Args:
            insured_id: 5-digit insured identifier
            schedule_id: Schedule reference
            country_iso: Jurisdiction code

        Returns:
            Acknowledgment with the assigned appointment id

        Raises:
            ValidationException: If the request does not form a valid appointment
            TransientInfrastructureException: If the store or broker is unavailable
        """
        appointment = Appointment.create(insured_id, schedule_id, country_iso, self.clock)
        log = logger.bind(appointment_id=appointment.id, country_iso=country_iso)

        try:
            await self.store.save(appointment)
        except AppException as e:
            log.error("appointment_save_failed", error=e.message)
            raise

        try:
            await self.broker.publish_created(appointment)
        except Exception as e:
            # No compensation: the pending record stays behind for reconciliation
            log.error(
                "appointment_orphaned_pending",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        log.info("appointment_submitted", schedule_id=schedule_id)
        return AppointmentAccepted(id=appointment.id, status="success", message=ACCEPTED_MESSAGE)

    async def list_by_insured_id(self, insured_id: str) -> AppointmentListResponse:
        """
        List appointments of an insured person.

        Args:
            insured_id: 5-digit insured identifier

        Returns:
            Count and snapshots; empty when there are none

        Raises:
            BadRequestException: If the insured id is malformed
        """
        try:
            validate_insured_id(insured_id)
        except ValidationException as e:
            raise BadRequestException(e.message) from e

        items = await self.store.find_by_insured_id(insured_id)
        return AppointmentListResponse(
            count=len(items),
            items=[AppointmentResponse.from_entity(item) for item in items],
        )
