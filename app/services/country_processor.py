"""Country processor: validates a Created event and records it in the ledger."""

import structlog

from app.core.exceptions import AppException, MisroutedMessageException, NotFoundException
from app.domain.appointment import Appointment
from app.messaging.routing import ensure_lane
from app.messaging.streams import Message
from app.services.jurisdictions import CountryBundle

logger = structlog.get_logger(__name__)


class CountryProcessor:
    """Processes Created events for one jurisdiction lane."""

    def __init__(self, bundle: CountryBundle):
        """Initialize processor with the jurisdiction's collaborators."""
        self.country_iso = bundle.country_iso
        self.ledger = bundle.ledger
        self.schedules = bundle.schedules
        self.event_bus = bundle.event_bus

    async def handle(self, message: Message) -> Appointment:
        """
        Process one delivery of a Created event.

        Safe to run more than once for the same appointment: the ledger write
        is keyed by id and the completion it triggers is idempotent.

        Args:
            message: Created event delivered to this lane

        Returns:
            The processed appointment

        Raises:
            MisroutedMessageException: If the message belongs to another lane
            ValidationException: If the body is not a valid appointment
            NotFoundException: If the referenced schedule does not exist
            TransientInfrastructureException: If a store or the broker is unavailable
        """
        log = logger.bind(
            country_iso=self.country_iso,
            message_id=message.message_id,
            delivery_count=message.delivery_count,
        )

        try:
            ensure_lane(self.country_iso, message.attributes)
            appointment = Appointment.from_json(message.body)
            if appointment.country_iso != self.country_iso:
                raise MisroutedMessageException(
                    f"Invalid country in message. Expected: {self.country_iso}, "
                    f"Received: {appointment.country_iso}"
                )

            log = log.bind(appointment_id=appointment.id, schedule_id=appointment.schedule_id)
            await self.process(appointment)
        except AppException as e:
            log.error(
                "country_appointment_failed",
                error=e.message,
                error_type=type(e).__name__,
                retryable=e.retryable,
            )
            raise

        log.info("country_appointment_processed")
        return appointment

    async def process(self, appointment: Appointment) -> None:
        """Validate against the schedule directory, write the ledger, emit Completed."""
        schedule = await self.schedules.find(appointment.schedule_id, appointment.country_iso)
        if schedule is None:
            raise NotFoundException(f"Schedule with id {appointment.schedule_id} not found")

        await self.ledger.upsert(appointment)
        await self.event_bus.publish_completed(appointment)
