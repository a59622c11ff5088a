"""Dependency container built once per process.

The API lifespan and the worker entry points each build one ``Container`` at
startup and hand it to the handlers by reference. Nothing here is stored in a
module global.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import redis.asyncio as redis
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from app.config import Settings
from app.core.clock import Clock, SystemClock
from app.core.redis_client import check_redis_connection, create_redis_client
from app.database import check_database_connection, create_engine, create_session_factory
from app.messaging.routing import RoutingTable
from app.messaging.streams import RedisEventBus, RedisMessageBroker
from app.repositories.appointment_repository import SqlAppointmentRepository
from app.repositories.country_repository import SqlCountryLedger, SqlScheduleDirectory
from app.services.completion_listener import CompletionListener
from app.services.country_processor import CountryProcessor
from app.services.intake_service import IntakeService
from app.services.jurisdictions import CountryBundle, JurisdictionRegistry
from app.services.ports import AppointmentStore, MessageBroker

logger = structlog.get_logger(__name__)

HealthCheck = Callable[[], Awaitable[bool]]


@dataclass
class Container:
    """Long-lived collaborators shared by every invocation in a process."""

    settings: Settings
    clock: Clock
    appointment_store: AppointmentStore
    message_broker: MessageBroker
    jurisdictions: JurisdictionRegistry
    health_checks: dict[str, HealthCheck] = field(default_factory=dict)
    engines: list[AsyncEngine] = field(default_factory=list)
    redis_client: redis.Redis | None = None

    @classmethod
    def build(cls, settings: Settings, clock: Clock | None = None) -> "Container":
        """
        Wire production adapters from settings.

        Args:
            settings: Application settings
            clock: Time source, system clock by default

        Returns:
            Ready-to-use container

        Raises:
            UnsupportedJurisdictionException: If a configured country is not supported
        """
        redis_client = create_redis_client(settings)
        event_bus = RedisEventBus(
            redis_client, settings.stream_prefix, max_len=settings.stream_max_len
        )

        store_engine = create_engine(settings.database_url, settings)
        engines = [store_engine]

        bundles = {}
        for code, url in settings.country_database_urls.items():
            engine = create_engine(url, settings)
            engines.append(engine)
            session_factory = create_session_factory(engine)
            bundles[code] = CountryBundle(
                country_iso=code,
                ledger=SqlCountryLedger(code, session_factory),
                schedules=SqlScheduleDirectory(code, session_factory),
                event_bus=event_bus,
            )
        jurisdictions = JurisdictionRegistry(bundles)
        if jurisdictions.missing:
            logger.warning("jurisdictions_not_configured", countries=jurisdictions.missing)

        broker = RedisMessageBroker(
            redis_client,
            RoutingTable.for_countries(jurisdictions.countries),
            settings.stream_prefix,
            max_len=settings.stream_max_len,
        )

        logger.info(
            "container_built",
            environment=settings.environment,
            jurisdictions=jurisdictions.countries,
        )
        return cls(
            settings=settings,
            clock=clock or SystemClock(),
            appointment_store=SqlAppointmentRepository(create_session_factory(store_engine)),
            message_broker=broker,
            jurisdictions=jurisdictions,
            health_checks={
                "database": lambda: check_database_connection(store_engine),
                "redis": lambda: check_redis_connection(redis_client),
            },
            engines=engines,
            redis_client=redis_client,
        )

    def intake_service(self) -> IntakeService:
        """Intake bound to this container's collaborators."""
        return IntakeService(self.appointment_store, self.message_broker, self.clock)

    def country_processor(self, country_iso: str) -> CountryProcessor:
        """Country processor for one configured jurisdiction."""
        return CountryProcessor(self.jurisdictions.get(country_iso))

    def completion_listener(self) -> CompletionListener:
        """Completion listener bound to the appointment store."""
        return CompletionListener(
            self.appointment_store,
            self.clock,
            grace_seconds=self.settings.completion_grace_seconds,
        )

    async def check_health(self) -> dict[str, bool]:
        """Run every registered dependency check."""
        return {name: await check() for name, check in self.health_checks.items()}

    async def close(self) -> None:
        """Release pooled connections."""
        for engine in self.engines:
            await engine.dispose()
        if self.redis_client is not None:
            await self.redis_client.aclose()
        logger.info("container_closed")
