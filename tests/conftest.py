from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from itertools import count

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.container import Container
from app.core.exceptions import InvalidStatusTransitionException, TransientInfrastructureException
from app.domain.appointment import Appointment, AppointmentStatus, Schedule
from app.main import create_app
from app.messaging.routing import RoutingTable, routing_attributes
from app.messaging.streams import Message
from app.schemas.events import CompletedEnvelope
from app.services.jurisdictions import CountryBundle, JurisdictionRegistry

START = datetime(2025, 3, 10, 9, 0, tzinfo=UTC)


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float = 1) -> datetime:
        self.current += timedelta(seconds=seconds)
        return self.current


class InMemoryAppointmentStore:
    """Appointment store double with the same overwrite semantics as the SQL one."""

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.fail_with: Exception | None = None
        self.set_status_calls = 0

    async def save(self, appointment: Appointment) -> Appointment:
        if self.fail_with:
            raise self.fail_with
        self.rows[appointment.id] = appointment.to_snapshot()
        return appointment

    async def get(self, appointment_id: str) -> Appointment | None:
        row = self.rows.get(appointment_id)
        return Appointment.from_snapshot(row) if row else None

    async def find_by_insured_id(self, insured_id: str) -> list[Appointment]:
        return [
            Appointment.from_snapshot(row)
            for row in self.rows.values()
            if row["insuredId"] == insured_id
        ]

    async def set_status(
        self, appointment_id: str, status: AppointmentStatus, now: datetime
    ) -> Appointment | None:
        self.set_status_calls += 1
        if self.fail_with:
            raise self.fail_with
        row = self.rows.get(appointment_id)
        if row is None:
            return None
        if row["status"] not in (AppointmentStatus.PENDING.value, status.value):
            raise InvalidStatusTransitionException(
                f"Appointment {appointment_id} is {row['status']}"
            )
        row["status"] = status.value
        row["updatedAt"] = max(datetime.fromisoformat(row["updatedAt"]), now).isoformat()
        return Appointment.from_snapshot(row)


class InMemoryScheduleDirectory:
    def __init__(self, schedules: list[Schedule] | None = None):
        self.schedules = {(s.id, s.country_iso): s for s in schedules or []}
        self.unavailable = False

    async def find(self, schedule_id: int, country_iso: str) -> Schedule | None:
        if self.unavailable:
            raise TransientInfrastructureException("Database unavailable during schedule_find")
        return self.schedules.get((schedule_id, country_iso))


class InMemoryLedger:
    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.writes = 0

    async def upsert(self, appointment: Appointment) -> None:
        self.writes += 1
        self.rows[appointment.id] = appointment.to_snapshot()


class RecordingBroker:
    """Broker double that routes by attribute like the Redis broker."""

    def __init__(self, routing: RoutingTable | None = None):
        self.routing = routing or RoutingTable.for_countries(["PE", "CL"])
        self.messages: list[tuple[str, Message]] = []
        self.fail_with: Exception | None = None
        self._ids = count(1)

    async def publish_created(self, appointment: Appointment) -> list[str]:
        if self.fail_with:
            raise self.fail_with
        attributes = routing_attributes(appointment.country_iso)
        ids = []
        for lane in self.routing.lanes_for(attributes):
            message_id = f"{next(self._ids)}-0"
            self.messages.append(
                (lane, Message(message_id, appointment.to_json(), dict(attributes)))
            )
            ids.append(message_id)
        return ids

    def lane(self, country_iso: str) -> list[Message]:
        return [message for lane, message in self.messages if lane == country_iso]


class RecordingEventBus:
    def __init__(self):
        self.envelopes: list[str] = []

    async def publish_completed(self, appointment: Appointment) -> str:
        self.envelopes.append(CompletedEnvelope(detail=appointment.to_snapshot()).to_json())
        return f"{len(self.envelopes)}-0"


def _make_schedule(schedule_id: int = 678, country_iso: str = "PE") -> Schedule:
    return Schedule(
        id=schedule_id,
        center_id=1,
        specialty_id=2,
        medic_id=3,
        date="2025-04-01T10:00:00+00:00",
        country_iso=country_iso,
    )


def _make_appointment(**overrides) -> Appointment:
    values = {
        "id": "123e4567-e89b-12d3-a456-426614174000",
        "insured_id": "12345",
        "schedule_id": 678,
        "country_iso": "PE",
        "status": AppointmentStatus.PENDING,
        "created_at": START,
        "updated_at": START,
    }
    values.update(overrides)
    return Appointment(**values)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path}/store.db",
        COUNTRY_DATABASE_URLS={
            "PE": f"sqlite+aiosqlite:///{tmp_path}/pe.db",
            "CL": f"sqlite+aiosqlite:///{tmp_path}/cl.db",
        },
        METRICS_ENABLED=False,
        LOG_FORMAT="console",
        COMPLETION_GRACE_SECONDS=0,
    )


@pytest.fixture
def store() -> InMemoryAppointmentStore:
    return InMemoryAppointmentStore()


@pytest.fixture
def broker() -> RecordingBroker:
    return RecordingBroker()


@pytest.fixture
def event_bus() -> RecordingEventBus:
    return RecordingEventBus()


@pytest.fixture
def ledgers() -> dict[str, InMemoryLedger]:
    return {"PE": InMemoryLedger(), "CL": InMemoryLedger()}


@pytest.fixture
def directories() -> dict[str, InMemoryScheduleDirectory]:
    return {
        "PE": InMemoryScheduleDirectory([_make_schedule(678, "PE")]),
        "CL": InMemoryScheduleDirectory([_make_schedule(501, "CL")]),
    }


@pytest.fixture
def jurisdictions(ledgers, directories, event_bus) -> JurisdictionRegistry:
    return JurisdictionRegistry(
        {
            code: CountryBundle(
                country_iso=code,
                ledger=ledgers[code],
                schedules=directories[code],
                event_bus=event_bus,
            )
            for code in ("PE", "CL")
        }
    )


@pytest.fixture
def container(settings, clock, store, broker, jurisdictions) -> Container:
    return Container(
        settings=settings,
        clock=clock,
        appointment_store=store,
        message_broker=broker,
        jurisdictions=jurisdictions,
    )


@pytest_asyncio.fixture
async def client(container: Container) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    app = create_app(container=container)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def make_appointment():
    """Factory for valid appointments; keyword overrides replace single fields."""
    return _make_appointment


@pytest.fixture
def make_schedule():
    """Factory for schedules."""
    return _make_schedule
