"""Tests for appointment endpoints."""

import pytest
from httpx import AsyncClient

from app.core.exceptions import TransientInfrastructureException
from app.middleware.error_handler import MISSING_FIELDS_MESSAGE

APPOINTMENTS_URL = "/api/v1/appointments"


@pytest.fixture
def appointment_request() -> dict:
    return {"insuredId": "12345", "scheduleId": 678, "countryISO": "PE"}


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test health check endpoint."""
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data


@pytest.mark.asyncio
async def test_detailed_health_lists_jurisdictions(client: AsyncClient) -> None:
    """Test detailed health check reports configured countries."""
    response = await client.get("/api/v1/health/detailed")
    assert response.status_code == 200
    data = response.json()
    assert data["jurisdictions"] == ["CL", "PE"]
    assert data["dependencies"] == {}


@pytest.mark.asyncio
async def test_create_appointment(
    client: AsyncClient,
    appointment_request: dict,
    store,
    broker,
) -> None:
    """Test submitting an appointment is accepted and routed."""
    response = await client.post(APPOINTMENTS_URL, json=appointment_request)

    assert response.status_code == 202
    data = response.json()
    assert data["status"] == "success"
    assert data["message"] == "Appointment scheduling is in progress"
    assert data["id"] in store.rows
    assert len(broker.lane("PE")) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("missing", ["insuredId", "scheduleId", "countryISO"])
async def test_missing_field_is_bad_request(
    client: AsyncClient,
    appointment_request: dict,
    store,
    missing: str,
) -> None:
    """Test a missing field is reported as 400."""
    del appointment_request[missing]

    response = await client.post(APPOINTMENTS_URL, json=appointment_request)

    assert response.status_code == 400
    assert response.json()["message"] == MISSING_FIELDS_MESSAGE
    assert store.rows == {}


@pytest.mark.asyncio
async def test_non_object_body_is_unprocessable(client: AsyncClient, store) -> None:
    """Test a body that is not a JSON object is rejected before the service runs."""
    response = await client.post(APPOINTMENTS_URL, json=["12345", 678, "PE"])

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"
    assert store.rows == {}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field,value,message",
    [
        ("insuredId", "1234", "InsuredId must be a 5-digit string"),
        ("countryISO", "BR", "CountryISO must be one of CL, PE, got 'BR'"),
        ("scheduleId", 0, "ScheduleId must be a positive integer"),
        ("scheduleId", True, "ScheduleId must be a positive integer"),
        ("scheduleId", "678", "ScheduleId must be a positive integer"),
        ("scheduleId", 678.0, "ScheduleId must be a positive integer"),
        ("scheduleId", "tomorrow", "ScheduleId must be a positive integer"),
        ("insuredId", 12345, "InsuredId must be a 5-digit string"),
        ("countryISO", ["PE"], "CountryISO must be one of CL, PE, got ['PE']"),
    ],
)
async def test_invalid_appointment_data(
    client: AsyncClient,
    appointment_request: dict,
    store,
    broker,
    field: str,
    value,
    message: str,
) -> None:
    """Test values are validated uncoerced and failures have no side effects."""
    appointment_request[field] = value

    response = await client.post(APPOINTMENTS_URL, json=appointment_request)

    assert response.status_code == 500
    assert response.json()["message"] == message
    assert store.rows == {}
    assert broker.messages == []


@pytest.mark.asyncio
async def test_list_appointments(
    client: AsyncClient,
    appointment_request: dict,
) -> None:
    """Test listing appointments of an insured person."""
    await client.post(APPOINTMENTS_URL, json=appointment_request)
    await client.post(APPOINTMENTS_URL, json={**appointment_request, "countryISO": "CL"})

    response = await client.get(f"{APPOINTMENTS_URL}/12345")

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 2
    assert {item["countryISO"] for item in data["items"]} == {"PE", "CL"}
    assert all(item["status"] == "pending" for item in data["items"])
    assert set(data["items"][0]) == {
        "id",
        "insuredId",
        "scheduleId",
        "countryISO",
        "status",
        "createdAt",
        "updatedAt",
    }


@pytest.mark.asyncio
async def test_list_appointments_empty(client: AsyncClient) -> None:
    response = await client.get(f"{APPOINTMENTS_URL}/99999")

    assert response.status_code == 200
    assert response.json() == {"count": 0, "items": []}


@pytest.mark.asyncio
async def test_list_appointments_invalid_insured_id(client: AsyncClient) -> None:
    response = await client.get(f"{APPOINTMENTS_URL}/12a45")

    assert response.status_code == 400
    assert response.json()["error"] == "BadRequestException"


@pytest.mark.asyncio
async def test_broker_outage_is_service_unavailable(
    client: AsyncClient,
    appointment_request: dict,
    store,
    broker,
) -> None:
    """Test a publish failure returns 503 and leaves the pending record."""
    broker.fail_with = TransientInfrastructureException("Broker unavailable during publish_created")

    response = await client.post(APPOINTMENTS_URL, json=appointment_request)

    assert response.status_code == 503
    assert len(store.rows) == 1


@pytest.mark.asyncio
async def test_request_id_header(client: AsyncClient) -> None:
    response = await client.get("/api/v1/ping", headers={"X-Request-ID": "req-1"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-1"
    assert "X-Process-Time" in response.headers
