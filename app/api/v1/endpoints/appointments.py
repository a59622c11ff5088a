"""Appointment endpoints."""

from fastapi import APIRouter, status

from app.dependencies import Intake
from app.schemas.appointments import (
    AppointmentAccepted,
    AppointmentCreate,
    AppointmentListResponse,
)

router = APIRouter()


@router.post(
    "",
    response_model=AppointmentAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["Appointments"],
    summary="Submit appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    intake: Intake,
) -> AppointmentAccepted:
    """
    Submit a booking request.

    The appointment is stored as pending and handed to the processing lane of
    its country; completion happens asynchronously.

    Args:
        data: Appointment request
        intake: Intake service

    Returns:
        Acknowledgment with the assigned appointment id
    """
    return await intake.submit(data.insured_id, data.schedule_id, data.country_iso)


@router.get(
    "/{insured_id}",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments by insured ID",
)
async def list_appointments_by_insured_id(
    insured_id: str,
    intake: Intake,
) -> AppointmentListResponse:
    """
    List every appointment of an insured person.

    Args:
        insured_id: 5-digit insured identifier
        intake: Intake service

    Returns:
        Count and appointment snapshots
    """
    return await intake.list_by_insured_id(insured_id)
