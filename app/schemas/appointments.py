"""Appointment schemas for request/response validation."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from app.domain.appointment import Appointment, AppointmentStatus


class AppointmentCreate(BaseModel):
    """Schema for submitting a new appointment.

    Only presence is checked here. Values reach the entity exactly as sent so
    that a boolean or numeric string is rejected there instead of being coerced.
    """

    model_config = ConfigDict(populate_by_name=True)

    insured_id: Any = Field(..., alias="insuredId", examples=["12345"])
    schedule_id: Any = Field(..., alias="scheduleId", examples=[678])
    country_iso: Any = Field(..., alias="countryISO", examples=["PE"])


class AppointmentAccepted(BaseModel):
    """Acknowledgment returned while fulfillment runs asynchronously."""

    id: str
    status: Literal["success"] = "success"
    message: str


class AppointmentResponse(BaseModel):
    """Full appointment snapshot."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    insured_id: str = Field(..., alias="insuredId")
    schedule_id: int = Field(..., alias="scheduleId")
    country_iso: str = Field(..., alias="countryISO")
    status: AppointmentStatus
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    @classmethod
    def from_entity(cls, appointment: Appointment) -> "AppointmentResponse":
        """Build from a domain entity."""
        return cls.model_validate(appointment.to_snapshot())


class AppointmentListResponse(BaseModel):
    """Schema for appointment list response."""

    count: int
    items: list[AppointmentResponse]
