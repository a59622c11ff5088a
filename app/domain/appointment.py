"""Appointment and schedule entities.

Both entities validate themselves every time they are materialized: at
creation, when read back from a store row and when rebuilt from a message
body. A corrupted or tampered record is therefore rejected at every hop of the
saga, not only where it was first written.
"""

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from app.core.clock import Clock
from app.core.exceptions import (
    InvalidStatusTransitionException,
    UnsupportedJurisdictionException,
    ValidationException,
)

SUPPORTED_COUNTRIES: frozenset[str] = frozenset({"PE", "CL"})

INSURED_ID_LENGTH = 5

SNAPSHOT_FIELDS = (
    "id",
    "insuredId",
    "scheduleId",
    "countryISO",
    "status",
    "createdAt",
    "updatedAt",
)


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Completed and failed appointments never change status again."""
        return self is not AppointmentStatus.PENDING


def validate_country(country_iso: Any) -> str:
    """Return ``country_iso`` if it is a supported jurisdiction code."""
    if not isinstance(country_iso, str) or country_iso not in SUPPORTED_COUNTRIES:
        supported = ", ".join(sorted(SUPPORTED_COUNTRIES))
        raise UnsupportedJurisdictionException(
            f"CountryISO must be one of {supported}, got {country_iso!r}"
        )
    return country_iso


def validate_insured_id(insured_id: Any) -> str:
    """Return ``insured_id`` if it is a 5-digit string."""
    if (
        not isinstance(insured_id, str)
        or len(insured_id) != INSURED_ID_LENGTH
        or not (insured_id.isascii() and insured_id.isdigit())
    ):
        raise ValidationException("InsuredId must be a 5-digit string")
    return insured_id


def _positive_int(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationException(f"{label} must be a positive integer")
    return value


def _parse_timestamp(value: Any, label: str) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError as e:
            raise ValidationException(f"{label} must be an ISO-8601 timestamp") from e
    else:
        raise ValidationException(f"{label} must be an ISO-8601 timestamp")

    # Some stores hand back naive datetimes; everything is written as UTC.
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class Appointment:
    """A booking request moving through the fulfillment saga."""

    def __init__(
        self,
        *,
        id: str,
        insured_id: str,
        schedule_id: int,
        country_iso: str,
        status: AppointmentStatus | str,
        created_at: datetime | str,
        updated_at: datetime | str,
    ):
        """Build and validate an appointment."""
        if not isinstance(id, str) or not id:
            raise ValidationException("Appointment id must be a non-empty string")
        try:
            status = AppointmentStatus(status)
        except ValueError as e:
            raise ValidationException(f"Unknown appointment status {status!r}") from e

        self.id = id
        self.insured_id = validate_insured_id(insured_id)
        self.schedule_id = _positive_int(schedule_id, "ScheduleId")
        self.country_iso = validate_country(country_iso)
        self.status = status
        self.created_at = _parse_timestamp(created_at, "createdAt")
        self.updated_at = _parse_timestamp(updated_at, "updatedAt")

        if self.updated_at < self.created_at:
            raise ValidationException("updatedAt must not be earlier than createdAt")

    @classmethod
    def create(
        cls,
        insured_id: str,
        schedule_id: int,
        country_iso: str,
        clock: Clock,
    ) -> "Appointment":
        """Create a new pending appointment with a freshly assigned id."""
        now = clock.now()
        return cls(
            id=str(uuid4()),
            insured_id=insured_id,
            schedule_id=schedule_id,
            country_iso=country_iso,
            status=AppointmentStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def from_snapshot(cls, data: Any) -> "Appointment":
        """Rebuild an appointment from its camelCase snapshot."""
        if not isinstance(data, Mapping):
            raise ValidationException("Appointment snapshot must be a JSON object")

        missing = [name for name in SNAPSHOT_FIELDS if name not in data]
        if missing:
            raise ValidationException(
                f"Appointment snapshot is missing fields: {', '.join(missing)}"
            )

        return cls(
            id=data["id"],
            insured_id=data["insuredId"],
            schedule_id=data["scheduleId"],
            country_iso=data["countryISO"],
            status=data["status"],
            created_at=data["createdAt"],
            updated_at=data["updatedAt"],
        )

    @classmethod
    def from_json(cls, body: str | bytes) -> "Appointment":
        """Rebuild an appointment from a JSON message body."""
        try:
            data = json.loads(body)
        except (TypeError, ValueError) as e:
            raise ValidationException("Appointment message body is not valid JSON") from e
        return cls.from_snapshot(data)

    def to_snapshot(self) -> dict[str, Any]:
        """Denormalized copy of every field, safe to embed in a message."""
        return {
            "id": self.id,
            "insuredId": self.insured_id,
            "scheduleId": self.schedule_id,
            "countryISO": self.country_iso,
            "status": self.status.value,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    def to_json(self) -> str:
        """Serialize the snapshot as a JSON message body."""
        return json.dumps(self.to_snapshot())

    def mark_as_completed(self, now: datetime) -> bool:
        """Move a pending appointment to completed.

        Returns:
            True if the status changed, False if it was already completed
        """
        return self._transition(AppointmentStatus.COMPLETED, now)

    def mark_as_failed(self, now: datetime) -> bool:
        """Move a pending appointment to failed.

        Returns:
            True if the status changed, False if it was already failed
        """
        return self._transition(AppointmentStatus.FAILED, now)

    def _transition(self, target: AppointmentStatus, now: datetime) -> bool:
        if self.status is target:
            return False
        if self.status.is_terminal:
            raise InvalidStatusTransitionException(
                f"Appointment {self.id} is {self.status.value} and cannot become {target.value}"
            )

        self.status = target
        # updatedAt never moves backwards, even if the clock does
        self.updated_at = max(self.updated_at, _parse_timestamp(now, "now"))
        return True

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Appointment):
            return NotImplemented
        return self.to_snapshot() == other.to_snapshot()

    def __repr__(self) -> str:
        return (
            f"Appointment(id={self.id!r}, insured_id={self.insured_id!r}, "
            f"country_iso={self.country_iso!r}, status={self.status.value!r})"
        )


class Schedule:
    """Read-only slot record owned by the external scheduling system."""

    def __init__(
        self,
        *,
        id: int,
        center_id: int,
        specialty_id: int,
        medic_id: int,
        date: datetime | str,
        country_iso: str,
    ):
        self.id = _positive_int(id, "Schedule ID")
        self.center_id = _positive_int(center_id, "Center ID")
        self.specialty_id = _positive_int(specialty_id, "Specialty ID")
        self.medic_id = _positive_int(medic_id, "Medic ID")
        self.date = _parse_timestamp(date, "Schedule date")
        self.country_iso = validate_country(country_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "centerId": self.center_id,
            "specialtyId": self.specialty_id,
            "medicId": self.medic_id,
            "date": self.date.isoformat(),
            "countryISO": self.country_iso,
        }
