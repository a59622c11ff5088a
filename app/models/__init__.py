"""Database models."""

from app.models.appointments import appointments
from app.models.country import ledger_appointments, schedules

__all__ = [
    "appointments",
    "ledger_appointments",
    "schedules",
]
