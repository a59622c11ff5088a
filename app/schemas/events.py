"""Event envelope schemas."""

import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.core.exceptions import ValidationException

EVENT_SOURCE = "medical-appointment"
COMPLETED_DETAIL_TYPE = "appointment.completed"


class CompletedEnvelope(BaseModel):
    """Event-bus envelope around a Completed appointment snapshot."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = EVENT_SOURCE
    detail_type: str = Field(default=COMPLETED_DETAIL_TYPE, alias="detail-type")
    time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    detail: dict[str, Any]

    @field_validator("detail", mode="before")
    @classmethod
    def parse_detail(cls, v: Any) -> Any:
        """Accept the detail either as an object or as a JSON string."""
        if isinstance(v, str | bytes):
            return json.loads(v)
        return v

    @field_validator("detail_type")
    @classmethod
    def validate_detail_type(cls, v: str) -> str:
        """Only completion events belong on this channel."""
        if v != COMPLETED_DETAIL_TYPE:
            raise ValueError(f"Unexpected detail-type {v!r}")
        return v

    def to_json(self) -> str:
        """Serialize with wire field names."""
        return self.model_dump_json(by_alias=True)


def _load_json(value: Any) -> Any:
    if isinstance(value, str | bytes):
        try:
            return json.loads(value)
        except ValueError as e:
            raise ValidationException("Completed event is not valid JSON") from e
    return value


def parse_completed_event(payload: Any) -> dict[str, Any]:
    """
    Extract the appointment snapshot from a Completed event.

    Accepts the bare envelope, the envelope as a JSON string, or the envelope
    wrapped in one more transport layer under ``body``. The envelope and its
    ``detail-type`` are mandatory; a bare snapshot is rejected.

    Args:
        payload: Raw event

    Returns:
        The snapshot carried in ``detail``

    Raises:
        ValidationException: If the event is malformed or not a completion
    """
    data = _load_json(payload)
    if isinstance(data, dict) and "detail" not in data and "body" in data:
        data = _load_json(data["body"])

    if not isinstance(data, dict):
        raise ValidationException("Completed event must be a JSON object")

    if "detail" not in data:
        raise ValidationException("Completed event has no detail")
    if data.get("detail-type") != COMPLETED_DETAIL_TYPE:
        raise ValidationException(
            f"Completed event has detail-type {data.get('detail-type')!r}, "
            f"expected {COMPLETED_DETAIL_TYPE!r}"
        )

    try:
        envelope = CompletedEnvelope.model_validate(data)
    except (ValidationError, ValueError) as e:
        raise ValidationException(f"Malformed Completed event: {e}") from e
    return envelope.detail
