"""Redis Streams channels for the saga events.

Created events fan out to one stream per jurisdiction lane; Completed events
go to a single stream read by the completion listener.
"""

import json
from dataclasses import dataclass, field
from typing import Any

import redis.asyncio as redis
import structlog

from app.core.redis_client import translate_redis_errors
from app.domain.appointment import Appointment
from app.messaging.routing import RoutingTable, routing_attributes
from app.schemas.events import CompletedEnvelope

logger = structlog.get_logger(__name__)


def created_stream_key(prefix: str, lane: str) -> str:
    """Stream holding Created events for one lane."""
    return f"{prefix}:created:{lane}"


def completed_stream_key(prefix: str) -> str:
    """Stream holding Completed events."""
    return f"{prefix}:completed"


def dead_letter_stream_key(stream_key: str) -> str:
    """Dead-letter stream paired with ``stream_key``."""
    return f"{stream_key}:dlq"


@dataclass
class Message:
    """One delivery of a stream entry."""

    message_id: str
    body: str
    attributes: dict[str, str] = field(default_factory=dict)
    delivery_count: int = 1

    @classmethod
    def from_fields(
        cls,
        message_id: str,
        fields: dict[str, Any],
        delivery_count: int = 1,
    ) -> "Message":
        """Build a message from raw stream fields."""
        raw_attributes = fields.get("attributes") or "{}"
        try:
            attributes = json.loads(raw_attributes)
        except ValueError:
            attributes = {}
        if not isinstance(attributes, dict):
            attributes = {}
        return cls(
            message_id=message_id,
            body=fields.get("body", ""),
            attributes={str(k): str(v) for k, v in attributes.items()},
            delivery_count=delivery_count,
        )

    def to_fields(self) -> dict[str, str]:
        """Stream fields for this message."""
        return {"body": self.body, "attributes": json.dumps(self.attributes)}


class RedisMessageBroker:
    """Publishes Created events to the lanes selected by the routing table."""

    def __init__(
        self,
        redis_client: redis.Redis,
        routing: RoutingTable,
        prefix: str,
        max_len: int = 100_000,
    ):
        self.redis = redis_client
        self.routing = routing
        self.prefix = prefix
        self.max_len = max_len

    async def publish_created(self, appointment: Appointment) -> list[str]:
        """
        Publish the appointment snapshot with its country as a routing attribute.

        Args:
            appointment: Newly created appointment

        Returns:
            Stream entry ids, one per receiving lane

        Raises:
            UnsupportedJurisdictionException: If no lane accepts the country
            TransientInfrastructureException: If Redis is unreachable
        """
        attributes = routing_attributes(appointment.country_iso)
        lanes = self.routing.lanes_for(attributes)
        fields = {"body": appointment.to_json(), "attributes": json.dumps(attributes)}

        message_ids = []
        async with translate_redis_errors("publish_created", appointment_id=appointment.id):
            for lane in lanes:
                stream_key = created_stream_key(self.prefix, lane)
                message_id = await self.redis.xadd(
                    stream_key, fields, maxlen=self.max_len, approximate=True
                )
                message_ids.append(message_id)
                logger.info(
                    "appointment_created_published",
                    appointment_id=appointment.id,
                    stream=stream_key,
                    message_id=message_id,
                )
        return message_ids


class RedisEventBus:
    """Publishes Completed events."""

    def __init__(self, redis_client: redis.Redis, prefix: str, max_len: int = 100_000):
        self.redis = redis_client
        self.stream_key = completed_stream_key(prefix)
        self.max_len = max_len

    async def publish_completed(self, appointment: Appointment) -> str:
        """Publish an ``appointment.completed`` envelope carrying the snapshot."""
        envelope = CompletedEnvelope(detail=appointment.to_snapshot())
        fields = {"body": envelope.to_json(), "attributes": "{}"}

        async with translate_redis_errors("publish_completed", appointment_id=appointment.id):
            message_id = await self.redis.xadd(
                self.stream_key, fields, maxlen=self.max_len, approximate=True
            )

        logger.info(
            "appointment_completed_published",
            appointment_id=appointment.id,
            stream=self.stream_key,
            message_id=message_id,
        )
        return message_id
