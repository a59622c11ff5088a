"""
Redis Streams consumer with redelivery and dead-lettering.

The consumer owns the retry-versus-terminal decision for every message:

- handler succeeds: the entry is acknowledged;
- handler raises a retryable error (or an unexpected one) and the entry has
  been delivered fewer than ``max_deliveries`` times: the entry stays pending
  and is claimed again once it has been idle for ``claim_idle_ms``;
- otherwise the entry is copied to the dead-letter stream and acknowledged.

Handlers never retry internally.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import redis.asyncio as redis
import structlog
from redis.exceptions import ResponseError

from app.core.exceptions import AppException
from app.messaging.streams import Message, dead_letter_stream_key

logger = structlog.get_logger(__name__)

MessageHandler = Callable[[Message], Awaitable[Any]]


@dataclass
class ConsumerConfig:
    """Configuration for a stream consumer."""

    stream_key: str
    group_name: str
    consumer_name: str
    max_deliveries: int = 3
    batch_size: int = 10
    block_ms: int = 1000
    claim_idle_ms: int = 30_000
    dlq_stream_key: str | None = None

    def __post_init__(self) -> None:
        if not self.dlq_stream_key:
            self.dlq_stream_key = dead_letter_stream_key(self.stream_key)


class StreamConsumer:
    """Reads a stream through a consumer group and dispatches to a handler."""

    def __init__(self, redis_client: redis.Redis, config: ConsumerConfig, handler: MessageHandler):
        self.redis = redis_client
        self.config = config
        self.handler = handler
        self.log = logger.bind(stream=config.stream_key, consumer=config.consumer_name)

    async def ensure_group(self) -> bool:
        """
        Create the consumer group if it doesn't exist.

        Returns:
            True if created, False if it already existed
        """
        try:
            await self.redis.xgroup_create(
                self.config.stream_key, self.config.group_name, id="0", mkstream=True
            )
            return True
        except ResponseError as e:
            if "BUSYGROUP" in str(e):
                return False
            raise

    async def run(self, stop: asyncio.Event) -> None:
        """Consume until ``stop`` is set."""
        await self.ensure_group()
        self.log.info("consumer_started", group=self.config.group_name)

        while not stop.is_set():
            try:
                await self.poll()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Broker hiccup: back off briefly and keep the loop alive
                self.log.error("consumer_poll_failed", error=str(e))
                await asyncio.sleep(1)

        self.log.info("consumer_stopped")

    async def poll(self) -> int:
        """
        Process one batch of reclaimed and new entries.

        Returns:
            Number of entries dispatched
        """
        entries = await self._claim_idle()
        entries.extend(await self._read_new())

        for message_id, fields in entries:
            await self.dispatch(message_id, fields)
        return len(entries)

    async def dispatch(self, message_id: str, fields: dict[str, Any]) -> None:
        """Run the handler for one entry and settle it."""
        delivery_count = await self._delivery_count(message_id)
        message = Message.from_fields(message_id, fields, delivery_count=delivery_count)
        log = self.log.bind(message_id=message_id, delivery_count=delivery_count)

        try:
            await self.handler(message)
        except Exception as e:
            retryable = e.retryable if isinstance(e, AppException) else True
            if retryable and delivery_count < self.config.max_deliveries:
                log.warning(
                    "message_left_for_redelivery",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return

            log.error(
                "message_dead_lettered",
                error=str(e),
                error_type=type(e).__name__,
                retryable=retryable,
            )
            await self._dead_letter(message, e)

        await self.redis.xack(self.config.stream_key, self.config.group_name, message_id)

    async def _read_new(self) -> list[tuple[str, dict[str, Any]]]:
        response = await self.redis.xreadgroup(
            groupname=self.config.group_name,
            consumername=self.config.consumer_name,
            streams={self.config.stream_key: ">"},
            count=self.config.batch_size,
            block=self.config.block_ms,
        )
        entries: list[tuple[str, dict[str, Any]]] = []
        for _stream, messages in response or []:
            entries.extend(messages)
        return entries

    async def _claim_idle(self) -> list[tuple[str, dict[str, Any]]]:
        """Take over entries whose previous delivery timed out."""
        response = await self.redis.xautoclaim(
            self.config.stream_key,
            self.config.group_name,
            self.config.consumer_name,
            min_idle_time=self.config.claim_idle_ms,
            start_id="0-0",
            count=self.config.batch_size,
        )
        # XAUTOCLAIM returns [next_id, entries] or [next_id, entries, deleted_ids]
        messages = response[1] if response else []
        return [(message_id, fields) for message_id, fields in messages if fields]

    async def _delivery_count(self, message_id: str) -> int:
        pending = await self.redis.xpending_range(
            self.config.stream_key,
            self.config.group_name,
            min=message_id,
            max=message_id,
            count=1,
        )
        if not pending:
            return 1
        return int(pending[0].get("times_delivered", 1))

    async def _dead_letter(self, message: Message, error: Exception) -> None:
        fields = message.to_fields()
        fields.update(
            {
                "source_message_id": message.message_id,
                "error": str(error),
                "error_type": type(error).__name__,
                "delivery_count": str(message.delivery_count),
                "failed_at": datetime.now(UTC).isoformat(),
            }
        )
        await self.redis.xadd(self.config.dlq_stream_key, fields)
