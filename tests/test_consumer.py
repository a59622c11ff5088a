"""Tests for the stream consumer's settle logic."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ResponseError

from app.core.exceptions import NotFoundException, TransientInfrastructureException
from app.messaging.consumer import ConsumerConfig, StreamConsumer

STREAM = "appointments:created:PE"
GROUP = "country-processor-pe"
FIELDS = {"body": '{"id": "a"}', "attributes": '{"countryISO": "PE"}'}


@pytest.fixture
def mock_redis():
    """Create mock Redis client."""
    redis = AsyncMock()
    redis.xpending_range = AsyncMock(return_value=[{"message_id": "1-0", "times_delivered": 1}])
    redis.xautoclaim = AsyncMock(return_value=["0-0", [], []])
    redis.xreadgroup = AsyncMock(return_value=[])
    return redis


def make_consumer(redis, handler, max_deliveries=3) -> StreamConsumer:
    config = ConsumerConfig(
        stream_key=STREAM,
        group_name=GROUP,
        consumer_name="worker-1",
        max_deliveries=max_deliveries,
    )
    return StreamConsumer(redis, config, handler)


def delivered(redis, times: int) -> None:
    redis.xpending_range.return_value = [{"message_id": "1-0", "times_delivered": times}]


def test_dead_letter_stream_defaults_to_suffix():
    config = ConsumerConfig(stream_key=STREAM, group_name=GROUP, consumer_name="w")

    assert config.dlq_stream_key == f"{STREAM}:dlq"


@pytest.mark.asyncio
async def test_success_is_acknowledged(mock_redis):
    handler = AsyncMock()
    consumer = make_consumer(mock_redis, handler)

    await consumer.dispatch("1-0", FIELDS)

    message = handler.call_args.args[0]
    assert message.attributes == {"countryISO": "PE"}
    assert message.delivery_count == 1
    mock_redis.xack.assert_awaited_once_with(STREAM, GROUP, "1-0")
    mock_redis.xadd.assert_not_awaited()


@pytest.mark.asyncio
async def test_retryable_failure_is_left_pending(mock_redis):
    """Test a transient error within the budget is neither acked nor dead-lettered."""
    handler = AsyncMock(side_effect=TransientInfrastructureException("Database unavailable"))
    consumer = make_consumer(mock_redis, handler)
    delivered(mock_redis, 2)

    await consumer.dispatch("1-0", FIELDS)

    mock_redis.xack.assert_not_awaited()
    mock_redis.xadd.assert_not_awaited()


@pytest.mark.asyncio
async def test_unexpected_failure_is_retried(mock_redis):
    consumer = make_consumer(mock_redis, AsyncMock(side_effect=RuntimeError("boom")))

    await consumer.dispatch("1-0", FIELDS)

    mock_redis.xack.assert_not_awaited()


@pytest.mark.asyncio
async def test_exhausted_retries_are_dead_lettered(mock_redis):
    handler = AsyncMock(side_effect=TransientInfrastructureException("Database unavailable"))
    consumer = make_consumer(mock_redis, handler, max_deliveries=3)
    delivered(mock_redis, 3)

    await consumer.dispatch("1-0", FIELDS)

    args, _ = mock_redis.xadd.call_args
    assert args[0] == f"{STREAM}:dlq"
    assert args[1]["source_message_id"] == "1-0"
    assert args[1]["error_type"] == "TransientInfrastructureException"
    assert args[1]["delivery_count"] == "3"
    assert args[1]["body"] == FIELDS["body"]
    mock_redis.xack.assert_awaited_once_with(STREAM, GROUP, "1-0")


@pytest.mark.asyncio
async def test_terminal_failure_is_dead_lettered_at_once(mock_redis):
    """Test a non-retryable error is dead-lettered on first delivery."""
    handler = AsyncMock(side_effect=NotFoundException("Schedule with id 999 not found"))
    consumer = make_consumer(mock_redis, handler)

    await consumer.dispatch("1-0", FIELDS)

    args, _ = mock_redis.xadd.call_args
    assert args[1]["error"] == "Schedule with id 999 not found"
    mock_redis.xack.assert_awaited_once_with(STREAM, GROUP, "1-0")


@pytest.mark.asyncio
async def test_poll_dispatches_claimed_and_new_entries(mock_redis):
    mock_redis.xautoclaim.return_value = ["0-0", [("1-0", FIELDS), ("2-0", None)], []]
    mock_redis.xreadgroup.return_value = [[STREAM, [("3-0", FIELDS)]]]
    handler = AsyncMock()
    consumer = make_consumer(mock_redis, handler)

    dispatched = await consumer.poll()

    assert dispatched == 2
    assert [call.args[0].message_id for call in handler.call_args_list] == ["1-0", "3-0"]


@pytest.mark.asyncio
async def test_ensure_group(mock_redis):
    consumer = make_consumer(mock_redis, AsyncMock())

    assert await consumer.ensure_group() is True
    mock_redis.xgroup_create.assert_awaited_once_with(STREAM, GROUP, id="0", mkstream=True)

    mock_redis.xgroup_create.side_effect = ResponseError(
        "BUSYGROUP Consumer Group name already exists"
    )
    assert await consumer.ensure_group() is False


@pytest.mark.asyncio
async def test_ensure_group_propagates_other_errors(mock_redis):
    mock_redis.xgroup_create.side_effect = ResponseError("WRONGTYPE")
    consumer = make_consumer(mock_redis, AsyncMock())

    with pytest.raises(ResponseError):
        await consumer.ensure_group()


@pytest.mark.asyncio
async def test_run_stops_when_asked(mock_redis):
    stop = asyncio.Event()
    consumer = make_consumer(mock_redis, AsyncMock())

    async def read_then_stop(**kwargs):
        stop.set()
        return []

    mock_redis.xreadgroup.side_effect = read_then_stop

    await asyncio.wait_for(consumer.run(stop), timeout=1)

    mock_redis.xgroup_create.assert_awaited_once()
