"""Redis client configuration and utilities."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis
import structlog
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from app.config import Settings
from app.core.exceptions import TransientInfrastructureException

logger = structlog.get_logger(__name__)


def create_redis_client(settings: Settings) -> redis.Redis:
    """
    Create a Redis client for the message channels.

    Args:
        settings: Application settings

    Returns:
        Async Redis client
    """
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        username=settings.redis_username,
        password=settings.redis_password or None,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_keepalive=True,
        health_check_interval=30,
    )


@asynccontextmanager
async def translate_redis_errors(operation: str, **context: object) -> AsyncIterator[None]:
    """Re-raise broker connectivity failures as TransientInfrastructureException."""
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        logger.warning("broker_unavailable", operation=operation, error=str(e), **context)
        raise TransientInfrastructureException(f"Broker unavailable during {operation}") from e


async def check_redis_connection(client: redis.Redis) -> bool:
    """
    Check if Redis connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        await client.ping()
        return True
    except Exception:
        return False
