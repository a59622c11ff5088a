"""Stream workers for the asynchronous half of the saga.

Usage:
    python -m app.workers processor --country PE
    python -m app.workers completion
"""

import argparse
import asyncio
import signal
import socket

import structlog

from app.config import get_settings
from app.container import Container
from app.messaging.consumer import ConsumerConfig, StreamConsumer
from app.messaging.streams import completed_stream_key, created_stream_key
from app.middleware.logging import configure_logging

logger = structlog.get_logger(__name__)


def build_consumer(container: Container, role: str, country_iso: str | None = None) -> StreamConsumer:
    """
    Build the stream consumer for a worker role.

    Args:
        container: Dependency container
        role: ``processor`` or ``completion``
        country_iso: Lane for the processor role

    Returns:
        Consumer wired to the role's handler
    """
    settings = container.settings
    if container.redis_client is None:
        raise RuntimeError("Workers need a Redis-backed container")

    if role == "processor":
        if not country_iso:
            raise ValueError("The processor role needs a country")
        processor = container.country_processor(country_iso)
        stream_key = created_stream_key(settings.stream_prefix, country_iso)
        group_name = f"country-processor-{country_iso.lower()}"
        handler = processor.handle
    elif role == "completion":
        stream_key = completed_stream_key(settings.stream_prefix)
        group_name = "completion-listener"
        handler = container.completion_listener().handle_message
    else:
        raise ValueError(f"Unknown worker role {role!r}")

    config = ConsumerConfig(
        stream_key=stream_key,
        group_name=group_name,
        consumer_name=f"{socket.gethostname()}-{group_name}",
        max_deliveries=settings.max_deliveries,
        batch_size=settings.consumer_batch_size,
        block_ms=settings.consumer_block_ms,
        claim_idle_ms=settings.consumer_claim_idle_ms,
    )
    return StreamConsumer(container.redis_client, config, handler)


async def run_worker(role: str, country_iso: str | None = None) -> None:
    """Run a worker until SIGINT or SIGTERM."""
    settings = get_settings()
    configure_logging(settings)
    container = Container.build(settings)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        consumer = build_consumer(container, role, country_iso)
        logger.info("worker_starting", role=role, country_iso=country_iso)
        await consumer.run(stop)
    finally:
        await container.close()


def main() -> None:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(description="Run an appointment saga worker")
    subparsers = parser.add_subparsers(dest="role", required=True)

    processor = subparsers.add_parser("processor", help="Process Created events for one country")
    processor.add_argument("--country", required=True, help="Country lane, e.g. PE")

    subparsers.add_parser("completion", help="Complete appointments from Completed events")

    args = parser.parse_args()
    asyncio.run(run_worker(args.role, getattr(args, "country", None)))


if __name__ == "__main__":
    main()
