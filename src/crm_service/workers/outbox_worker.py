"""Outbox worker: polls pending outbox records, publishes them on the realtime channel."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import redis.asyncio as aioredis

from crm_service.application.exceptions import DataFetchError
from crm_service.application.ports.bus import EventPublisher
from crm_service.application.uow import StoreFactory
from crm_service.config import settings
from crm_service.infrastructure.bus.redis_pubsub import RedisPubSubPublisher
from crm_service.infrastructure.db.uow import open_store

logger = logging.getLogger(__name__)

BASE_DELAY_SECONDS = 5
MAX_DELAY_SECONDS = 300


def _calc_backoff(attempts: int) -> datetime:
    delay = min(BASE_DELAY_SECONDS * (2 ** attempts), MAX_DELAY_SECONDS)
    return datetime.now(timezone.utc) + timedelta(seconds=delay)


async def run_outbox_worker() -> None:
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    publisher = RedisPubSubPublisher(redis)

    logger.info(
        "Outbox worker started (poll=%.1fs, batch=%d, max_attempts=%d, channel=%s)",
        settings.OUTBOX_POLL_INTERVAL,
        settings.OUTBOX_BATCH_SIZE,
        settings.OUTBOX_MAX_ATTEMPTS,
        settings.REALTIME_CHANNEL,
    )

    try:
        while True:
            try:
                await process_batch(open_store, publisher, settings.REALTIME_CHANNEL)
            except DataFetchError:
                logger.exception("Outbox worker loop error")
            await asyncio.sleep(settings.OUTBOX_POLL_INTERVAL)
    finally:
        await redis.aclose()


async def process_batch(
    open_store: StoreFactory,
    publisher: EventPublisher,
    channel: str,
    *,
    batch_size: int | None = None,
    max_attempts: int | None = None,
) -> int:
    """Publish one batch of due records. Returns how many were sent."""
    batch_size = batch_size or settings.OUTBOX_BATCH_SIZE
    max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS

    async with open_store() as store:
        batch = await store.outbox.fetch_pending(batch_size)
        if not batch:
            return 0

        sent_ids: list[int] = []
        for record in batch:
            if record.attempts >= max_attempts:
                logger.warning("Outbox record %d exceeded max attempts, skipping", record.id)
                continue
            try:
                await publisher.publish(channel, record.event_type, record.payload)
                sent_ids.append(record.id)
            except (aioredis.RedisError, OSError):
                logger.exception("Failed to publish outbox record %d", record.id)
                await store.outbox.mark_failed(record.id, _calc_backoff(record.attempts))

        if sent_ids:
            await store.outbox.mark_sent(sent_ids)

        await store.commit()
        if sent_ids:
            logger.info("Published %d outbox records", len(sent_ids))
        return len(sent_ids)


def main() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    asyncio.run(run_outbox_worker())


if __name__ == "__main__":
    main()
