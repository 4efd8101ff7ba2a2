"""Durable enrichment job queue helpers (Redis/RQ)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from redis import Redis
from rq import Queue, Retry
from rq.job import Job
from sqlalchemy import select

from config import settings
from database import async_session_maker
from models.collection_item_data import CollectionItemData

logger = logging.getLogger(__name__)

ENRICHMENT_JOB_FUNC = "services.enrichment.process_item_data_enrichment_job"


@dataclass(frozen=True)
class EnrichmentJob:
    """Identifiers only; the worker re-reads current state before mutating."""

    item_data_id: str
    image_url: Optional[str] = None


def get_redis_connection() -> Redis:
    """Build Redis connection used by RQ."""
    return Redis.from_url(settings.REDIS_URL)


def get_enrichment_queue() -> Queue:
    """Return the configured enrichment queue."""
    return Queue(
        name=settings.ENRICHMENT_QUEUE_NAME,
        connection=get_redis_connection(),
        default_timeout=settings.ENRICHMENT_JOB_TIMEOUT_SECONDS,
    )


def enqueue_enrichment_job(job: EnrichmentJob) -> Job:
    """Enqueue an enrichment job with retry/timeouts for durability."""
    queue = get_enrichment_queue()
    intervals = [int(value) for value in settings.ENRICHMENT_RETRY_INTERVALS] or [60]
    return queue.enqueue(
        ENRICHMENT_JOB_FUNC,
        job.item_data_id,
        job.image_url,
        job_id=f"enrich:{job.item_data_id}",
        retry=Retry(max=len(intervals), interval=intervals),
        job_timeout=settings.ENRICHMENT_JOB_TIMEOUT_SECONDS,
        result_ttl=86400,
        failure_ttl=86400,
    )


async def recover_pending_item_data(max_age_minutes: Optional[int] = None) -> int:
    """Re-enqueue item data that has been pending longer than the cutoff.

    Explicit image URLs are not persisted, so recovered jobs fall back to the
    preview lookup and snapshot strategies.
    """
    age = max_age_minutes if max_age_minutes is not None else settings.ENRICHMENT_STALE_MINUTES
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=max(int(age), 1))
    async with async_session_maker() as db:
        result = await db.execute(
            select(CollectionItemData.id).where(
                CollectionItemData.image_pending.is_(True),
                CollectionItemData.created_at < cutoff,
            )
        )
        pending_ids = [row[0] for row in result.all()]

    recovered = 0
    for data_id in pending_ids:
        try:
            enqueue_enrichment_job(EnrichmentJob(item_data_id=data_id))
            recovered += 1
        except Exception as exc:
            logger.warning("Could not re-enqueue enrichment for %s: %s", data_id, exc)
            break
    return recovered
