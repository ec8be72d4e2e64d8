"""Redis Queue connection and import job enqueueing."""

from __future__ import annotations

from functools import lru_cache

import redis
from rq import Queue
from rq.job import Job

from records_api.core.config import settings

IMPORT_TASK = "records_api.jobs.tasks.process_import_job"


@lru_cache(maxsize=1)
def get_redis_connection() -> redis.Redis:
    """Shared Redis connection pool for RQ; nothing connects until first use."""
    return redis.from_url(settings.redis_url)


def get_queue(name: str = "default") -> Queue:
    """
    Get RQ queue instance.

    Args:
        name: Queue name

    Returns:
        RQ Queue instance
    """
    return Queue(name, connection=get_redis_connection())


def enqueue_import_job(job_id: str) -> Job:
    """
    Queue an import job for a worker.

    Args:
        job_id: UUID of the pending ImportJob

    Returns:
        The queued RQ job
    """
    return get_queue(settings.import_queue_name).enqueue(
        IMPORT_TASK,
        job_id,
        job_timeout=settings.import_job_timeout,
    )
