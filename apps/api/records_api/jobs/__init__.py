"""Background job processing module."""

from records_api.jobs.queue import enqueue_import_job, get_queue
from records_api.jobs.tasks import process_import_job

__all__ = [
    "enqueue_import_job",
    "get_queue",
    "process_import_job",
]
