"""Command-line interface for import workers."""

import sys

from rq import Worker

from records_api.core.config import settings
from records_api.jobs.queue import get_redis_connection


def run_worker(queues: list[str] | None = None):
    """
    Run an RQ worker for processing background jobs.

    Args:
        queues: List of queue names to process (default: the import queue)
    """
    if queues is None:
        queues = [settings.import_queue_name]

    worker = Worker(queues, connection=get_redis_connection())
    worker.work()


def main():
    run_worker(sys.argv[1:] or None)


if __name__ == "__main__":
    main()
