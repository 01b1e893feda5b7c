"""
RQ worker bootstrap

Usage: python -m schoolpay.workers.worker
"""

from rq import Queue, Worker

from schoolpay.infrastructure.logging_config import setup_logging
from schoolpay.infrastructure.redis_client import get_queue_connection
from schoolpay.infrastructure.settings import get_settings
from schoolpay.workers import jobs  # noqa: F401  (jobs must be importable by the worker)


def main() -> None:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    connection = get_queue_connection()
    queues = [Queue(settings.RQ_QUEUE_NAME, connection=connection)]
    Worker(queues, connection=connection).work()


if __name__ == "__main__":
    main()
