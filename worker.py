#!/usr/bin/env python3
"""
Background worker delivering queued notifications.
"""
import sys
import logging
from rq import Worker
from redis import Redis

from smartbook.config import get_settings
from smartbook.services.background_jobs import NOTIFICATION_QUEUE

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    """Start the background worker."""
    settings = get_settings()
    try:
        # rq needs raw bytes from Redis
        redis_conn = Redis.from_url(settings.redis_url)

        queues = [NOTIFICATION_QUEUE]

        logger.info("Starting background worker...")
        logger.info(f"Listening to queues: {', '.join(queues)}")

        worker = Worker(queues, connection=redis_conn)
        # Reminders are enqueued with enqueue_at
        worker.work(with_scheduler=True)

    except KeyboardInterrupt:
        logger.info("Worker stopped by user")
    except Exception as e:
        logger.error(f"Worker error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
