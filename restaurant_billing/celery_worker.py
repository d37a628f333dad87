"""
Celery Worker Configuration

Broker and result backend both point at settings.redis_url. Ledger exports
run on their own "exports" queue so a slow spreadsheet write never delays
other work on the same worker.

Start with: celery -A restaurant_billing.celery_worker worker -Q exports
"""

from celery import Celery

from restaurant_billing.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    'restaurant_billing_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['restaurant_billing.tasks']
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    # Beat schedules and log timestamps follow the restaurant's business day
    timezone=settings.timezone,
    enable_utc=True,

    task_routes={
        'restaurant_billing.tasks.export_*': {'queue': 'exports'},
    },

    # Ledger files are locked per write; one task at a time per process
    worker_prefetch_multiplier=1,
    worker_concurrency=2,

    result_expires=3600,

    # A paid order must reach the ledger even if the worker dies mid-task
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    broker_connection_retry_on_startup=True,
)


if __name__ == '__main__':
    celery_app.start()
