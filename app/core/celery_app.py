"""Celery application configuration"""

from celery import Celery
from kombu import Exchange, Queue
from app.core.config import settings

# Create Celery app
celery_app = Celery(
    "ticketing_payments",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "app.tasks.payment_tasks"
    ]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,

    # Redelivered if the worker dies mid-task
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,

    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=settings.CELERY_TASK_ALWAYS_EAGER,

    # Task routing
    task_routes={
        "app.tasks.payment_tasks.*": {"queue": "payments"}
    },

    # Retry configuration
    task_default_retry_delay=30,
    task_max_retries=settings.WEBHOOK_MAX_RETRIES,

    # Result backend configuration
    result_expires=3600,  # 1 hour
)

# Define queues
celery_app.conf.task_queues = (
    Queue("default", Exchange("default"), routing_key="default"),
    Queue("payments", Exchange("payments"), routing_key="payments"),
)
