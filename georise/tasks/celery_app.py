from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as setup_logging_signal

from georise.core.config import settings
from georise.core.logging import setup_logging

celery_app = Celery(
    "georise",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
)

# Celery Beat schedule: open every user's AI allowance period at the start of the month
celery_app.conf.beat_schedule = {
    "initialize-monthly-allowances": {
        "task": "initialize_allowances",
        "schedule": crontab(hour=0, minute=5, day_of_month=1),  # 1st of each month at 00:05 UTC
    },
}

celery_app.conf.include = [
    "georise.tasks.credit_tasks",
]


@setup_logging_signal.connect
def configure_worker_logging(**kwargs) -> None:
    # Connecting this signal stops Celery from installing its own handlers
    setup_logging()
