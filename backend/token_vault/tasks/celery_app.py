"""Celery application configuration and Beat schedule for vault jobs."""
from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging

from token_vault.config import settings
from token_vault.logging_config import configure_logging

celery_app = Celery(
    "token_vault",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_routes={
        "token_vault.tasks.vault_tasks.*": {"queue": "low"},
    },
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=3600,
)

celery_app.conf.beat_schedule = {
    "rotate-gmail-tokens": {
        "task": "token_vault.tasks.vault_tasks.rotate_gmail_tokens",
        "schedule": crontab(hour=3, minute=30),
    },
}

celery_app.autodiscover_tasks([
    "token_vault.tasks.vault_tasks",
])


@setup_logging.connect
def _configure_worker_logging(**_kwargs) -> None:
    configure_logging()
