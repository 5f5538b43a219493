"""Celery application configuration."""

from celery import Celery
from celery.signals import setup_logging

from devicelab.config import settings
from devicelab.core.logging_config import configure_logging

celery_app = Celery(
    "devicelab",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["devicelab.tasks.test_run_tasks"],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=6 * 60 * 60,  # 6 hours
    task_soft_time_limit=6 * 60 * 60 - 5 * 60,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=50,
)

celery_app.conf.task_routes = {
    "tasks.run_device_tests": {"queue": "device_tests"},
}


@setup_logging.connect
def _configure_worker_logging(**kwargs):
    configure_logging()
