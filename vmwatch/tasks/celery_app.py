# vmwatch/tasks/celery_app.py
from celery import Celery

from vmwatch.config import settings

# Redis carries both the sweep messages and their small result dicts
celery_app = Celery(
    "vmwatch",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["vmwatch.tasks.jobs"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=3600,
    task_time_limit=120,  # seconds
)
