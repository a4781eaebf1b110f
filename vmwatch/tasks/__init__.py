# vmwatch/tasks/__init__.py
# worker: celery -A vmwatch.tasks worker --beat
from .celery_app import celery_app as celery
from .jobs import stale_check_job
__all__ = ["celery", "stale_check_job"]
