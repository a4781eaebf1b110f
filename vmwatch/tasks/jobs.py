# vmwatch/tasks/jobs.py
import logging

from vmwatch.config import settings
from vmwatch.db import SessionLocal
from vmwatch.errors import StoreError
from vmwatch.services.staleness import sweep
from vmwatch.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def run_stale_check() -> int:
    """One sweep on a fresh session; StoreError propagates to the caller."""
    db = SessionLocal()
    try:
        return sweep(db)
    finally:
        db.close()


@celery_app.task(name="vmwatch.tasks.jobs.stale_check_job")
def stale_check_job():
    # a failed run is not retried here; the next beat tick runs the sweep again
    try:
        demoted = run_stale_check()
        return {"status": "success", "demoted": demoted}
    except StoreError as e:
        logger.exception("stale_check_job failed")
        return {"status": "error", "error": str(e)}


celery_app.conf.beat_schedule = {
    "stale-vm-check": {
        "task": "vmwatch.tasks.jobs.stale_check_job",
        "schedule": settings.stale_check_interval,
    },
}
