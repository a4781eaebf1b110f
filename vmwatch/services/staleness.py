# vmwatch/services/staleness.py
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vmwatch import crud, models
from vmwatch.errors import StoreError

logger = logging.getLogger("vmwatch.services.staleness")


def sweep(db: Session, now: Optional[datetime] = None) -> int:
    """
    Demote every machine whose heartbeat is older than the stale timeout.

    Machines already down are not touched and the warning flag is left as
    is. Returns the number of machines demoted by this run.
    """
    now = now or models.utcnow()
    try:
        cfg = crud.get_fleet_config(db)
        threshold = now - timedelta(milliseconds=cfg.stale_timeout_ms)
        demoted = crud.mark_stale_machines(db, threshold)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Error checking stale VMs")
        raise StoreError("stale VM check failed") from exc

    if demoted:
        logger.warning("Marked %d VM(s) down: no heartbeat since %s", demoted, threshold.isoformat())
    logger.info("Stale VM check completed")
    return demoted
