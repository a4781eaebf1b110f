# vmwatch/services/status.py
import logging
from dataclasses import asdict
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vmwatch import crud, models
from vmwatch.errors import StoreError

logger = logging.getLogger("vmwatch.services.status")


def aggregate(db: Session, now: Optional[datetime] = None) -> dict:
    """Fleet counts by derived health plus the effective configuration."""
    try:
        counts = crud.count_by_health(db)
        cfg = crud.get_fleet_config(db)
    except SQLAlchemyError as exc:
        logger.exception("Error fetching system status")
        raise StoreError("failed to fetch system status") from exc
    return {"timestamp": now or models.utcnow(), "vms": counts, "config": asdict(cfg)}


def update_config(db: Session, changes: dict) -> dict:
    try:
        cfg = crud.update_fleet_config(db, changes)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Error updating config")
        raise StoreError("failed to update configuration") from exc
    logger.info("Configuration updated: %s", ", ".join(sorted(changes)) or "no changes")
    return asdict(cfg)
