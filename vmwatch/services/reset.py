# vmwatch/services/reset.py
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vmwatch import crud, models
from vmwatch.errors import ControlPlaneError, NotFound, RetryCeilingExceeded, StoreError
from vmwatch.proxmox_client import ProxmoxClient

logger = logging.getLogger("vmwatch.services.reset")

DEFAULT_REASON = "Manual reset triggered"
HISTORY_LIMIT = 50


@dataclass
class ResetOutcome:
    machine_id: str
    hostname: str
    reset_attempts: int
    upstream: Optional[str] = None


class ResetOrchestrator:
    """
    One remediation attempt per request_reset() call:
    ceiling check, Proxmox reset, audit record, counter update.

    Only successful dispatches count against the ceiling. A failed Proxmox
    call is audited and re-raised but leaves reset_attempts alone, so a
    machine behind a broken control plane can be retried indefinitely.
    """

    def __init__(self, db: Session, client: ProxmoxClient):
        self.db = db
        self.client = client

    def _audit(self, vm: models.Machine, reason: str, response: str, success: bool, now: datetime):
        return crud.add_reset_record(self.db, vm.id, reason, response, success, now)

    def request_reset(self, machine_id: str, reason: Optional[str] = None,
                      now: Optional[datetime] = None) -> ResetOutcome:
        reason = reason or DEFAULT_REASON
        try:
            vm = crud.get_machine(self.db, machine_id)
            if vm is None:
                raise NotFound("VM", machine_id)
            ceiling = crud.get_fleet_config(self.db).reset_retry_count
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreError(f"failed to load VM {machine_id}") from exc

        if vm.reset_attempts >= ceiling:
            logger.warning("Reset refused for %s: %d/%d attempts used", vm.hostname, vm.reset_attempts, ceiling)
            raise RetryCeilingExceeded(vm.hostname, vm.reset_attempts, ceiling)

        try:
            result = self.client.reset_vm(vm.node, vm.vmid)
        except ControlPlaneError as exc:
            logger.error("Proxmox reset failed for %s: %s", vm.hostname, exc)
            try:
                self._audit(vm, reason, json.dumps(exc.to_dict()), False, now or models.utcnow())
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception("Could not record failed reset of %s", vm.hostname)
            raise

        if not result.success:
            logger.warning("Proxmox accepted reset of %s without returning a task id", vm.hostname)

        # success record and counter land in one transaction
        now = now or models.utcnow()
        try:
            self._audit(vm, reason, result.serialized(), True, now)
            vm.reset_attempts = models.Machine.reset_attempts + 1
            vm.last_reset = now
            self.db.commit()
            self.db.refresh(vm)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Reset of %s was sent but could not be recorded", vm.hostname)
            raise StoreError(f"reset sent to {vm.hostname} but not recorded") from exc

        logger.info("Reset command sent to %s (attempt %d/%d)", vm.hostname, vm.reset_attempts, ceiling)
        return ResetOutcome(
            machine_id=vm.id,
            hostname=vm.hostname,
            reset_attempts=vm.reset_attempts,
            upstream=result.message,
        )


def get_reset_history(db: Session, machine_id: str, limit: int = HISTORY_LIMIT) -> List[models.ResetAuditRecord]:
    try:
        if crud.get_machine(db, machine_id) is None:
            raise NotFound("VM", machine_id)
        return crud.list_reset_records(db, machine_id, limit=limit)
    except SQLAlchemyError as exc:
        logger.exception("Error fetching reset history for %s", machine_id)
        raise StoreError(f"failed to load reset history for VM {machine_id}") from exc
