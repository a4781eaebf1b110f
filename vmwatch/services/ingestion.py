# vmwatch/services/ingestion.py
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from vmwatch import crud, models, schemas
from vmwatch.errors import NotFound, StoreError
from vmwatch.health import derive_health, evaluate, ram_percent

logger = logging.getLogger("vmwatch.services.ingestion")


def _upsert(db: Session, report: schemas.HealthReport, now: datetime) -> models.Machine:
    vm = crud.get_machine_by_hostname(db, report.hostname)
    if vm is None:
        vm = models.Machine(
            hostname=report.hostname,
            vmid=report.vmid,
            node=report.node,
            status=report.status,
            cpu_usage=report.cpu_usage,
            ram_usage=report.ram_usage,
            ram_total=report.ram_total,
            disk_usage=report.disk_usage,
            disk_total=report.disk_total,
            uptime=report.uptime,
            last_heartbeat=now,
            is_down=False,
        )
        db.add(vm)
        db.flush()
        logger.info("New VM registered: %s", report.hostname)
    else:
        cfg = crud.get_fleet_config(db)
        vm.vmid = report.vmid
        vm.node = report.node
        vm.status = report.status
        vm.cpu_usage = report.cpu_usage
        vm.ram_usage = report.ram_usage
        vm.ram_total = report.ram_total
        vm.disk_usage = report.disk_usage
        vm.disk_total = report.disk_total
        vm.uptime = report.uptime
        vm.last_heartbeat = now
        vm.is_down = False
        vm.is_warning = evaluate(
            report.cpu_usage, report.ram_usage, report.ram_total,
            cfg.cpu_threshold, cfg.ram_threshold,
        )

    crud.add_metric_sample(db, vm, report, now)
    db.commit()
    db.refresh(vm)
    return vm


def ingest(db: Session, report: schemas.HealthReport, now: Optional[datetime] = None) -> models.Machine:
    """
    Upsert the machine named by report.hostname and append one metric sample.

    A first report creates the machine without evaluating thresholds, so a new
    machine starts out not-warning. Later reports overwrite the reported fields,
    refresh the heartbeat, clear the down flag and recompute the warning flag.
    """
    now = now or models.utcnow()
    try:
        try:
            vm = _upsert(db, report, now)
        except IntegrityError:
            # a concurrent first report registered the hostname; apply ours as an update
            db.rollback()
            vm = _upsert(db, report, now)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Error processing health report for %s", report.hostname)
        raise StoreError(f"failed to store health report for {report.hostname}") from exc

    logger.debug("Health report processed for %s", report.hostname)
    return vm


def to_status(vm: models.Machine) -> schemas.VMStatusOut:
    return schemas.VMStatusOut(
        id=vm.id,
        hostname=vm.hostname,
        vmid=vm.vmid,
        node=vm.node,
        status=vm.status,
        health=derive_health(vm.is_down, vm.is_warning),
        cpu_usage=vm.cpu_usage,
        ram_usage=vm.ram_usage,
        ram_total=vm.ram_total,
        ram_percent=ram_percent(vm.ram_usage, vm.ram_total),
        disk_usage=vm.disk_usage,
        disk_total=vm.disk_total,
        uptime=vm.uptime,
        last_heartbeat=vm.last_heartbeat,
        is_down=vm.is_down,
        is_warning=vm.is_warning,
        reset_attempts=vm.reset_attempts,
        last_reset=vm.last_reset,
    )


def _require_machine(db: Session, machine_id: str) -> models.Machine:
    vm = crud.get_machine(db, machine_id)
    if vm is None:
        raise NotFound("VM", machine_id)
    return vm


def list_vm_status(db: Session) -> List[schemas.VMStatusOut]:
    try:
        return [to_status(vm) for vm in crud.list_machines(db)]
    except SQLAlchemyError as exc:
        logger.exception("Error getting all VM statuses")
        raise StoreError("failed to list VMs") from exc


def get_vm_status(db: Session, machine_id: str) -> schemas.VMStatusOut:
    try:
        return to_status(_require_machine(db, machine_id))
    except SQLAlchemyError as exc:
        logger.exception("Error getting VM status for %s", machine_id)
        raise StoreError(f"failed to load VM {machine_id}") from exc


def get_vm_metrics(db: Session, machine_id: str, hours: int = 24,
                   now: Optional[datetime] = None) -> List[models.MetricSample]:
    now = now or models.utcnow()
    try:
        _require_machine(db, machine_id)
        return crud.list_metric_samples(db, machine_id, now - timedelta(hours=hours))
    except SQLAlchemyError as exc:
        logger.exception("Error getting VM metrics for %s", machine_id)
        raise StoreError(f"failed to load metrics for VM {machine_id}") from exc
