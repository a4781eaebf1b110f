# vmwatch/crud.py
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Optional, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from vmwatch import models
from vmwatch.health import derive_health

CONFIG_ID = "default"


@dataclass(frozen=True)
class FleetConfig:
    stale_timeout_ms: int = 300000
    cpu_threshold: float = 80.0
    ram_threshold: float = 90.0
    auto_reset_enabled: bool = True  # advisory, nothing acts on it yet
    reset_retry_count: int = 3


CONFIG_FIELDS = [f.name for f in fields(FleetConfig)]


# --- machines ---

def get_machine(db: Session, machine_id: str) -> Optional[models.Machine]:
    return db.query(models.Machine).filter(models.Machine.id == machine_id).first()

def get_machine_by_hostname(db: Session, hostname: str) -> Optional[models.Machine]:
    return db.query(models.Machine).filter(models.Machine.hostname == hostname).first()

def list_machines(db: Session) -> List[models.Machine]:
    return db.query(models.Machine).order_by(models.Machine.hostname.asc()).all()

def mark_stale_machines(db: Session, threshold: datetime) -> int:
    """Set-based demotion of every live machine whose heartbeat is older than threshold."""
    return (
        db.query(models.Machine)
        .filter(models.Machine.last_heartbeat < threshold, models.Machine.is_down.is_(False))
        .update({"is_down": True, "status": "unknown"}, synchronize_session=False)
    )

def count_by_health(db: Session) -> dict:
    """Machine counts per derived health label, read in a single query."""
    m = models.Machine
    counts = {"total": 0, "healthy": 0, "warning": 0, "down": 0}
    rows = db.query(m.is_down, m.is_warning, func.count(m.id)).group_by(m.is_down, m.is_warning).all()
    for is_down, is_warning, n in rows:
        counts[derive_health(is_down, is_warning)] += n
        counts["total"] += n
    return counts


# --- metric samples ---

def add_metric_sample(db: Session, machine: models.Machine, report, ts: datetime) -> models.MetricSample:
    sample = models.MetricSample(
        vm_id=machine.id,
        cpu_usage=report.cpu_usage,
        ram_usage=report.ram_usage,
        ram_total=report.ram_total,
        disk_usage=report.disk_usage,
        disk_total=report.disk_total,
        uptime=report.uptime,
        timestamp=ts,
    )
    db.add(sample)
    return sample

def list_metric_samples(db: Session, machine_id: str, since: datetime) -> List[models.MetricSample]:
    return (
        db.query(models.MetricSample)
        .filter(models.MetricSample.vm_id == machine_id, models.MetricSample.timestamp >= since)
        .order_by(models.MetricSample.timestamp.asc(), models.MetricSample.id.asc())
        .all()
    )


# --- reset audit ---

def add_reset_record(db: Session, machine_id: str, reason: str, response: Optional[str],
                     success: bool, ts: datetime) -> models.ResetAuditRecord:
    record = models.ResetAuditRecord(
        vm_id=machine_id, reason=reason, proxmox_response=response, success=success, timestamp=ts
    )
    db.add(record)
    db.flush()
    return record

def list_reset_records(db: Session, machine_id: str, limit: int = 50) -> List[models.ResetAuditRecord]:
    return (
        db.query(models.ResetAuditRecord)
        .filter(models.ResetAuditRecord.vm_id == machine_id)
        .order_by(models.ResetAuditRecord.timestamp.desc(), models.ResetAuditRecord.id.desc())
        .limit(limit)
        .all()
    )


# --- fleet config ---

def get_fleet_config(db: Session) -> FleetConfig:
    """Effective config: stored values where set, defaults for the rest."""
    row = db.query(models.FleetConfigRow).filter(models.FleetConfigRow.id == CONFIG_ID).first()
    if row is None:
        return FleetConfig()
    stored = {name: getattr(row, name) for name in CONFIG_FIELDS if getattr(row, name) is not None}
    return FleetConfig(**stored)

def update_fleet_config(db: Session, changes: dict) -> FleetConfig:
    row = db.query(models.FleetConfigRow).filter(models.FleetConfigRow.id == CONFIG_ID).first()
    if row is None:
        row = models.FleetConfigRow(id=CONFIG_ID)
        db.add(row)
    for name, value in changes.items():
        if name in CONFIG_FIELDS:
            setattr(row, name, value)
    db.commit()
    return get_fleet_config(db)
