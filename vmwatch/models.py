import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import relationship

from vmwatch.db import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column stores this shape."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_id() -> str:
    return str(uuid.uuid4())


class Machine(Base):
    __tablename__ = "vms"

    id = Column(String(36), primary_key=True, default=_new_id)
    hostname = Column(String, unique=True, nullable=False, index=True)
    vmid = Column(String, nullable=False)
    node = Column(String, nullable=False)
    status = Column(String, nullable=False, default="unknown")

    cpu_usage = Column(Float, nullable=False, default=0.0)
    ram_usage = Column(Float, nullable=False, default=0.0)
    ram_total = Column(Float, nullable=False, default=0.0)
    disk_usage = Column(Float, nullable=True)
    disk_total = Column(Float, nullable=True)
    uptime = Column(Integer, nullable=False, default=0)

    last_heartbeat = Column(DateTime, nullable=False, default=utcnow)
    is_down = Column(Boolean, nullable=False, default=False)
    is_warning = Column(Boolean, nullable=False, default=False)
    reset_attempts = Column(Integer, nullable=False, default=0)
    last_reset = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    metrics = relationship(
        "MetricSample",
        back_populates="vm",
        cascade="all, delete-orphan"
    )

    reset_history = relationship(
        "ResetAuditRecord",
        back_populates="vm",
        cascade="all, delete-orphan"
    )


class MetricSample(Base):
    __tablename__ = "vm_metrics"
    __table_args__ = (Index("ix_vm_metrics_vm_id_timestamp", "vm_id", "timestamp"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    vm_id = Column(String(36), ForeignKey("vms.id", ondelete="CASCADE"), nullable=False)

    cpu_usage = Column(Float, nullable=False)
    ram_usage = Column(Float, nullable=False)
    ram_total = Column(Float, nullable=False)
    disk_usage = Column(Float, nullable=True)
    disk_total = Column(Float, nullable=True)
    uptime = Column(Integer, nullable=False, default=0)

    timestamp = Column(DateTime, nullable=False, default=utcnow)

    vm = relationship("Machine", back_populates="metrics")


class ResetAuditRecord(Base):
    __tablename__ = "reset_history"
    __table_args__ = (Index("ix_reset_history_vm_id_timestamp", "vm_id", "timestamp"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    vm_id = Column(String(36), ForeignKey("vms.id", ondelete="CASCADE"), nullable=False)

    reason = Column(String, nullable=False)
    proxmox_response = Column(Text, nullable=True)  # serialized response or error
    success = Column(Boolean, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utcnow)

    vm = relationship("Machine", back_populates="reset_history")


class FleetConfigRow(Base):
    """Singleton row (id='default'); NULL columns fall back to defaults."""

    __tablename__ = "system_config"

    id = Column(String, primary_key=True, default="default")
    stale_timeout_ms = Column(Integer, nullable=True)
    cpu_threshold = Column(Float, nullable=True)
    ram_threshold = Column(Float, nullable=True)
    auto_reset_enabled = Column(Boolean, nullable=True)
    reset_retry_count = Column(Integer, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
