# vmwatch/schemas.py
import math
from datetime import datetime
from typing import Optional, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, field_validator
from pydantic.alias_generators import to_camel

VMState = Literal["running", "stopped", "unknown"]
Health = Literal["healthy", "warning", "down"]


class CamelModel(BaseModel):
    # snake_case in python, camelCase on the wire
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class HealthReport(CamelModel):
    hostname: str = Field(..., min_length=1)
    vmid: str = Field(..., min_length=1)   # Proxmox VM id, agents send it as int or str
    node: str = Field(..., min_length=1)
    status: VMState
    cpu_usage: StrictFloat                  # 0-100
    ram_usage: StrictFloat                  # MB
    ram_total: StrictFloat                  # MB
    disk_usage: Optional[StrictFloat] = None
    disk_total: Optional[StrictFloat] = None
    uptime: int = 0                         # seconds, fractions dropped
    timestamp: Optional[float] = None       # agent-side unix time, informational

    @field_validator("vmid", mode="before")
    @classmethod
    def _vmid_as_text(cls, v):
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("uptime", mode="before")
    @classmethod
    def _whole_seconds(cls, v):
        # agents often forward /proc/uptime as is
        if isinstance(v, float) and math.isfinite(v):
            return int(v)
        return v

    @field_validator("hostname", "node")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class VMStatusOut(CamelModel):
    id: str
    hostname: str
    vmid: str
    node: str
    status: VMState
    health: Health
    cpu_usage: float
    ram_usage: float
    ram_total: float
    ram_percent: float
    disk_usage: Optional[float] = None
    disk_total: Optional[float] = None
    uptime: int
    last_heartbeat: datetime
    is_down: bool
    is_warning: bool
    reset_attempts: int
    last_reset: Optional[datetime] = None


class MetricSampleOut(CamelModel):
    id: int
    vm_id: str
    cpu_usage: float
    ram_usage: float
    ram_total: float
    disk_usage: Optional[float] = None
    disk_total: Optional[float] = None
    uptime: int
    timestamp: datetime


class ResetRequest(CamelModel):
    reason: Optional[str] = None


class ResetResponse(CamelModel):
    success: bool
    message: str
    reset_attempts: int
    upstream: Optional[str] = None


class ResetRecordOut(CamelModel):
    id: int
    vm_id: str
    reason: str
    proxmox_response: Optional[str] = None
    success: bool
    timestamp: datetime


class FleetConfigOut(CamelModel):
    stale_timeout_ms: int
    cpu_threshold: float
    ram_threshold: float
    auto_reset_enabled: bool
    reset_retry_count: int


class FleetConfigUpdate(CamelModel):
    stale_timeout_ms: Optional[int] = Field(None, gt=0)
    cpu_threshold: Optional[float] = Field(None, ge=0, le=100)
    ram_threshold: Optional[float] = Field(None, ge=0, le=100)
    auto_reset_enabled: Optional[bool] = None
    reset_retry_count: Optional[int] = Field(None, ge=0)

    def changes(self) -> dict:
        """Only the fields the caller actually supplied; explicit null means unset."""
        return {k: v for k, v in self.model_dump(exclude_unset=True).items() if v is not None}


class VMCounts(BaseModel):
    total: int
    healthy: int
    warning: int
    down: int


class FleetStatusOut(CamelModel):
    timestamp: datetime
    vms: VMCounts
    config: FleetConfigOut


class ConfigUpdateOut(CamelModel):
    message: str
    config: FleetConfigOut


class ReportAck(CamelModel):
    success: bool
    message: str
    vm_id: Optional[str] = None

