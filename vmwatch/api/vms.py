# vmwatch/api/vms.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from vmwatch import schemas
from vmwatch.db import get_db
from vmwatch.errors import ControlPlaneError, ControlPlaneTimeout, NotFound, RetryCeilingExceeded, StoreError
from vmwatch.proxmox_client import ProxmoxClient, get_proxmox_client
from vmwatch.services import ingestion
from vmwatch.services.reset import ResetOrchestrator, get_reset_history

logger = logging.getLogger("vmwatch.api.vms")
router = APIRouter(prefix="/api/vms", tags=["vms"])


def _not_found(e: NotFound):
    return HTTPException(status_code=404, detail={"error": "VM not found", "details": e.key})


def _store_failed(what: str, e: StoreError):
    return HTTPException(status_code=500, detail={"error": what, "details": str(e)})


@router.get("", response_model=List[schemas.VMStatusOut])
def list_vms(db: Session = Depends(get_db)):
    """All VMs ordered by hostname, with derived health."""
    try:
        return ingestion.list_vm_status(db)
    except StoreError as e:
        raise _store_failed("Failed to fetch VMs", e)


@router.get("/{vm_id}", response_model=schemas.VMStatusOut)
def get_vm(vm_id: str, db: Session = Depends(get_db)):
    try:
        return ingestion.get_vm_status(db, vm_id)
    except NotFound as e:
        raise _not_found(e)
    except StoreError as e:
        raise _store_failed("Failed to fetch VM", e)


@router.get("/{vm_id}/metrics", response_model=List[schemas.MetricSampleOut])
def get_vm_metrics(vm_id: str, hours: int = Query(24, gt=0, le=24 * 365), db: Session = Depends(get_db)):
    try:
        return ingestion.get_vm_metrics(db, vm_id, hours=hours)
    except NotFound as e:
        raise _not_found(e)
    except StoreError as e:
        raise _store_failed("Failed to fetch VM metrics", e)


@router.post("/{vm_id}/reset", response_model=schemas.ResetResponse)
def reset_vm(
    vm_id: str,
    payload: Optional[schemas.ResetRequest] = None,
    db: Session = Depends(get_db),
    client: ProxmoxClient = Depends(get_proxmox_client),
):
    """Send a reset command to an unresponsive VM through Proxmox."""
    orchestrator = ResetOrchestrator(db, client)
    try:
        outcome = orchestrator.request_reset(vm_id, payload.reason if payload else None)
    except NotFound as e:
        raise _not_found(e)
    except RetryCeilingExceeded as e:
        raise HTTPException(status_code=400, detail={"error": str(e), "details": {"resetAttempts": e.attempts, "resetRetryCount": e.ceiling}})
    except ControlPlaneTimeout as e:
        raise HTTPException(status_code=504, detail={"error": "Proxmox did not answer in time", "details": e.message})
    except ControlPlaneError as e:
        raise HTTPException(status_code=502, detail={"error": "Failed to send reset command to Proxmox", "details": e.message})
    except StoreError as e:
        raise _store_failed("Failed to process reset request", e)

    return {
        "success": True,
        "message": f"Reset command sent to {outcome.hostname}",
        "reset_attempts": outcome.reset_attempts,
        "upstream": outcome.upstream,
    }


@router.get("/{vm_id}/reset-history", response_model=List[schemas.ResetRecordOut])
def reset_history(vm_id: str, db: Session = Depends(get_db)):
    """Most recent 50 reset attempts, newest first."""
    try:
        return get_reset_history(db, vm_id)
    except NotFound as e:
        raise _not_found(e)
    except StoreError as e:
        raise _store_failed("Failed to fetch reset history", e)
