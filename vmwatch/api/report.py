# vmwatch/api/report.py
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from vmwatch import schemas
from vmwatch.db import get_db
from vmwatch.errors import StoreError
from vmwatch.services import ingestion

logger = logging.getLogger("vmwatch.api.report")
router = APIRouter(prefix="/api", tags=["health"])


@router.post("/health/report", response_model=schemas.ReportAck)
@router.post("/report", response_model=schemas.ReportAck, include_in_schema=False)
def report_health(payload: schemas.HealthReport, db: Session = Depends(get_db)):
    """VM agent submits its health metrics."""
    try:
        vm = ingestion.ingest(db, payload)
    except StoreError as e:
        raise HTTPException(status_code=500, detail={"error": "Failed to process health report", "details": str(e)})
    return {"success": True, "message": f"Health report received for {payload.hostname}", "vm_id": vm.id}
