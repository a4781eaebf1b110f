# vmwatch/api/status.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from vmwatch import schemas
from vmwatch.db import get_db
from vmwatch.errors import StoreError
from vmwatch.services import status

router = APIRouter(prefix="/api/status", tags=["status"])


@router.get("", response_model=schemas.FleetStatusOut)
def get_status(db: Session = Depends(get_db)):
    """Fleet health counts and the active configuration."""
    try:
        return status.aggregate(db)
    except StoreError as e:
        raise HTTPException(status_code=500, detail={"error": "Failed to fetch system status", "details": str(e)})


@router.put("/config", response_model=schemas.ConfigUpdateOut)
def update_config(payload: schemas.FleetConfigUpdate, db: Session = Depends(get_db)):
    """Only the supplied fields change; the rest keep their stored or default values."""
    try:
        cfg = status.update_config(db, payload.changes())
    except StoreError as e:
        raise HTTPException(status_code=500, detail={"error": "Failed to update configuration", "details": str(e)})
    return {"message": "Configuration updated", "config": cfg}
