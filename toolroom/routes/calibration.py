"""Calibration routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from toolroom.auth import get_current_user, require_operator
from toolroom.config import settings
from toolroom.database import get_db
from toolroom.models.calibration_alert import AlertStatus
from toolroom.models.user import User
from toolroom.schemas.calibration import AlertSyncResult, CalibrationAlertResponse, CalibrationStatusItem
from toolroom.services import calibration as calibration_service

router = APIRouter(prefix="/calibration", tags=["Calibration"])


@router.get("/", response_model=List[CalibrationStatusItem])
async def calibration_overview(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Tools that require calibration, soonest due first, with urgency."""
    return calibration_service.calibration_overview(db)


@router.get("/alerts", response_model=List[CalibrationAlertResponse])
async def list_alerts(
    status_filter: Optional[AlertStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List calibration alerts."""
    return calibration_service.list_alerts(db, status_filter.value if status_filter else None)


@router.post("/alerts/sync", response_model=AlertSyncResult)
async def sync_alerts(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operator)
):
    """Open alerts for tools due within the alert window (operator or admin)."""
    return calibration_service.sync_alerts(db, settings.CALIBRATION_ALERT_DAYS)


@router.post("/alerts/{alert_id}/acknowledge", response_model=CalibrationAlertResponse)
async def acknowledge_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operator)
):
    return calibration_service.acknowledge_alert(db, alert_id, current_user)


@router.post("/alerts/{alert_id}/complete", response_model=CalibrationAlertResponse)
async def complete_alert(
    alert_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operator)
):
    """Close the alert and record today's calibration on the tool."""
    return calibration_service.complete_alert(db, alert_id, current_user)
