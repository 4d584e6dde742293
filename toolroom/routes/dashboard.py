"""Dashboard routes."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from toolroom.auth import get_current_user, is_staff
from toolroom.config import settings
from toolroom.database import get_db
from toolroom.models.user import User
from toolroom.schemas.dashboard import DashboardStats
from toolroom.services.dashboard import get_dashboard_stats

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Inventory, calibration and loan statistics; users only see their own loan activity."""
    return get_dashboard_stats(
        db,
        user_id=None if is_staff(current_user) else current_user.id,
        calibration_window_days=settings.CALIBRATION_ALERT_DAYS,
        activity_months=settings.DASHBOARD_ACTIVITY_MONTHS,
    )
