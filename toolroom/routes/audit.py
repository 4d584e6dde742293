"""Audit log routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from toolroom.auth import require_admin
from toolroom.database import get_db
from toolroom.models.audit_log import AuditTargetType
from toolroom.models.user import User
from toolroom.schemas.audit import AuditLogResponse
from toolroom.services.audit import list_audit_logs

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("/logs", response_model=List[AuditLogResponse])
async def get_audit_logs(
    target_type: Optional[AuditTargetType] = Query(None, alias="targetType"),
    target_id: Optional[int] = Query(None, alias="targetId"),
    user_id: Optional[int] = Query(None, alias="userId", description="Filter by actor"),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Audit history, newest first (admin only)."""
    return list_audit_logs(
        db,
        target_type=target_type.value if target_type else None,
        target_id=target_id,
        user_id=user_id,
        limit=limit,
    )
