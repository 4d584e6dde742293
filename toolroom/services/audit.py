"""Audit trail helpers.

Entries are added to the caller's session so they commit (or roll back)
together with the change they describe.
"""
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from toolroom.models.audit_log import AuditAction, AuditLog, AuditTargetType
from toolroom.models.tool import Tool
from toolroom.models.tool_class import ToolClass
from toolroom.models.tool_model import ToolModel
from toolroom.models.user import User, UserRole


def _json_value(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UserRole):
        return value.value
    return value


def snapshot(instance, fields) -> dict:
    """JSON-safe dict of the given attributes."""
    return {field: _json_value(getattr(instance, field)) for field in fields}


TOOL_FIELDS = (
    "id", "name", "code", "class_id", "model_id", "quantity", "available_quantity",
    "status", "last_calibration_date", "next_calibration_date",
)
CLASS_FIELDS = ("id", "name", "description")
MODEL_FIELDS = ("id", "name", "requires_calibration", "calibration_interval_days")
USER_FIELDS = (
    "id", "username", "first_name", "last_name", "email", "department", "matriculation", "role",
)


def tool_snapshot(tool: Tool) -> dict:
    return snapshot(tool, TOOL_FIELDS)


def class_snapshot(tool_class: ToolClass) -> dict:
    return snapshot(tool_class, CLASS_FIELDS)


def model_snapshot(tool_model: ToolModel) -> dict:
    return snapshot(tool_model, MODEL_FIELDS)


def user_snapshot(user: User) -> dict:
    return snapshot(user, USER_FIELDS)


def record_audit(
    db: Session,
    actor: Optional[User],
    target_type: AuditTargetType,
    action: AuditAction,
    description: str,
    target_id: Optional[int] = None,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    details: Optional[dict] = None,
) -> AuditLog:
    """Add an audit entry to the session without committing."""
    entry = AuditLog(
        user_id=actor.id if actor is not None else None,
        target_type=target_type.value,
        target_id=target_id,
        action=action.value,
        description=description,
        before_data=before,
        after_data=after,
        details=details,
    )
    db.add(entry)
    return entry


def list_audit_logs(
    db: Session,
    target_type: Optional[str] = None,
    target_id: Optional[int] = None,
    user_id: Optional[int] = None,
    limit: int = 100,
) -> List[AuditLog]:
    """Newest first, optionally narrowed to a target or an actor."""
    query = db.query(AuditLog).options(joinedload(AuditLog.actor))

    if target_type:
        query = query.filter(AuditLog.target_type == target_type)
    if target_id is not None:
        query = query.filter(AuditLog.target_id == target_id)
    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)

    return query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
