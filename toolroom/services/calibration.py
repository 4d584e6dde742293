"""Calibration schedule derivation, urgency and alert lifecycle."""
import math
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session, joinedload

from toolroom.clock import as_utc, start_of_day, utcnow
from toolroom.errors import BusinessRuleError, NotFound
from toolroom.logging_config import get_logger
from toolroom.models.audit_log import AuditAction, AuditTargetType
from toolroom.models.calibration_alert import AlertStatus, CalibrationAlert
from toolroom.models.tool import Tool, ToolStatus
from toolroom.models.tool_model import ToolModel
from toolroom.models.user import User
from toolroom.services.audit import record_audit, tool_snapshot

logger = get_logger("calibration")

# Urgency thresholds in days remaining
URGENT_DAYS = 3
ATTENTION_DAYS = 7

SECONDS_PER_DAY = 24 * 60 * 60


def next_calibration_date(last_calibration: Optional[datetime], model: Optional[ToolModel]) -> Optional[datetime]:
    """``last + interval`` for models that require calibration, otherwise None."""
    if last_calibration is None or model is None:
        return None
    if not model.requires_calibration or not model.calibration_interval_days:
        return None
    return as_utc(last_calibration) + timedelta(days=model.calibration_interval_days)


def apply_calibration_schedule(tool: Tool, model: Optional[ToolModel]) -> None:
    tool.next_calibration_date = next_calibration_date(tool.last_calibration_date, model)


def days_remaining(due: datetime, now: Optional[datetime] = None) -> int:
    """Whole days until ``due``, rounded down; negative once it has passed."""
    now = now or utcnow()
    return math.floor((as_utc(due) - now).total_seconds() / SECONDS_PER_DAY)


def days_overdue(due: datetime, now: Optional[datetime] = None) -> int:
    """Calendar days between the due date and today."""
    now = now or utcnow()
    return abs((start_of_day(now) - start_of_day(as_utc(due))).days)


def classify_urgency(remaining: int) -> str:
    if remaining < 0:
        return "overdue"
    if remaining <= URGENT_DAYS:
        return "urgent"
    if remaining <= ATTENTION_DAYS:
        return "attention"
    return "normal"


def calibration_overview(db: Session, now: Optional[datetime] = None) -> List[dict]:
    """Tools whose model requires calibration and that have a due date, soonest first."""
    now = now or utcnow()
    tools = (
        db.query(Tool)
        .join(Tool.model)
        .filter(ToolModel.requires_calibration.is_(True), Tool.next_calibration_date.isnot(None))
        .order_by(Tool.next_calibration_date.asc(), Tool.id.asc())
        .all()
    )
    overview = []
    for tool in tools:
        remaining = days_remaining(tool.next_calibration_date, now)
        overview.append({
            "id": tool.id,
            "tool_name": tool.name,
            "tool_code": tool.code,
            "last_calibration_date": tool.last_calibration_date,
            "next_calibration_date": tool.next_calibration_date,
            "days_remaining": remaining,
            "urgency": classify_urgency(remaining),
        })
    return overview


def rederive_model_tools(db: Session, model: ToolModel) -> int:
    """Recompute due dates after a model's calibration settings changed."""
    tools = db.query(Tool).filter(Tool.model_id == model.id).all()
    for tool in tools:
        apply_calibration_schedule(tool, model)
    return len(tools)


def sync_alerts(db: Session, window_days: int, now: Optional[datetime] = None) -> dict:
    """
    Open a pending alert for every tool due within ``window_days`` (or overdue)
    that has no alert for the same due date yet.
    """
    now = now or utcnow()
    horizon = now + timedelta(days=window_days)
    due_tools = (
        db.query(Tool)
        .filter(Tool.next_calibration_date.isnot(None))
        .order_by(Tool.next_calibration_date.asc())
        .all()
    )

    created = 0
    for tool in due_tools:
        due = as_utc(tool.next_calibration_date)
        if due > horizon:
            continue
        existing = [
            alert for alert in tool.calibration_alerts
            if as_utc(alert.due_date) == due
        ]
        if existing:
            continue
        tool.calibration_alerts.append(CalibrationAlert(due_date=due, alert_date=now))
        created += 1

    db.commit()
    pending = db.query(CalibrationAlert).filter(CalibrationAlert.status == AlertStatus.PENDING.value).count()
    logger.info("Calibration alerts synced", extra={"created": created, "pending": pending})
    return {"created": created, "pending": pending}


def list_alerts(db: Session, status: Optional[str] = None) -> List[CalibrationAlert]:
    query = db.query(CalibrationAlert).options(joinedload(CalibrationAlert.tool))
    if status:
        query = query.filter(CalibrationAlert.status == status)
    return query.order_by(CalibrationAlert.due_date.asc(), CalibrationAlert.id.asc()).all()


def _get_alert(db: Session, alert_id: int) -> CalibrationAlert:
    alert = db.get(CalibrationAlert, alert_id)
    if not alert:
        raise NotFound("Calibration alert not found")
    return alert


def acknowledge_alert(db: Session, alert_id: int, user: User, now: Optional[datetime] = None) -> CalibrationAlert:
    alert = _get_alert(db, alert_id)
    if alert.status != AlertStatus.PENDING.value:
        raise BusinessRuleError("Only pending alerts can be acknowledged")
    alert.status = AlertStatus.ACKNOWLEDGED.value
    alert.acknowledged_by = user.id
    alert.acknowledged_at = now or utcnow()
    db.commit()
    db.refresh(alert)
    return alert


def record_calibration(tool: Tool, calibrated_at: datetime) -> None:
    """Register a calibration performed at ``calibrated_at`` and re-derive the due date."""
    tool.last_calibration_date = calibrated_at
    apply_calibration_schedule(tool, tool.model)
    if tool.status == ToolStatus.CALIBRATION.value:
        tool.status = ToolStatus.AVAILABLE.value


def complete_alert(db: Session, alert_id: int, user: User, now: Optional[datetime] = None) -> CalibrationAlert:
    """Close the alert and record the calibration on its tool."""
    now = now or utcnow()
    alert = _get_alert(db, alert_id)
    if alert.status == AlertStatus.COMPLETED.value:
        raise BusinessRuleError("Calibration alert already completed")

    alert.status = AlertStatus.COMPLETED.value
    if alert.acknowledged_by is None:
        alert.acknowledged_by = user.id
        alert.acknowledged_at = now
    tool = alert.tool
    before = tool_snapshot(tool)
    record_calibration(tool, now)
    record_audit(
        db, user, AuditTargetType.TOOL, AuditAction.UPDATE,
        f"{user.display_name} recorded a calibration of {tool.name} ({tool.code}).",
        target_id=tool.id, before=before, after=tool_snapshot(tool),
        details={"calibrationAlertId": alert.id},
    )

    db.commit()
    db.refresh(alert)
    logger.info("Calibration completed", extra={"tool_id": alert.tool_id, "alert_id": alert.id})
    return alert
