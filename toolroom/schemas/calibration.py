"""Calibration schemas."""
from datetime import datetime
from typing import Optional

from toolroom.schemas.base import CamelModel
from toolroom.schemas.tool import ToolSummary


class CalibrationStatusItem(CamelModel):
    """A tool that requires calibration, with its urgency."""
    id: int
    tool_name: str
    tool_code: str
    last_calibration_date: Optional[datetime] = None
    next_calibration_date: datetime
    days_remaining: int
    urgency: str


class CalibrationAlertResponse(CamelModel):
    id: int
    tool_id: int
    alert_date: Optional[datetime] = None
    due_date: datetime
    status: str
    acknowledged_by: Optional[int] = None
    acknowledged_at: Optional[datetime] = None
    tool: Optional[ToolSummary] = None


class AlertSyncResult(CamelModel):
    created: int
    pending: int
