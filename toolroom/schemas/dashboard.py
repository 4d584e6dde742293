"""Dashboard statistics schema."""
from typing import List, Optional

from toolroom.schemas.base import CamelModel


class StatusBreakdownEntry(CamelModel):
    status: str
    quantity: int
    percentage: float


class RecentLoan(CamelModel):
    id: int
    tool_name: str
    tool_code: str
    user_name: str
    loan_date: str
    status: str


class UpcomingCalibration(CamelModel):
    id: int
    tool_name: str
    tool_code: str
    due_date: str
    days_remaining: int


class OverdueCalibration(CamelModel):
    id: int
    tool_name: str
    tool_code: str
    due_date: str
    days_overdue: int


class UsageGroup(CamelModel):
    name: str
    loans: int
    quantity: int


class ActivityPoint(CamelModel):
    """Loans and returns (in units) for one calendar month."""
    period: str
    loans: int
    returns: int


class DailyActivityPoint(CamelModel):
    date: str
    loans: int
    returns: int


class ToolUsage(CamelModel):
    tool_id: int
    tool_name: str
    tool_code: str
    loan_count: int


class ActiveLoanLeader(CamelModel):
    tool_id: int
    tool_name: str
    tool_code: str
    quantity_loaned: int


class LowAvailabilityTool(CamelModel):
    id: int
    tool_name: str
    tool_code: str
    quantity: int
    available_quantity: int


class OverdueLoan(CamelModel):
    id: int
    batch_id: str
    tool_name: str
    tool_code: str
    user_name: str
    quantity_loaned: int
    expected_return_date: str
    days_overdue: int


class DashboardStats(CamelModel):
    total_tools: int
    available_tools: int
    loaned_tools: int
    availability_rate: float
    calibration_alerts: int
    status_breakdown: List[StatusBreakdownEntry]
    recent_loans: List[RecentLoan]
    upcoming_calibrations: List[UpcomingCalibration]
    overdue_calibrations: List[OverdueCalibration]
    usage_by_department: List[UsageGroup]
    usage_by_class: List[UsageGroup]
    monthly_activity: List[ActivityPoint]
    loan_activity: List[DailyActivityPoint]
    top_tools: List[ToolUsage]
    active_loan_leaders: List[ActiveLoanLeader]
    low_availability_tools: List[LowAvailabilityTool]
    overdue_loans: List[OverdueLoan]
    scoped_user_id: Optional[int] = None
