"""Dashboard aggregation.

Everything here is read-only grouping over rows already loaded from the
database. Tool totals and calibration lists are global; loan-derived
figures are limited to one recipient when ``user_id`` is given.
Rankings use stable sorts, so ties keep query order.
"""
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from toolroom.clock import as_utc, shift_month, start_of_day, utcnow
from toolroom.models.loan import Loan, LoanStatus
from toolroom.models.tool import Tool
from toolroom.models.user import User
from toolroom.services.calibration import days_overdue, days_remaining

RECENT_LOANS_LIMIT = 10
TOP_TOOLS_LIMIT = 5
DAILY_ACTIVITY_DAYS = 14
LOW_AVAILABILITY_UNITS = 1
LOW_AVAILABILITY_RATIO = 0.2
NO_DEPARTMENT = "No department"
NO_CLASS = "Unclassified"


def _percentage(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole > 0 else 0


def _user_name(user: Optional[User]) -> str:
    return user.display_name if user is not None else ""


def _status_breakdown(tools: List[Tool], total: int) -> List[dict]:
    quantities: Dict[str, int] = {}
    for tool in tools:
        key = tool.status or "unknown"
        quantities[key] = quantities.get(key, 0) + tool.quantity
    return [
        {"status": key, "quantity": quantity, "percentage": _percentage(quantity, total)}
        for key, quantity in quantities.items()
    ]


def _calibration_lists(tools: List[Tool], now: datetime, window_days: int):
    horizon = now + timedelta(days=window_days)
    upcoming, overdue = [], []
    for tool in tools:
        if tool.next_calibration_date is None:
            continue
        due = as_utc(tool.next_calibration_date)
        if due < now:
            overdue.append({
                "id": tool.id,
                "tool_name": tool.name,
                "tool_code": tool.code,
                "due_date": due.isoformat(),
                "days_overdue": days_overdue(due, now),
            })
        elif due <= horizon:
            upcoming.append({
                "id": tool.id,
                "tool_name": tool.name,
                "tool_code": tool.code,
                "due_date": due.isoformat(),
                "days_remaining": days_remaining(due, now),
            })
    return upcoming, overdue


def _usage_groups(loans: List[Loan], key_func) -> List[dict]:
    groups: Dict[str, dict] = {}
    for loan in loans:
        name = key_func(loan)
        group = groups.setdefault(name, {"name": name, "loans": 0, "quantity": 0})
        group["loans"] += 1
        group["quantity"] += loan.quantity_loaned or 0
    return sorted(groups.values(), key=lambda group: group["quantity"], reverse=True)


def _department(loan: Loan) -> str:
    if loan.user is not None and loan.user.department:
        return loan.user.department
    return NO_DEPARTMENT


def _class_name(loan: Loan) -> str:
    if loan.tool is not None and loan.tool.tool_class is not None:
        return loan.tool.tool_class.name
    return NO_CLASS


def _monthly_activity(loans: List[Loan], now: datetime, months: int) -> List[dict]:
    """Units lent (by loan date) and returned (by return date) per calendar month."""
    keys = []
    for offset in range(months - 1, -1, -1):
        year, month = shift_month(now.year, now.month, -offset)
        keys.append(f"{year:04d}-{month:02d}")

    lent = dict.fromkeys(keys, 0)
    returned = dict.fromkeys(keys, 0)
    for loan in loans:
        quantity = loan.quantity_loaned or 0
        if loan.loan_date is not None:
            key = as_utc(loan.loan_date).strftime("%Y-%m")
            if key in lent:
                lent[key] += quantity
        if loan.return_date is not None:
            key = as_utc(loan.return_date).strftime("%Y-%m")
            if key in returned:
                returned[key] += quantity

    return [{"period": key, "loans": lent[key], "returns": returned[key]} for key in keys]


def _daily_activity(loans: List[Loan], now: datetime, days: int) -> List[dict]:
    """Units lent and returned per day over the last ``days`` days, keyed by ``date``."""
    first_day = start_of_day(now) - timedelta(days=days - 1)
    keys = [(first_day + timedelta(days=index)).strftime("%Y-%m-%d") for index in range(days)]

    lent = dict.fromkeys(keys, 0)
    returned = dict.fromkeys(keys, 0)
    for loan in loans:
        quantity = loan.quantity_loaned or 0
        if loan.loan_date is not None:
            key = as_utc(loan.loan_date).strftime("%Y-%m-%d")
            if key in lent:
                lent[key] += quantity
        if loan.return_date is not None:
            key = as_utc(loan.return_date).strftime("%Y-%m-%d")
            if key in returned:
                returned[key] += quantity

    return [{"date": key, "loans": lent[key], "returns": returned[key]} for key in keys]


def _top_tools(loans: List[Loan]) -> List[dict]:
    usage: Dict[int, dict] = {}
    for loan in loans:
        if loan.tool is None:
            continue
        entry = usage.setdefault(loan.tool.id, {
            "tool_id": loan.tool.id,
            "tool_name": loan.tool.name,
            "tool_code": loan.tool.code,
            "loan_count": 0,
        })
        entry["loan_count"] += 1
    ranked = sorted(usage.values(), key=lambda entry: entry["loan_count"], reverse=True)
    return ranked[:TOP_TOOLS_LIMIT]


def _active_loan_leaders(active_loans: List[Loan]) -> List[dict]:
    leaders: Dict[int, dict] = {}
    for loan in active_loans:
        if loan.tool is None:
            continue
        entry = leaders.setdefault(loan.tool.id, {
            "tool_id": loan.tool.id,
            "tool_name": loan.tool.name,
            "tool_code": loan.tool.code,
            "quantity_loaned": 0,
        })
        entry["quantity_loaned"] += loan.quantity_loaned or 0
    ranked = sorted(leaders.values(), key=lambda entry: entry["quantity_loaned"], reverse=True)
    return ranked[:TOP_TOOLS_LIMIT]


def is_low_availability(tool: Tool) -> bool:
    if tool.quantity <= 0:
        return False
    return (
        tool.available_quantity <= LOW_AVAILABILITY_UNITS
        or tool.available_quantity <= tool.quantity * LOW_AVAILABILITY_RATIO
    )


def _overdue_loans(active_loans: List[Loan], now: datetime) -> List[dict]:
    overdue = []
    for loan in active_loans:
        if not loan.is_overdue(now):
            continue
        expected = as_utc(loan.expected_return_date)
        overdue.append({
            "id": loan.id,
            "batch_id": loan.batch_id,
            "tool_name": loan.tool.name if loan.tool else "",
            "tool_code": loan.tool.code if loan.tool else "",
            "user_name": _user_name(loan.user),
            "quantity_loaned": loan.quantity_loaned,
            "expected_return_date": expected.isoformat(),
            "days_overdue": days_overdue(expected, now),
        })
    return overdue


def get_dashboard_stats(
    db: Session,
    user_id: Optional[int] = None,
    now: Optional[datetime] = None,
    calibration_window_days: int = 10,
    activity_months: int = 6,
) -> dict:
    now = now or utcnow()

    tools = db.query(Tool).options(joinedload(Tool.tool_class)).order_by(Tool.id.asc()).all()

    loan_query = db.query(Loan).options(
        joinedload(Loan.tool).joinedload(Tool.tool_class),
        joinedload(Loan.user),
    )
    if user_id is not None:
        loan_query = loan_query.filter(Loan.user_id == user_id)
    loans = loan_query.order_by(Loan.loan_date.desc(), Loan.id.desc()).all()
    active_loans = [loan for loan in loans if loan.status == LoanStatus.ACTIVE.value]

    total_tools = sum(tool.quantity for tool in tools)
    available_tools = sum(tool.available_quantity for tool in tools)
    upcoming, overdue = _calibration_lists(tools, now, calibration_window_days)

    recent_loans = [
        {
            "id": loan.id,
            "tool_name": loan.tool.name if loan.tool else "",
            "tool_code": loan.tool.code if loan.tool else "",
            "user_name": _user_name(loan.user),
            "loan_date": as_utc(loan.loan_date).isoformat() if loan.loan_date else "",
            "status": loan.status,
        }
        for loan in loans[:RECENT_LOANS_LIMIT]
    ]

    return {
        "total_tools": total_tools,
        "available_tools": available_tools,
        "loaned_tools": total_tools - available_tools,
        "availability_rate": _percentage(available_tools, total_tools),
        "calibration_alerts": len(upcoming),
        "status_breakdown": _status_breakdown(tools, total_tools),
        "recent_loans": recent_loans,
        "upcoming_calibrations": upcoming,
        "overdue_calibrations": overdue,
        "usage_by_department": _usage_groups(loans, _department),
        "usage_by_class": _usage_groups(loans, _class_name),
        "monthly_activity": _monthly_activity(loans, now, activity_months),
        "loan_activity": _daily_activity(loans, now, DAILY_ACTIVITY_DAYS),
        "top_tools": _top_tools(loans),
        "active_loan_leaders": _active_loan_leaders(active_loans),
        "low_availability_tools": [
            {
                "id": tool.id,
                "tool_name": tool.name,
                "tool_code": tool.code,
                "quantity": tool.quantity,
                "available_quantity": tool.available_quantity,
            }
            for tool in tools if is_low_availability(tool)
        ],
        "overdue_loans": _overdue_loans(active_loans, now),
        "scoped_user_id": user_id,
    }
