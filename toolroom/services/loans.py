"""Loan lifecycle: batch creation with recipient confirmation, and returns.

A batch is checked in full before anything is written, then written in a
single transaction. Each tool is decremented with a conditional UPDATE so
two concurrent batches can never take more units than are available; if
any decrement finds too few units the whole batch is rolled back.
"""
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import case, update
from sqlalchemy.orm import Session, joinedload

from toolroom.auth import verify_password
from toolroom.clock import as_utc, utcnow
from toolroom.errors import (
    BusinessRuleError,
    ConfirmationFailed,
    InsufficientAvailability,
    NotFound,
)
from toolroom.logging_config import get_logger
from toolroom.models.audit_log import AuditAction, AuditTargetType
from toolroom.models.loan import Loan, LoanStatus
from toolroom.models.tool import Tool, ToolStatus
from toolroom.models.user import User
from toolroom.schemas.loan import LoanCreate, ManualConfirmation, QRCodeConfirmation
from toolroom.services.audit import record_audit

logger = get_logger("loans")


def _loan_query(db: Session):
    return db.query(Loan).options(
        joinedload(Loan.tool),
        joinedload(Loan.user),
        joinedload(Loan.operator),
    )


def get_loan(db: Session, loan_id: int) -> Loan:
    loan = _loan_query(db).filter(Loan.id == loan_id).first()
    if not loan:
        raise NotFound("Loan not found")
    return loan


def get_batch(db: Session, batch_id: str) -> List[Loan]:
    loans = _loan_query(db).filter(Loan.batch_id == batch_id).order_by(Loan.id.asc()).all()
    if not loans:
        raise NotFound("Loan batch not found")
    return loans


def list_loans(
    db: Session,
    status: Optional[str] = None,
    user_id: Optional[int] = None,
    batch_id: Optional[str] = None,
) -> List[Loan]:
    """Loans newest first, optionally filtered."""
    query = _loan_query(db)
    if status:
        query = query.filter(Loan.status == status)
    if user_id is not None:
        query = query.filter(Loan.user_id == user_id)
    if batch_id:
        query = query.filter(Loan.batch_id == batch_id)
    return query.order_by(Loan.loan_date.desc(), Loan.id.desc()).all()


def _matches_identifier(user: User, identifier: str) -> bool:
    identifier = identifier.strip()
    if identifier == user.username:
        return True
    return bool(user.email) and identifier.lower() == user.email.lower()


def confirm_recipient(db: Session, recipient: User, confirmation) -> None:
    """
    Authenticate the loan recipient.

    Manual confirmation never says which factor was wrong. A QR code
    must belong to the recipient itself, not to any other user.
    """
    if isinstance(confirmation, ManualConfirmation):
        if not _matches_identifier(recipient, confirmation.identifier) \
                or not verify_password(confirmation.password, recipient.hashed_password):
            raise ConfirmationFailed()
    elif isinstance(confirmation, QRCodeConfirmation):
        badge_owner = db.query(User).filter(User.qr_code == confirmation.qr_code).first()
        if badge_owner is None:
            raise ConfirmationFailed("Invalid QR code")
        if badge_owner.id != recipient.id:
            raise ConfirmationFailed("QR code does not belong to the selected user")
    else:
        raise ConfirmationFailed()


def _check_availability(db: Session, lines) -> Dict[int, Tool]:
    """Load every requested tool and verify the requested units are free."""
    requested: Dict[int, int] = {}
    for line in lines:
        requested[line.tool_id] = requested.get(line.tool_id, 0) + line.quantity_loaned

    tools: Dict[int, Tool] = {}
    for tool_id, quantity in requested.items():
        tool = db.get(Tool, tool_id)
        if not tool:
            raise NotFound(f"Tool {tool_id} not found")
        if tool.available_quantity < quantity:
            raise InsufficientAvailability(
                f"Tool {tool.code} has only {tool.available_quantity} unit(s) available"
            )
        tools[tool_id] = tool
    return tools


def _take_units(db: Session, tool: Tool, quantity: int) -> None:
    """Atomically decrement availability; mark the tool loaned when none remain."""
    result = db.execute(
        update(Tool)
        .where(Tool.id == tool.id, Tool.available_quantity >= quantity)
        .values(available_quantity=Tool.available_quantity - quantity, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InsufficientAvailability(f"Tool {tool.code} is no longer available in the requested quantity")

    db.execute(
        update(Tool)
        .where(Tool.id == tool.id, Tool.available_quantity == 0)
        .values(status=ToolStatus.LOANED.value)
        .execution_options(synchronize_session=False)
    )


def create_loan_batch(
    db: Session,
    data: LoanCreate,
    operator: User,
    now: Optional[datetime] = None,
) -> Tuple[str, List[Loan]]:
    """
    Lend one or more tools to a recipient in a single confirmed batch.

    Returns the shared batch id and the created loans. Raises NotFound,
    ConfirmationFailed or InsufficientAvailability without writing anything.
    """
    now = now or utcnow()

    recipient = db.get(User, data.user_id)
    if not recipient:
        raise NotFound("User not found")

    confirm_recipient(db, recipient, data.confirmation)
    tools = _check_availability(db, data.tools)

    batch_id = str(uuid.uuid4())
    expected_return = as_utc(data.expected_return_date) if data.expected_return_date else None
    created: List[Loan] = []
    try:
        for line in data.tools:
            tool = tools[line.tool_id]
            _take_units(db, tool, line.quantity_loaned)
            loan = Loan(
                tool_id=tool.id,
                user_id=recipient.id,
                operator_id=operator.id,
                quantity_loaned=line.quantity_loaned,
                batch_id=batch_id,
                status=LoanStatus.ACTIVE.value,
                loan_date=now,
                expected_return_date=expected_return,
                user_confirmation=True,
                user_confirmation_date=now,
                notes=data.notes,
            )
            db.add(loan)
            db.flush()
            created.append(loan)
            record_audit(
                db, operator, AuditTargetType.TOOL, AuditAction.MOVE,
                f"{operator.display_name} lent {line.quantity_loaned} x {tool.name} ({tool.code}) "
                f"to {recipient.display_name}.",
                target_id=tool.id,
                details={
                    "movement": "loan",
                    "batchId": batch_id,
                    "loanId": loan.id,
                    "quantity": line.quantity_loaned,
                    "recipientId": recipient.id,
                    "confirmationMethod": data.confirmation.method,
                },
            )
        db.commit()
    except Exception:
        db.rollback()
        raise

    for tool in tools.values():
        db.refresh(tool)

    logger.info(
        "Loan batch created",
        extra={
            "batch_id": batch_id,
            "operator_id": operator.id,
            "recipient_id": recipient.id,
            "lines": len(created),
        },
    )
    return batch_id, get_batch(db, batch_id)


def _give_back_units(db: Session, tool_id: int, quantity: int) -> None:
    """Atomically add units back, never beyond the tool's quantity."""
    restored = Tool.available_quantity + quantity
    db.execute(
        update(Tool)
        .where(Tool.id == tool_id)
        .values(
            available_quantity=case((restored > Tool.quantity, Tool.quantity), else_=restored),
            status=ToolStatus.AVAILABLE.value,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )


def return_loan(db: Session, loan_id: int, operator: User, now: Optional[datetime] = None) -> Loan:
    """
    Close an active loan and give its units back to the tool.

    The loan is flipped with a conditional UPDATE, so of two concurrent
    returns only one restores units. The tool status is reset to
    ``available`` regardless of other open loans or calibration state.
    """
    now = now or utcnow()
    loan = get_loan(db, loan_id)

    try:
        result = db.execute(
            update(Loan)
            .where(Loan.id == loan.id, Loan.status == LoanStatus.ACTIVE.value)
            .values(status=LoanStatus.RETURNED.value, return_date=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise BusinessRuleError("Loan already returned")

        _give_back_units(db, loan.tool_id, loan.quantity_loaned)
        tool = loan.tool
        record_audit(
            db, operator, AuditTargetType.TOOL, AuditAction.MOVE,
            f"{operator.display_name} registered the return of {loan.quantity_loaned} x "
            f"{tool.name} ({tool.code}).",
            target_id=tool.id,
            details={
                "movement": "return",
                "batchId": loan.batch_id,
                "loanId": loan.id,
                "quantity": loan.quantity_loaned,
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    # Rows were changed behind the identity map
    db.expire_all()
    logger.info("Loan returned", extra={"loan_id": loan_id, "operator_id": operator.id})
    return get_loan(db, loan_id)
