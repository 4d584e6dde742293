"""Loan routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from toolroom.auth import get_current_user, is_staff, require_operator
from toolroom.database import get_db
from toolroom.errors import NotFound
from toolroom.models.loan import LoanStatus
from toolroom.models.user import User
from toolroom.schemas.loan import LoanBatchResponse, LoanCreate, LoanResponse
from toolroom.services import loans as loan_service

router = APIRouter(prefix="/loans", tags=["Loans"])


@router.get("/", response_model=List[LoanResponse])
async def list_loans(
    status_filter: Optional[LoanStatus] = Query(None, alias="status", description="Filter by status"),
    user_id: Optional[int] = Query(None, alias="userId", description="Filter by recipient"),
    batch_id: Optional[str] = Query(None, alias="batchId", description="Filter by batch"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """All loans for operators and admins; plain users only see their own active loans."""
    if not is_staff(current_user):
        return loan_service.list_loans(db, status=LoanStatus.ACTIVE.value, user_id=current_user.id)

    status_value = status_filter.value if status_filter else None
    if status_filter == LoanStatus.OVERDUE:
        loans = loan_service.list_loans(db, status=LoanStatus.ACTIVE.value, user_id=user_id, batch_id=batch_id)
        return [loan for loan in loans if loan.is_overdue()]
    return loan_service.list_loans(db, status=status_value, user_id=user_id, batch_id=batch_id)


@router.post("/", response_model=LoanBatchResponse, status_code=status.HTTP_201_CREATED)
async def create_loans(
    loan_data: LoanCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operator)
):
    """Lend tools to a user who confirms with password or QR badge (operator or admin)."""
    batch_id, loans = loan_service.create_loan_batch(db, loan_data, current_user)
    return {"batch_id": batch_id, "loans": loans}


@router.get("/batch/{batch_id}", response_model=LoanBatchResponse)
async def get_loan_batch(
    batch_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Every loan of one batch, as needed for the custody document."""
    loans = loan_service.get_batch(db, batch_id)
    if not is_staff(current_user) and any(loan.user_id != current_user.id for loan in loans):
        raise NotFound("Loan batch not found")
    return {"batch_id": batch_id, "loans": loans}


@router.get("/{loan_id}", response_model=LoanResponse)
async def get_loan(
    loan_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get a specific loan."""
    loan = loan_service.get_loan(db, loan_id)
    if not is_staff(current_user) and loan.user_id != current_user.id:
        raise NotFound("Loan not found")
    return loan


@router.patch("/{loan_id}/return", response_model=LoanResponse)
async def return_loan(
    loan_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_operator)
):
    """Register the return of a loan (operator or admin)."""
    return loan_service.return_loan(db, loan_id, current_user)
