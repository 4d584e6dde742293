"""Loan model."""
import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from toolroom.clock import as_utc, utcnow
from toolroom.database import Base


class LoanStatus(str, enum.Enum):
    ACTIVE = "active"
    RETURNED = "returned"
    # Never stored: reported for active loans past their expected return date
    OVERDUE = "overdue"


class Loan(Base):
    """
    One tool line handed to a recipient.
    
    Loans created by the same operator action share a ``batch_id``.
    Rows are never deleted; returning a loan only flips its status.
    """
    __tablename__ = "loans"
    
    id = Column(Integer, primary_key=True, index=True)
    tool_id = Column(Integer, ForeignKey("tools.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    operator_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    quantity_loaned = Column(Integer, default=1, nullable=False)
    batch_id = Column(String(36), nullable=False, index=True)
    status = Column(String(20), default=LoanStatus.ACTIVE.value, nullable=False, index=True)
    loan_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expected_return_date = Column(DateTime(timezone=True), nullable=True)
    return_date = Column(DateTime(timezone=True), nullable=True)
    user_confirmation = Column(Boolean, default=False, nullable=False)
    user_confirmation_date = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    tool = relationship("Tool", back_populates="loans")
    user = relationship("User", foreign_keys=[user_id], back_populates="loans")
    operator = relationship("User", foreign_keys=[operator_id], back_populates="operated_loans")

    def is_overdue(self, now: datetime = None) -> bool:
        if self.status != LoanStatus.ACTIVE.value or self.return_date is not None:
            return False
        if self.expected_return_date is None:
            return False
        return as_utc(self.expected_return_date) < (now or utcnow())

    @property
    def overdue(self) -> bool:
        return self.is_overdue()
