"""Loan schemas.

The recipient confirmation is a tagged union on ``method`` so handlers
receive either a manual (identifier + password) or a QR code payload,
never a mix of optional fields.
"""
from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union
from pydantic import Field

from toolroom.schemas.base import CamelModel
from toolroom.schemas.tool import ToolSummary
from toolroom.schemas.user import UserSummary


class LoanLine(CamelModel):
    tool_id: int
    quantity_loaned: int = Field(..., gt=0)


class ManualConfirmation(CamelModel):
    method: Literal["manual"]
    identifier: str = Field(..., min_length=1)  # Username or email
    password: str = Field(..., min_length=1)


class QRCodeConfirmation(CamelModel):
    method: Literal["qrcode"]
    qr_code: str = Field(..., min_length=1)


Confirmation = Annotated[
    Union[ManualConfirmation, QRCodeConfirmation],
    Field(discriminator="method"),
]


class LoanCreate(CamelModel):
    """Schema for creating a batch of loans for one recipient."""
    tools: List[LoanLine] = Field(..., min_length=1)
    user_id: int
    confirmation: Confirmation
    expected_return_date: Optional[datetime] = None
    notes: Optional[str] = None


class LoanResponse(CamelModel):
    id: int
    tool_id: int
    user_id: Optional[int] = None
    operator_id: Optional[int] = None
    quantity_loaned: int
    batch_id: str
    status: str
    overdue: bool = False
    loan_date: datetime
    expected_return_date: Optional[datetime] = None
    return_date: Optional[datetime] = None
    user_confirmation: bool
    user_confirmation_date: Optional[datetime] = None
    notes: Optional[str] = None
    tool: Optional[ToolSummary] = None
    user: Optional[UserSummary] = None
    operator: Optional[UserSummary] = None


class LoanBatchResponse(CamelModel):
    """All loans created (or found) for one batch."""
    batch_id: str
    loans: List[LoanResponse]
