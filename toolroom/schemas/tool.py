"""Tool schemas for request/response validation."""
from datetime import datetime
from typing import Optional
from pydantic import Field

from toolroom.models.tool import ToolStatus
from toolroom.schemas.base import CamelModel
from toolroom.schemas.tool_class import ToolClassResponse
from toolroom.schemas.tool_model import ToolModelResponse


class ToolBase(CamelModel):
    """Base tool schema."""
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=100)
    class_id: Optional[int] = None
    model_id: Optional[int] = None
    quantity: int = Field(1, ge=0)
    status: ToolStatus = ToolStatus.AVAILABLE
    last_calibration_date: Optional[datetime] = None


class ToolCreate(ToolBase):
    """Available quantity and next calibration date are derived, not accepted."""
    pass


class ToolUpdate(CamelModel):
    """Schema for updating a tool."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    code: Optional[str] = Field(None, min_length=1, max_length=100)
    class_id: Optional[int] = None
    model_id: Optional[int] = None
    quantity: Optional[int] = Field(None, ge=0)
    status: Optional[ToolStatus] = None
    last_calibration_date: Optional[datetime] = None


class ToolSummary(CamelModel):
    """Compact tool reference embedded in loans."""
    id: int
    name: str
    code: str


class ToolResponse(ToolBase):
    """Schema for tool response."""
    id: int
    available_quantity: int
    next_calibration_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    tool_class: Optional[ToolClassResponse] = None
    model: Optional[ToolModelResponse] = None
