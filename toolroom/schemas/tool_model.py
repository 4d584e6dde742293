"""Tool model schemas."""
from datetime import datetime
from typing import Optional
from pydantic import Field

from toolroom.schemas.base import CamelModel


class ToolModelBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    requires_calibration: bool = False
    calibration_interval_days: Optional[int] = Field(None, gt=0)


class ToolModelCreate(ToolModelBase):
    pass


class ToolModelUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    requires_calibration: Optional[bool] = None
    calibration_interval_days: Optional[int] = Field(None, gt=0)


class ToolModelResponse(ToolModelBase):
    id: int
    created_at: Optional[datetime] = None
