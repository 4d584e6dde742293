"""Tool class schemas."""
from datetime import datetime
from typing import Optional
from pydantic import Field

from toolroom.schemas.base import CamelModel


class ToolClassBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class ToolClassCreate(ToolClassBase):
    pass


class ToolClassUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None


class ToolClassResponse(ToolClassBase):
    id: int
    created_at: Optional[datetime] = None
