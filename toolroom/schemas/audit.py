"""Audit log schemas."""
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import Field

from toolroom.schemas.base import CamelModel
from toolroom.schemas.user import UserSummary


class AuditLogResponse(CamelModel):
    id: int
    user_id: Optional[int] = None
    target_type: str
    target_id: Optional[int] = None
    action: str
    description: str
    before_data: Optional[Dict[str, Any]] = None
    after_data: Optional[Dict[str, Any]] = None
    details: Optional[Dict[str, Any]] = Field(None, serialization_alias="metadata")
    created_at: Optional[datetime] = None
    actor: Optional[UserSummary] = None
