"""Audit log model - append-only record of changes."""
import enum
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from toolroom.database import Base


class AuditAction(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    MOVE = "move"  # Loan or return of units


class AuditTargetType(str, enum.Enum):
    TOOL = "tool"
    CLASS = "class"
    MODEL = "model"
    USER = "user"
    LOAN = "loan"


class AuditLog(Base):
    """
    History log for tool room operations.
    
    Rows are written by mutating routes and never updated or deleted.
    """
    __tablename__ = "audit_logs"
    
    id = Column(Integer, primary_key=True, index=True)
    
    # Who performed the operation
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    
    target_type = Column(String(20), nullable=False, index=True)
    target_id = Column(Integer, nullable=True, index=True)
    action = Column(String(20), nullable=False)
    description = Column(Text, nullable=False)
    
    # Snapshots and extra details
    before_data = Column(JSON, nullable=True)
    after_data = Column(JSON, nullable=True)
    details = Column("metadata", JSON, nullable=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    
    # Relationships
    actor = relationship("User")
