"""Tool model and status enumeration."""
import enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from toolroom.database import Base


class ToolStatus(str, enum.Enum):
    AVAILABLE = "available"
    LOANED = "loaned"
    CALIBRATION = "calibration"
    OUT_OF_SERVICE = "out_of_service"


class Tool(Base):
    """
    A loanable tool type held in some quantity.
    
    ``available_quantity`` is the part of ``quantity`` not currently on loan.
    ``next_calibration_date`` is derived from the last calibration and the
    model's interval, never set directly by clients.
    """
    __tablename__ = "tools"
    __table_args__ = (
        CheckConstraint("available_quantity >= 0", name="ck_tools_available_non_negative"),
        CheckConstraint("available_quantity <= quantity", name="ck_tools_available_within_quantity"),
    )
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(100), unique=True, index=True, nullable=False)
    class_id = Column(Integer, ForeignKey("tool_classes.id"), nullable=True)
    model_id = Column(Integer, ForeignKey("tool_models.id"), nullable=True)
    quantity = Column(Integer, default=1, nullable=False)
    available_quantity = Column(Integer, default=1, nullable=False)
    status = Column(String(20), default=ToolStatus.AVAILABLE.value, nullable=False)
    last_calibration_date = Column(DateTime(timezone=True), nullable=True)
    next_calibration_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    
    # Relationships
    tool_class = relationship("ToolClass", back_populates="tools")
    model = relationship("ToolModel", back_populates="tools")
    loans = relationship("Loan", back_populates="tool")
    calibration_alerts = relationship("CalibrationAlert", back_populates="tool", cascade="all, delete-orphan")
