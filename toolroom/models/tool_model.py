"""Tool model - template stating whether tools need periodic calibration."""
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from toolroom.database import Base


class ToolModel(Base):
    __tablename__ = "tool_models"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    requires_calibration = Column(Boolean, default=False, nullable=False)
    calibration_interval_days = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    tools = relationship("Tool", back_populates="model")
