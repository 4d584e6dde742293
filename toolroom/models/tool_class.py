"""Tool class model - category label for tools (wrenches, gauges, cutters)."""
from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from toolroom.database import Base


class ToolClass(Base):
    __tablename__ = "tool_classes"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    
    # Relationships
    tools = relationship("Tool", back_populates="tool_class")
