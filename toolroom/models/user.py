"""User model and role enumeration."""
import enum
from sqlalchemy import Column, Integer, String, Enum, DateTime
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from toolroom.database import Base


class UserRole(str, enum.Enum):
    """User roles for the tool room."""
    ADMIN = "admin"
    OPERATOR = "operator"
    USER = "user"


class User(Base):
    """Tool room user: administrators, operators and loan recipients."""
    __tablename__ = "users"
    
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=True)
    matriculation = Column(String(50), unique=True, nullable=True)  # Employee id
    department = Column(String(100), nullable=True)
    role = Column(Enum(UserRole, values_callable=lambda roles: [r.value for r in roles]),
                  default=UserRole.USER, nullable=False)
    qr_code = Column(String(64), unique=True, index=True, nullable=True)  # Badge token
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    
    # Relationships
    loans = relationship("Loan", foreign_keys="Loan.user_id", back_populates="user")
    operated_loans = relationship("Loan", foreign_keys="Loan.operator_id", back_populates="operator")

    @property
    def display_name(self) -> str:
        parts = [(self.first_name or "").strip(), (self.last_name or "").strip()]
        name = " ".join(part for part in parts if part)
        return name or self.username or "Unknown user"
