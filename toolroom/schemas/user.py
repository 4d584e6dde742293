"""User schemas for request/response validation."""
from datetime import datetime
from typing import Optional
from pydantic import EmailStr, Field

from toolroom.models.user import UserRole
from toolroom.schemas.base import CamelModel


class UserBase(CamelModel):
    """Base user schema."""
    username: str = Field(..., min_length=1, max_length=50)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    matriculation: Optional[str] = None
    department: Optional[str] = None


class UserCreate(UserBase):
    """Schema for registering a user (admin only)."""
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.USER


class UserUpdate(CamelModel):
    """Schema for updating a user."""
    username: Optional[str] = Field(None, min_length=1, max_length=50)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    matriculation: Optional[str] = None
    department: Optional[str] = None
    role: Optional[UserRole] = None
    password: Optional[str] = Field(None, min_length=6)


class UserSummary(CamelModel):
    """Compact user reference embedded in loans and audit entries."""
    id: int
    username: str
    first_name: str
    last_name: str
    department: Optional[str] = None


class UserResponse(UserBase):
    """Schema for user response. Never carries the password hash."""
    id: int
    email: Optional[str] = None
    role: UserRole
    qr_code: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class PasswordChange(CamelModel):
    """Schema for changing password."""
    current_password: str
    new_password: str = Field(..., min_length=6)


class QRCodeValidate(CamelModel):
    qr_code: str = Field(..., min_length=1)
