"""User account helpers: badge tokens, registration and uniqueness checks."""
import secrets
from typing import Optional

from sqlalchemy.orm import Session

from toolroom.auth import get_password_hash
from toolroom.errors import BusinessRuleError
from toolroom.models.user import User
from toolroom.schemas.user import UserCreate

QR_CODE_LENGTH = 16
QR_CODE_ATTEMPTS = 10


def generate_unique_qr_code(db: Session) -> str:
    """Random badge token that no user holds yet."""
    for _ in range(QR_CODE_ATTEMPTS):
        candidate = secrets.token_urlsafe(QR_CODE_LENGTH)[:QR_CODE_LENGTH]
        if not db.query(User).filter(User.qr_code == candidate).first():
            return candidate
    raise BusinessRuleError(f"Could not generate a unique QR code after {QR_CODE_ATTEMPTS} attempts")


def ensure_unique_fields(
    db: Session,
    username: Optional[str] = None,
    email: Optional[str] = None,
    matriculation: Optional[str] = None,
    exclude_id: Optional[int] = None,
) -> None:
    """Raise a business-rule error when another user already owns a value."""
    checks = (
        (User.username, username, "Username already exists"),
        (User.email, email, "Email already registered"),
        (User.matriculation, matriculation, "Employee id already registered"),
    )
    for column, value, message in checks:
        if not value:
            continue
        query = db.query(User).filter(column == value)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise BusinessRuleError(message)


def build_user(db: Session, user_data: UserCreate) -> User:
    """New, unsaved user with hashed password and a fresh badge token."""
    ensure_unique_fields(
        db,
        username=user_data.username,
        email=user_data.email,
        matriculation=user_data.matriculation,
    )
    fields = user_data.model_dump(exclude={"password"})
    user = User(
        **fields,
        hashed_password=get_password_hash(user_data.password),
        qr_code=generate_unique_qr_code(db),
    )
    db.add(user)
    return user
