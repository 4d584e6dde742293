"""Authentication routes."""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from toolroom.auth import (
    authenticate_user,
    clear_session_cookie,
    create_access_token,
    get_current_user,
    get_password_hash,
    require_admin,
    set_session_cookie,
    verify_password,
)
from toolroom.database import get_db
from toolroom.errors import BusinessRuleError, NotFound, Unauthorized
from toolroom.logging_config import get_logger
from toolroom.models.audit_log import AuditAction, AuditTargetType
from toolroom.models.user import User
from toolroom.schemas.user import LoginRequest, PasswordChange, QRCodeValidate, UserCreate, UserResponse
from toolroom.services.audit import record_audit, user_snapshot
from toolroom.services.users import build_user

router = APIRouter(prefix="/auth", tags=["Authentication"])

logger = get_logger("routes.auth")


@router.post("/login", response_model=UserResponse)
async def login(
    credentials: LoginRequest,
    response: Response,
    db: Session = Depends(get_db)
):
    """Check username and password, then issue the session cookie."""
    user = authenticate_user(db, credentials.username, credentials.password)
    if not user:
        logger.warning("Failed login", extra={"username": credentials.username})
        raise Unauthorized("Invalid credentials")

    set_session_cookie(response, create_access_token(user))
    logger.info("User logged in", extra={"user_id": user.id})
    return user


@router.post("/logout")
async def logout(response: Response):
    """Drop the session cookie."""
    clear_session_cookie(response)
    return {"message": "Logged out"}


@router.get("/user", response_model=UserResponse)
async def read_current_user(current_user: User = Depends(get_current_user)):
    """Get current user information."""
    return current_user


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Create a user with a generated QR badge token (admin only)."""
    new_user = build_user(db, user_data)
    db.flush()
    record_audit(
        db, current_user, AuditTargetType.USER, AuditAction.CREATE,
        f"{current_user.display_name} created user {new_user.display_name}.",
        target_id=new_user.id, after=user_snapshot(new_user),
    )
    db.commit()
    db.refresh(new_user)
    return new_user


@router.post("/change-password")
async def change_password(
    password_data: PasswordChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Change the caller's own password."""
    if not verify_password(password_data.current_password, current_user.hashed_password):
        raise BusinessRuleError("Current password is incorrect")

    current_user.hashed_password = get_password_hash(password_data.new_password)
    record_audit(
        db, current_user, AuditTargetType.USER, AuditAction.UPDATE,
        f"{current_user.display_name} changed their password.",
        target_id=current_user.id,
    )
    db.commit()
    return {"message": "Password changed successfully"}


@router.post("/validate-qrcode", response_model=UserResponse)
async def validate_qrcode(
    payload: QRCodeValidate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Resolve a scanned badge to its user."""
    user = db.query(User).filter(User.qr_code == payload.qr_code).first()
    if not user:
        raise NotFound("Invalid QR code")
    return user
