"""User management routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from toolroom.auth import get_current_user, get_password_hash, is_staff, require_admin
from toolroom.database import get_db
from toolroom.errors import BusinessRuleError, NotFound
from toolroom.models.audit_log import AuditAction, AuditTargetType
from toolroom.models.user import User, UserRole
from toolroom.schemas.user import UserResponse, UserUpdate
from toolroom.services.audit import record_audit, user_snapshot
from toolroom.services.users import ensure_unique_fields, generate_unique_qr_code

router = APIRouter(prefix="/users", tags=["Users"])


def serialize_user(user: User, viewer: User) -> UserResponse:
    """Badge tokens are only shown to staff and to their owner."""
    data = UserResponse.model_validate(user)
    if not is_staff(viewer) and user.id != viewer.id:
        data = data.model_copy(update={"qr_code": None})
    return data


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


@router.get("/", response_model=List[UserResponse])
async def list_users(
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    department: Optional[str] = Query(None, description="Filter by department"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List users."""
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if department:
        query = query.filter(User.department == department)
    users = query.order_by(User.first_name.asc(), User.last_name.asc(), User.id.asc()).all()
    return [serialize_user(user, current_user) for user in users]


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get a specific user."""
    return serialize_user(get_user_or_404(db, user_id), current_user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_update: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Update a user (admin only). A new password is re-hashed."""
    user = get_user_or_404(db, user_id)
    update_data = user_update.model_dump(exclude_unset=True)
    for field in ("username", "first_name", "last_name", "role"):
        if field in update_data and update_data[field] is None:
            update_data.pop(field)

    ensure_unique_fields(
        db,
        username=update_data.get("username"),
        email=update_data.get("email"),
        matriculation=update_data.get("matriculation"),
        exclude_id=user.id,
    )

    before = user_snapshot(user)
    password = update_data.pop("password", None)
    if password:
        user.hashed_password = get_password_hash(password)
    for field, value in update_data.items():
        setattr(user, field, value)

    record_audit(
        db, current_user, AuditTargetType.USER, AuditAction.UPDATE,
        f"{current_user.display_name} updated user {user.display_name}.",
        target_id=user.id, before=before, after=user_snapshot(user),
        details={"passwordChanged": True} if password else None,
    )
    db.commit()
    db.refresh(user)
    return user


@router.post("/{user_id}/qrcode", response_model=UserResponse)
async def regenerate_qr_code(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Issue a new badge token; the old one stops working."""
    user = get_user_or_404(db, user_id)
    user.qr_code = generate_unique_qr_code(db)
    record_audit(
        db, current_user, AuditTargetType.USER, AuditAction.UPDATE,
        f"{current_user.display_name} issued a new QR code for {user.display_name}.",
        target_id=user.id,
    )
    db.commit()
    db.refresh(user)
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Delete a user (admin only). Their loans stay, without the user reference."""
    if user_id == current_user.id:
        raise BusinessRuleError("You cannot delete your own account")

    user = get_user_or_404(db, user_id)
    before = user_snapshot(user)
    description = f"{current_user.display_name} deleted user {user.display_name}."

    db.delete(user)
    record_audit(
        db, current_user, AuditTargetType.USER, AuditAction.DELETE,
        description, target_id=user_id, before=before,
    )
    db.commit()
    return None
