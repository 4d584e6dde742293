"""Tool class routes."""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from toolroom.auth import get_current_user, require_admin
from toolroom.database import get_db
from toolroom.errors import BusinessRuleError, NotFound
from toolroom.models.audit_log import AuditAction, AuditTargetType
from toolroom.models.tool import Tool
from toolroom.models.tool_class import ToolClass
from toolroom.models.user import User
from toolroom.schemas.tool_class import ToolClassCreate, ToolClassResponse, ToolClassUpdate
from toolroom.services.audit import class_snapshot, record_audit

router = APIRouter(prefix="/classes", tags=["Tool Classes"])


def get_class_or_404(db: Session, class_id: int) -> ToolClass:
    tool_class = db.get(ToolClass, class_id)
    if not tool_class:
        raise NotFound("Tool class not found")
    return tool_class


@router.get("/", response_model=List[ToolClassResponse])
async def list_classes(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List all tool classes."""
    return db.query(ToolClass).order_by(ToolClass.name.asc(), ToolClass.id.asc()).all()


@router.post("/", response_model=ToolClassResponse, status_code=status.HTTP_201_CREATED)
async def create_class(
    class_data: ToolClassCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Create a new tool class (admin only)."""
    tool_class = ToolClass(**class_data.model_dump())
    db.add(tool_class)
    db.flush()
    record_audit(
        db, current_user, AuditTargetType.CLASS, AuditAction.CREATE,
        f"{current_user.display_name} created class {tool_class.name}.",
        target_id=tool_class.id, after=class_snapshot(tool_class),
    )
    db.commit()
    db.refresh(tool_class)
    return tool_class


@router.get("/{class_id}", response_model=ToolClassResponse)
async def get_class(
    class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get a specific tool class."""
    return get_class_or_404(db, class_id)


@router.patch("/{class_id}", response_model=ToolClassResponse)
async def update_class(
    class_id: int,
    class_update: ToolClassUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Update a tool class (admin only)."""
    tool_class = get_class_or_404(db, class_id)
    before = class_snapshot(tool_class)

    update_data = class_update.model_dump(exclude_unset=True)
    if update_data.get("name") is None:
        update_data.pop("name", None)

    for field, value in update_data.items():
        setattr(tool_class, field, value)

    record_audit(
        db, current_user, AuditTargetType.CLASS, AuditAction.UPDATE,
        f"{current_user.display_name} updated class {tool_class.name}.",
        target_id=tool_class.id, before=before, after=class_snapshot(tool_class),
    )
    db.commit()
    db.refresh(tool_class)
    return tool_class


@router.delete("/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_class(
    class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Delete a tool class (admin only) - only when no tool uses it."""
    tool_class = get_class_or_404(db, class_id)

    in_use = db.query(Tool).filter(Tool.class_id == class_id).count()
    if in_use:
        raise BusinessRuleError(f"Cannot delete class: {in_use} tool(s) still belong to it")

    before = class_snapshot(tool_class)
    db.delete(tool_class)
    record_audit(
        db, current_user, AuditTargetType.CLASS, AuditAction.DELETE,
        f"{current_user.display_name} deleted class {before['name']}.",
        target_id=class_id, before=before,
    )
    db.commit()
    return None
