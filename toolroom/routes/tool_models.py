"""Tool model routes."""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from toolroom.auth import get_current_user, require_admin
from toolroom.database import get_db
from toolroom.errors import BusinessRuleError, NotFound
from toolroom.models.audit_log import AuditAction, AuditTargetType
from toolroom.models.tool import Tool
from toolroom.models.tool_model import ToolModel
from toolroom.models.user import User
from toolroom.schemas.tool_model import ToolModelCreate, ToolModelResponse, ToolModelUpdate
from toolroom.services.audit import model_snapshot, record_audit
from toolroom.services.calibration import rederive_model_tools

router = APIRouter(prefix="/models", tags=["Tool Models"])

CALIBRATION_FIELDS = {"requires_calibration", "calibration_interval_days"}


def get_model_or_404(db: Session, model_id: int) -> ToolModel:
    tool_model = db.get(ToolModel, model_id)
    if not tool_model:
        raise NotFound("Tool model not found")
    return tool_model


@router.get("/", response_model=List[ToolModelResponse])
async def list_models(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List all tool models."""
    return db.query(ToolModel).order_by(ToolModel.name.asc(), ToolModel.id.asc()).all()


@router.post("/", response_model=ToolModelResponse, status_code=status.HTTP_201_CREATED)
async def create_model(
    model_data: ToolModelCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Create a new tool model (admin only)."""
    tool_model = ToolModel(**model_data.model_dump())
    db.add(tool_model)
    db.flush()
    record_audit(
        db, current_user, AuditTargetType.MODEL, AuditAction.CREATE,
        f"{current_user.display_name} created model {tool_model.name}.",
        target_id=tool_model.id, after=model_snapshot(tool_model),
    )
    db.commit()
    db.refresh(tool_model)
    return tool_model


@router.get("/{model_id}", response_model=ToolModelResponse)
async def get_model(
    model_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get a specific tool model."""
    return get_model_or_404(db, model_id)


@router.patch("/{model_id}", response_model=ToolModelResponse)
async def update_model(
    model_id: int,
    model_update: ToolModelUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Update a tool model (admin only). Calibration changes re-derive tool due dates."""
    tool_model = get_model_or_404(db, model_id)
    before = model_snapshot(tool_model)
    update_data = model_update.model_dump(exclude_unset=True)
    for field in ("name", "requires_calibration"):
        if field in update_data and update_data[field] is None:
            update_data.pop(field)

    for field, value in update_data.items():
        setattr(tool_model, field, value)

    details = None
    if CALIBRATION_FIELDS & update_data.keys():
        details = {"toolsRecalculated": rederive_model_tools(db, tool_model)}

    record_audit(
        db, current_user, AuditTargetType.MODEL, AuditAction.UPDATE,
        f"{current_user.display_name} updated model {tool_model.name}.",
        target_id=tool_model.id, before=before, after=model_snapshot(tool_model),
        details=details,
    )
    db.commit()
    db.refresh(tool_model)
    return tool_model


@router.delete("/{model_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_model(
    model_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Delete a tool model (admin only) - only when no tool uses it."""
    tool_model = get_model_or_404(db, model_id)

    in_use = db.query(Tool).filter(Tool.model_id == model_id).count()
    if in_use:
        raise BusinessRuleError(f"Cannot delete model: {in_use} tool(s) still use it")

    before = model_snapshot(tool_model)
    db.delete(tool_model)
    record_audit(
        db, current_user, AuditTargetType.MODEL, AuditAction.DELETE,
        f"{current_user.display_name} deleted model {before['name']}.",
        target_id=model_id, before=before,
    )
    db.commit()
    return None
