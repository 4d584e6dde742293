"""Tool routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import and_, case, update
from sqlalchemy.orm import Session, joinedload

from toolroom.auth import get_current_user, require_admin
from toolroom.clock import as_utc, utcnow
from toolroom.database import get_db
from toolroom.errors import BusinessRuleError, NotFound
from toolroom.models.audit_log import AuditAction, AuditTargetType
from toolroom.models.loan import Loan
from toolroom.models.tool import Tool, ToolStatus
from toolroom.models.tool_class import ToolClass
from toolroom.models.tool_model import ToolModel
from toolroom.models.user import User
from toolroom.schemas.tool import ToolCreate, ToolResponse, ToolUpdate
from toolroom.services.audit import record_audit, tool_snapshot
from toolroom.services.calibration import apply_calibration_schedule

router = APIRouter(prefix="/tools", tags=["Tools"])


def _tool_query(db: Session):
    return db.query(Tool).options(joinedload(Tool.tool_class), joinedload(Tool.model))


def get_tool_or_404(db: Session, tool_id: int) -> Tool:
    tool = _tool_query(db).filter(Tool.id == tool_id).first()
    if not tool:
        raise NotFound("Tool not found")
    return tool


def _check_references(db: Session, class_id: Optional[int], model_id: Optional[int]) -> Optional[ToolModel]:
    """Validate class and model ids; return the model, if any."""
    if class_id is not None and not db.get(ToolClass, class_id):
        raise NotFound("Tool class not found")
    if model_id is None:
        return None
    tool_model = db.get(ToolModel, model_id)
    if not tool_model:
        raise NotFound("Tool model not found")
    return tool_model


def _check_code_unique(db: Session, code: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Tool).filter(Tool.code == code)
    if exclude_id is not None:
        query = query.filter(Tool.id != exclude_id)
    if query.first():
        raise BusinessRuleError("Tool code already exists")


def _resize_stock(db: Session, tool: Tool, quantity: int) -> None:
    """
    Set the total quantity in one conditional UPDATE, moving availability by
    the same delta. A tool left with no free units while some are on loan
    becomes ``loaned``; a ``loaned`` tool that gains free units is available again.
    """
    on_loan = Tool.quantity - Tool.available_quantity
    available = Tool.available_quantity + (quantity - Tool.quantity)
    result = db.execute(
        update(Tool)
        .where(Tool.id == tool.id, on_loan <= quantity)
        .values(
            quantity=quantity,
            available_quantity=available,
            status=case(
                (and_(available == 0, on_loan > 0), ToolStatus.LOANED.value),
                (and_(available > 0, Tool.status == ToolStatus.LOANED.value), ToolStatus.AVAILABLE.value),
                else_=Tool.status,
            ),
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    db.refresh(tool)
    if result.rowcount != 1:
        raise BusinessRuleError(
            f"Quantity cannot be lower than the {tool.quantity - tool.available_quantity} unit(s) currently on loan"
        )


@router.get("/", response_model=List[ToolResponse])
async def list_tools(
    search: Optional[str] = Query(None, description="Search by name or code"),
    class_id: Optional[int] = Query(None, alias="classId", description="Filter by class"),
    model_id: Optional[int] = Query(None, alias="modelId", description="Filter by model"),
    status_filter: Optional[ToolStatus] = Query(None, alias="status", description="Filter by status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """List tools with their class and model."""
    query = _tool_query(db)

    if search:
        search_term = f"%{search}%"
        query = query.filter((Tool.name.ilike(search_term)) | (Tool.code.ilike(search_term)))
    if class_id is not None:
        query = query.filter(Tool.class_id == class_id)
    if model_id is not None:
        query = query.filter(Tool.model_id == model_id)
    if status_filter:
        query = query.filter(Tool.status == status_filter.value)

    return query.order_by(Tool.name.asc(), Tool.id.asc()).all()


@router.post("/", response_model=ToolResponse, status_code=status.HTTP_201_CREATED)
async def create_tool(
    tool_data: ToolCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Create a new tool (admin only). Every unit starts available."""
    tool_model = _check_references(db, tool_data.class_id, tool_data.model_id)
    _check_code_unique(db, tool_data.code)

    data = tool_data.model_dump()
    data["status"] = tool_data.status.value
    if data["last_calibration_date"] is not None:
        data["last_calibration_date"] = as_utc(data["last_calibration_date"])

    tool = Tool(**data, available_quantity=tool_data.quantity)
    apply_calibration_schedule(tool, tool_model)
    db.add(tool)
    db.flush()

    record_audit(
        db, current_user, AuditTargetType.TOOL, AuditAction.CREATE,
        f"{current_user.display_name} created tool {tool.name} ({tool.code}).",
        target_id=tool.id, after=tool_snapshot(tool),
    )
    db.commit()
    return get_tool_or_404(db, tool.id)


@router.get("/{tool_id}", response_model=ToolResponse)
async def get_tool(
    tool_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get a specific tool."""
    return get_tool_or_404(db, tool_id)


@router.patch("/{tool_id}", response_model=ToolResponse)
async def update_tool(
    tool_id: int,
    tool_update: ToolUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """
    Update a tool (admin only).

    Changing ``quantity`` moves ``availableQuantity`` by the same amount.
    Changing the last calibration date, or the model while a calibration
    date exists, re-derives the next calibration date.
    """
    tool = get_tool_or_404(db, tool_id)
    update_data = tool_update.model_dump(exclude_unset=True)
    for field in ("name", "code"):
        if field in update_data and update_data[field] is None:
            update_data.pop(field)
    before = tool_snapshot(tool)

    tool_model = tool.model
    if "class_id" in update_data or "model_id" in update_data:
        tool_model = _check_references(
            db,
            update_data.get("class_id"),
            update_data.get("model_id", tool.model_id),
        )
    if update_data.get("code") and update_data["code"] != tool.code:
        _check_code_unique(db, update_data["code"], exclude_id=tool.id)

    new_quantity = update_data.pop("quantity", None)
    if new_quantity is not None:
        _resize_stock(db, tool, new_quantity)

    if update_data.get("status") is not None:
        update_data["status"] = update_data["status"].value
    elif "status" in update_data:
        update_data.pop("status")

    if update_data.get("last_calibration_date") is not None:
        update_data["last_calibration_date"] = as_utc(update_data["last_calibration_date"])

    for field, value in update_data.items():
        setattr(tool, field, value)

    calibration_changed = "last_calibration_date" in update_data
    model_changed = "model_id" in update_data and tool.last_calibration_date is not None
    if calibration_changed or model_changed:
        apply_calibration_schedule(tool, tool_model)

    record_audit(
        db, current_user, AuditTargetType.TOOL, AuditAction.UPDATE,
        f"{current_user.display_name} updated tool {tool.name} ({tool.code}).",
        target_id=tool.id, before=before, after=tool_snapshot(tool),
    )
    db.commit()
    db.expire(tool)
    return get_tool_or_404(db, tool.id)


@router.delete("/{tool_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_tool(
    tool_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Delete a tool (admin only) - refused once it has loan history."""
    tool = get_tool_or_404(db, tool_id)

    loan_count = db.query(Loan).filter(Loan.tool_id == tool_id).count()
    if loan_count:
        raise BusinessRuleError("Cannot delete a tool with loan history")

    before = tool_snapshot(tool)
    db.delete(tool)
    record_audit(
        db, current_user, AuditTargetType.TOOL, AuditAction.DELETE,
        f"{current_user.display_name} deleted tool {before['name']} ({before['code']}).",
        target_id=tool_id, before=before,
    )
    db.commit()
    return None
