from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from coachdesk.core.db import get_db
from coachdesk.services import saved_views
from coachdesk.services.authz import CurrentContext, require_context
from coachdesk.services.filter_config import apply_filter_config, config_from_state
from coachdesk.services.resources import RESOURCES, table_columns

router = APIRouter(prefix="/views", tags=["views"])


class CreateViewRequest(BaseModel):
    resource_key: str
    view_name: str
    filter_config: dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False
    icon_name: str | None = None


class UpdateViewRequest(BaseModel):
    view_name: str | None = None
    filter_config: dict[str, Any] | None = None
    is_default: bool | None = None
    icon_name: str | None = None


class CaptureViewRequest(BaseModel):
    resource_key: str
    view_name: str
    is_default: bool = False
    icon_name: str | None = None


@router.get("")
def list_views(resource_key: str, ctx: CurrentContext = Depends(require_context), db: Session = Depends(get_db)):
    views = saved_views.list_views(db, resource_key, ctx.user.id)
    return [saved_views.serialize_view(v) for v in views]


@router.get("/default")
def default_view(resource_key: str, ctx: CurrentContext = Depends(require_context), db: Session = Depends(get_db)):
    view = saved_views.ensure_default_view(db, resource_key, ctx.user.id)
    return saved_views.serialize_view(view) if view else None


@router.get("/{view_id}")
def get_view(view_id: int, ctx: CurrentContext = Depends(require_context), db: Session = Depends(get_db)):
    view = saved_views.get_view(db, view_id, ctx.user.id)
    if not view:
        raise HTTPException(status_code=404, detail="Saved view not found")
    return saved_views.serialize_view(view)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_view(
    payload: CreateViewRequest,
    ctx: CurrentContext = Depends(require_context),
    db: Session = Depends(get_db),
):
    view = saved_views.create_view(
        db,
        owner_id=ctx.user.id,
        resource_key=payload.resource_key,
        view_name=payload.view_name,
        filter_config=payload.filter_config,
        is_default=payload.is_default,
        icon_name=payload.icon_name,
    )
    return saved_views.serialize_view(view)


@router.patch("/{view_id}")
def update_view(
    view_id: int,
    payload: UpdateViewRequest,
    ctx: CurrentContext = Depends(require_context),
    db: Session = Depends(get_db),
):
    view = saved_views.update_view(
        db,
        owner_id=ctx.user.id,
        view_id=view_id,
        view_name=payload.view_name,
        filter_config=payload.filter_config,
        is_default=payload.is_default,
        icon_name=payload.icon_name,
    )
    return saved_views.serialize_view(view)


@router.delete("/{view_id}")
def delete_view(view_id: int, ctx: CurrentContext = Depends(require_context), db: Session = Depends(get_db)):
    saved_views.delete_view(db, ctx.user.id, view_id)
    return {"status": "deleted", "id": view_id}


@router.post("/{view_id}/apply")
def apply_view(view_id: int, ctx: CurrentContext = Depends(require_context), db: Session = Depends(get_db)):
    view = saved_views.get_view(db, view_id, ctx.user.id)
    if not view:
        raise HTTPException(status_code=404, detail="Saved view not found")

    key = view.resource_key
    column_ids = [c.id for c in table_columns(key)] if key in RESOURCES else []
    ctx.tables.initialize(key, column_ids)
    try:
        state = ctx.tables.dispatch(key, apply_filter_config, view.filter_config or {})
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Saved view cannot be applied: {e}")
    return {"view": saved_views.serialize_view(view), "state": state.to_dict()}


@router.post("/capture", status_code=status.HTTP_201_CREATED)
def capture_view(
    payload: CaptureViewRequest,
    ctx: CurrentContext = Depends(require_context),
    db: Session = Depends(get_db),
):
    state = ctx.tables.get(payload.resource_key)
    if state is None:
        raise HTTPException(status_code=404, detail="Table state not initialized")
    view = saved_views.create_view(
        db,
        owner_id=ctx.user.id,
        resource_key=payload.resource_key,
        view_name=payload.view_name,
        filter_config=config_from_state(state),
        is_default=payload.is_default,
        icon_name=payload.icon_name,
    )
    return saved_views.serialize_view(view)
