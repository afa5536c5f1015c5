import logging
from typing import Any, Callable

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from coachdesk.core.db import get_db
from coachdesk.services import table_state as ts
from coachdesk.services.authz import CurrentContext, require_context
from coachdesk.services.filter_config import apply_filter_config
from coachdesk.services.filter_groups import ActiveFilter, FilterGroup, new_node_id
from coachdesk.services.resources import Resource, get_resource, load_rows, query_table, table_columns, table_fields
from coachdesk.services.saved_views import ensure_default_view

logger = logging.getLogger("coachdesk.tables")

router = APIRouter(prefix="/tables/{resource_key}", tags=["tables"])


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class InitRequest(CamelModel):
    column_ids: list[str] | None = Field(default=None, alias="columnIds")
    initial_visibility: dict[str, bool] | None = Field(default=None, alias="initialVisibility")
    initial_sizing: dict[str, int] | None = Field(default=None, alias="initialSizing")
    initial_order: list[str] | None = Field(default=None, alias="initialOrder")
    apply_default_view: bool = Field(default=True, alias="applyDefaultView")


class SearchRequest(CamelModel):
    query: str = ""


class AddFilterRequest(CamelModel):
    id: str | None = None
    field_id: str = Field(alias="fieldId")
    field_label: str = Field(default="", alias="fieldLabel")
    operator: str
    values: list[Any] = Field(default_factory=list)
    type: str = "text"


class FilterGroupRequest(CamelModel):
    filter_group: FilterGroup | None = Field(default=None, alias="filterGroup")


class SortRequest(CamelModel):
    sort_by: str | None = Field(default=None, alias="sortBy")
    sort_order: str = Field(default="asc", alias="sortOrder")


class PageRequest(CamelModel):
    page: int = 1
    page_size: int | None = Field(default=None, alias="pageSize")


class VisibilityRequest(CamelModel):
    column_id: str | None = Field(default=None, alias="columnId")
    visible: bool = True
    visibility: dict[str, bool] | None = None


class OrderRequest(CamelModel):
    order: list[str]


class SizingRequest(CamelModel):
    column_id: str | None = Field(default=None, alias="columnId")
    size: int | None = None
    sizing: dict[str, int] | None = None


class GroupByRequest(CamelModel):
    keys: list[str | None] | None = None
    key: str | None = None


class GroupSortingRequest(CamelModel):
    level: int
    direction: str | None = None


class GroupToggleRequest(CamelModel):
    group_key: str = Field(alias="groupKey")


def resource_dep(resource_key: str) -> Resource:
    return get_resource(resource_key)


def _payload(resource_key: str, state: ts.TableState | None) -> dict[str, Any]:
    return {
        "resourceKey": resource_key,
        "initialized": state is not None,
        "state": state.to_dict() if state is not None else None,
    }


def _dispatch(ctx: CurrentContext, resource_key: str, reducer: Callable[..., ts.TableState], *args) -> dict[str, Any]:
    try:
        state = ctx.tables.dispatch(resource_key, reducer, *args)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _payload(resource_key, state)


@router.get("/state")
def get_state(resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    return _payload(resource.key, ctx.tables.get(resource.key))


@router.post("/state/init")
def init_state(
    payload: InitRequest,
    resource: Resource = Depends(resource_dep),
    ctx: CurrentContext = Depends(require_context),
    db: Session = Depends(get_db),
):
    if ctx.tables.is_initialized(resource.key):
        return _payload(resource.key, ctx.tables.get(resource.key))

    column_ids = payload.column_ids or [c.id for c in table_columns(resource.key)]
    state = ctx.tables.initialize(
        resource.key,
        column_ids,
        payload.initial_visibility,
        payload.initial_sizing,
        payload.initial_order,
    )
    if payload.apply_default_view:
        view = ensure_default_view(db, resource.key, ctx.user.id)
        if view is not None:
            try:
                state = ctx.tables.dispatch(resource.key, apply_filter_config, view.filter_config or {})
            except ValueError as e:
                logger.warning(f"Default view {view.id} for {resource.key} could not be applied: {e}")
    return _payload(resource.key, state)


@router.put("/state/search")
def set_search(payload: SearchRequest, resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    return _dispatch(ctx, resource.key, ts.set_search_query, payload.query)


@router.post("/state/filters")
def add_filter(payload: AddFilterRequest, resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    flt = ActiveFilter(
        id=payload.id or new_node_id(payload.field_id),
        field_id=payload.field_id,
        field_label=payload.field_label or payload.field_id,
        operator=payload.operator,
        values=payload.values,
        type=payload.type,
    )
    return _dispatch(ctx, resource.key, ts.add_filter, flt)


@router.delete("/state/filters/{filter_id}")
def remove_filter(filter_id: str, resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    return _dispatch(ctx, resource.key, ts.remove_filter, filter_id)


@router.delete("/state/filters")
def clear_filters(resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    return _dispatch(ctx, resource.key, ts.clear_filters)


@router.put("/state/filter-group")
def set_filter_group(payload: FilterGroupRequest, resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    return _dispatch(ctx, resource.key, ts.set_filter_group, payload.filter_group)


@router.put("/state/sort")
def set_sort(payload: SortRequest, resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    return _dispatch(ctx, resource.key, ts.set_sort, payload.sort_by, payload.sort_order)


@router.put("/state/page")
def set_page(payload: PageRequest, resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    if payload.page_size is not None:
        result = _dispatch(ctx, resource.key, ts.set_page_size, payload.page_size)
        if not result["initialized"]:
            return result
    return _dispatch(ctx, resource.key, ts.set_page, payload.page)


@router.put("/state/columns/visibility")
def set_visibility(payload: VisibilityRequest, resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    if payload.visibility is not None:
        return _dispatch(ctx, resource.key, ts.set_all_column_visibility, payload.visibility)
    if not payload.column_id:
        raise HTTPException(status_code=400, detail="columnId or visibility is required")
    state = ctx.tables.set_column_visibility(resource.key, payload.column_id, payload.visible)
    return _payload(resource.key, state)


@router.post("/state/columns/{column_id}/toggle")
def toggle_visibility(column_id: str, resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    return _dispatch(ctx, resource.key, ts.toggle_column_visibility, column_id)


@router.put("/state/columns/order")
def set_order(payload: OrderRequest, resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    return _dispatch(ctx, resource.key, ts.set_column_order, payload.order)


@router.put("/state/columns/sizing")
def set_sizing(payload: SizingRequest, resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    if payload.sizing is not None:
        return _dispatch(ctx, resource.key, ts.set_all_column_sizing, payload.sizing)
    if not payload.column_id or payload.size is None:
        raise HTTPException(status_code=400, detail="columnId and size, or sizing, are required")
    return _dispatch(ctx, resource.key, ts.set_column_sizing, payload.column_id, payload.size)


@router.put("/state/group-by")
def set_group_by(payload: GroupByRequest, resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    if payload.keys is not None:
        return _dispatch(ctx, resource.key, ts.set_group_by_keys, payload.keys)
    return _dispatch(ctx, resource.key, ts.set_group_by_key, payload.key)


@router.put("/state/group-sorting")
def set_group_sorting(payload: GroupSortingRequest, resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    return _dispatch(ctx, resource.key, ts.set_group_sorting, payload.level, payload.direction)


@router.post("/state/groups/toggle")
def toggle_group(payload: GroupToggleRequest, resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    return _dispatch(ctx, resource.key, ts.toggle_group_collapse, payload.group_key)


@router.get("/fields")
def list_fields(
    resource: Resource = Depends(resource_dep),
    ctx: CurrentContext = Depends(require_context),
    db: Session = Depends(get_db),
):
    rows = load_rows(db, resource.key)
    return [f.to_dict() for f in table_fields(resource.key, rows)]


@router.get("/columns")
def list_columns(resource: Resource = Depends(resource_dep), ctx: CurrentContext = Depends(require_context)):
    state = ctx.tables.get(resource.key)
    visibility = state.column_visibility if state else {}
    return [{**c.to_dict(), "visible": visibility.get(c.id, True)} for c in table_columns(resource.key)]


@router.get("/rows")
def list_rows(
    resource: Resource = Depends(resource_dep),
    ctx: CurrentContext = Depends(require_context),
    db: Session = Depends(get_db),
):
    state = ctx.tables.get(resource.key)
    if state is None:
        state = ts.new_table_state([c.id for c in table_columns(resource.key)])
    return query_table(db, resource.key, state)
