"""Serialization between ``TableState`` and the persisted filter configuration.

The persisted shape is camelCase JSON::

    {searchQuery, selected*, columnVisibility, columnOrder, columnWidths,
     sortBy, sortOrder, advancedFilters, filterGroup, groupByKeys,
     groupSorting, pageSize}

Keys starting with ``selected`` are resource specific scalar filters and are
carried through untouched.
"""
import copy
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coachdesk.core.config import get_settings
from coachdesk.services import table_state as ts
from coachdesk.services.filter_groups import ActiveFilter, FilterGroup

SCALAR_PREFIX = "selected"


class FilterConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    search_query: str | None = Field(default=None, alias="searchQuery")
    column_visibility: dict[str, bool] | None = Field(default=None, alias="columnVisibility")
    column_order: list[str] | None = Field(default=None, alias="columnOrder")
    column_widths: dict[str, int] | None = Field(default=None, alias="columnWidths")
    sort_by: str | None = Field(default=None, alias="sortBy")
    sort_order: Literal["asc", "desc"] | None = Field(default=None, alias="sortOrder")
    advanced_filters: list[ActiveFilter] | None = Field(default=None, alias="advancedFilters")
    filter_group: FilterGroup | None = Field(default=None, alias="filterGroup")
    group_by_keys: list[str | None] | None = Field(default=None, alias="groupByKeys", max_length=2)
    group_sorting: dict[str, Literal["asc", "desc"] | None] | None = Field(default=None, alias="groupSorting")
    page_size: int | None = Field(default=None, alias="pageSize", ge=1)

    @field_validator("page_size")
    @classmethod
    def _page_size_within_limit(cls, value: int | None) -> int | None:
        limit = get_settings().max_page_size
        if value is not None and value > limit:
            raise ValueError(f"Page size must be between 1 and {limit}")
        return value

    @field_validator("column_widths")
    @classmethod
    def _positive_widths(cls, value: dict[str, int] | None) -> dict[str, int] | None:
        if value and any(size <= 0 for size in value.values()):
            raise ValueError("Column size must be positive")
        return value

    def scalar_filters(self) -> dict[str, Any]:
        return {k: v for k, v in (self.model_extra or {}).items() if k.startswith(SCALAR_PREFIX)}


def parse_filter_config(raw: dict[str, Any] | None) -> FilterConfig:
    return FilterConfig.model_validate(raw or {})


def config_from_state(state: ts.TableState) -> dict[str, Any]:
    config: dict[str, Any] = {"searchQuery": state.search_query}
    config.update(copy.deepcopy(state.scalar_filters))
    config.update(
        {
            "columnVisibility": dict(state.column_visibility),
            "columnOrder": list(state.column_order),
            "columnWidths": dict(state.column_sizing),
            "sortBy": state.sort_by,
            "sortOrder": state.sort_order,
            "advancedFilters": [f.model_dump(by_alias=True) for f in state.active_filters],
            "groupByKeys": list(state.group_by_keys),
            "groupSorting": dict(state.group_sorting),
            "pageSize": state.page_size,
        }
    )
    if state.filter_group is not None:
        config["filterGroup"] = state.filter_group.model_dump(by_alias=True)
    return config


def apply_filter_config(state: ts.TableState, raw: dict[str, Any] | FilterConfig) -> ts.TableState:
    """Rehydrate ``state`` from a saved configuration.

    Only keys present in the configuration overwrite the state, except filters:
    a configuration without ``filterGroup`` or ``advancedFilters`` clears them.
    """
    config = raw if isinstance(raw, FilterConfig) else parse_filter_config(raw)
    present = config.model_fields_set

    if "search_query" in present:
        state = ts.set_search_query(state, config.search_query or "")

    if config.filter_group is None and config.advanced_filters is None:
        state = ts.clear_filters(state)
    else:
        state = ts.set_filter_group(state, config.filter_group)
        state = ts.set_active_filters(state, config.advanced_filters or [])

    if config.column_visibility is not None:
        state = ts.set_all_column_visibility(state, config.column_visibility)
    if config.column_order is not None:
        state = ts.set_column_order(state, config.column_order)
    if config.column_widths is not None:
        state = ts.set_all_column_sizing(state, config.column_widths)
    if "sort_by" in present:
        state = ts.set_sort(state, config.sort_by, config.sort_order or state.sort_order)
    elif config.sort_order is not None:
        state = ts.set_sort(state, state.sort_by, config.sort_order)
    if config.group_by_keys is not None:
        state = ts.set_group_by_keys(state, config.group_by_keys)
    if config.group_sorting:
        for level, direction in ((1, config.group_sorting.get("level1")), (2, config.group_sorting.get("level2"))):
            state = ts.set_group_sorting(state, level, direction)
    if config.page_size is not None:
        state = ts.set_page_size(state, config.page_size)

    state = ts.set_scalar_filters(state, config.scalar_filters())
    return ts.set_page(state, 1)


_LEAD_COLUMNS = [
    "id",
    "name",
    "createdDate",
    "status",
    "phone",
    "email",
    "source",
    "age",
    "birthDate",
    "height",
    "weight",
    "fitnessGoal",
    "activityLevel",
    "preferredTime",
    "notes",
]

DEFAULT_FILTER_CONFIGS: dict[str, dict[str, Any]] = {
    "leads": {
        "searchQuery": "",
        "selectedDate": None,
        "selectedStatus": None,
        "selectedAge": None,
        "selectedHeight": None,
        "selectedWeight": None,
        "selectedFitnessGoal": None,
        "selectedActivityLevel": None,
        "selectedPreferredTime": None,
        "selectedSource": None,
        "columnVisibility": {column_id: True for column_id in _LEAD_COLUMNS},
    },
    "customers": {"searchQuery": "", "selectedDate": None},
    "templates": {
        "searchQuery": "",
        "selectedDate": None,
        "selectedTags": [],
        "selectedHasLeads": "all",
        "columnVisibility": {
            "name": True,
            "description": True,
            "tags": True,
            "connectedLeads": True,
            "createdDate": True,
            "actions": True,
        },
    },
    "nutrition_templates": {
        "searchQuery": "",
        "selectedDate": None,
        "columnVisibility": {
            "name": True,
            "description": True,
            "tags": False,
            "connectedLeads": False,
            "createdDate": True,
            "actions": True,
        },
    },
    "budgets": {
        "searchQuery": "",
        "selectedDate": None,
        "columnVisibility": {
            "name": True,
            "description": True,
            "steps_goal": True,
            "createdDate": True,
            "actions": True,
        },
    },
}

DEFAULT_VIEW_NAMES = {
    "leads": "All Leads",
    "customers": "All Customers",
    "templates": "All Plans",
    "nutrition_templates": "All Nutrition Templates",
    "budgets": "All Budgets",
}


def default_filter_config(resource_key: str) -> dict[str, Any]:
    return copy.deepcopy(DEFAULT_FILTER_CONFIGS.get(resource_key, {"searchQuery": "", "selectedDate": None}))


def default_view_name(resource_key: str) -> str:
    return DEFAULT_VIEW_NAMES.get(resource_key, "All Records")
