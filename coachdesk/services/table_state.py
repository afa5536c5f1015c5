"""Per-resource table state: search, filters, sort, paging, columns and grouping.

``TableState`` is immutable. The module-level reducers take a state and return
a new one; ``TableStateStore`` keeps the latest state per resource key and
``TableStateRegistry`` hands out one store per owner.
"""
import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from coachdesk.core.config import get_settings
from coachdesk.services.filter_groups import ActiveFilter, FilterGroup

logger = logging.getLogger("coachdesk.table_state")

SORT_ORDERS = ("asc", "desc")
MAX_GROUP_LEVELS = 2


@dataclass(frozen=True)
class TableState:
    column_visibility: dict[str, bool] = field(default_factory=dict)
    column_sizing: dict[str, int] = field(default_factory=dict)
    column_order: list[str] = field(default_factory=list)
    search_query: str = ""
    active_filters: list[ActiveFilter] = field(default_factory=list)
    filter_group: FilterGroup | None = None
    sort_by: str | None = None
    sort_order: str = "desc"
    page: int = 1
    page_size: int = 25
    group_by_keys: tuple[str | None, str | None] = (None, None)
    group_sorting: dict[str, str | None] = field(default_factory=lambda: {"level1": None, "level2": None})
    collapsed_groups: list[str] = field(default_factory=list)
    # Resource specific scalar filters (selectedDate, selectedStatus, ...).
    scalar_filters: dict[str, Any] = field(default_factory=dict)

    @property
    def group_by_key(self) -> str | None:
        return self.group_by_keys[0]

    def to_dict(self) -> dict[str, Any]:
        return {
            "searchQuery": self.search_query,
            "activeFilters": [f.model_dump(by_alias=True) for f in self.active_filters],
            "filterGroup": self.filter_group.model_dump(by_alias=True) if self.filter_group else None,
            "sortBy": self.sort_by,
            "sortOrder": self.sort_order,
            "page": self.page,
            "pageSize": self.page_size,
            "columnVisibility": dict(self.column_visibility),
            "columnSizing": dict(self.column_sizing),
            "columnOrder": list(self.column_order),
            "groupByKeys": list(self.group_by_keys),
            "groupSorting": dict(self.group_sorting),
            "collapsedGroups": list(self.collapsed_groups),
            "scalarFilters": dict(self.scalar_filters),
        }


def new_table_state(
    column_ids: list[str],
    initial_visibility: dict[str, bool] | None = None,
    initial_sizing: dict[str, int] | None = None,
    initial_order: list[str] | None = None,
    page_size: int | None = None,
) -> TableState:
    visibility = {}
    for column_id in column_ids:
        visible = (initial_visibility or {}).get(column_id)
        visibility[column_id] = True if visible is None else bool(visible)
    return TableState(
        column_visibility=visibility,
        column_sizing=dict(initial_sizing or {}),
        column_order=list(initial_order or column_ids),
        page_size=page_size or get_settings().default_page_size,
    )


def set_search_query(state: TableState, query: str) -> TableState:
    return replace(state, search_query=query or "", page=1)


def add_filter(state: TableState, flt: ActiveFilter) -> TableState:
    return replace(state, active_filters=[*state.active_filters, flt], page=1)


def remove_filter(state: TableState, filter_id: str) -> TableState:
    return replace(state, active_filters=[f for f in state.active_filters if f.id != filter_id], page=1)


def clear_filters(state: TableState) -> TableState:
    return replace(state, active_filters=[], filter_group=None, page=1)


def set_active_filters(state: TableState, filters: list[ActiveFilter]) -> TableState:
    return replace(state, active_filters=list(filters), page=1)


def set_filter_group(state: TableState, group: FilterGroup | None) -> TableState:
    return replace(state, filter_group=group, page=1)


def set_scalar_filters(state: TableState, scalars: dict[str, Any]) -> TableState:
    return replace(state, scalar_filters=dict(scalars))


def set_sort(state: TableState, sort_by: str | None, sort_order: str = "asc") -> TableState:
    if sort_order not in SORT_ORDERS:
        raise ValueError(f"Unknown sort order: {sort_order}")
    return replace(state, sort_by=sort_by or None, sort_order=sort_order)


def set_page(state: TableState, page: int) -> TableState:
    if page < 1:
        raise ValueError("Page must be 1 or greater")
    return replace(state, page=page)


def set_page_size(state: TableState, page_size: int) -> TableState:
    limit = get_settings().max_page_size
    if page_size < 1 or page_size > limit:
        raise ValueError(f"Page size must be between 1 and {limit}")
    return replace(state, page_size=page_size, page=1)


def set_column_visibility(state: TableState, column_id: str, visible: bool) -> TableState:
    return replace(state, column_visibility={**state.column_visibility, column_id: visible})


def toggle_column_visibility(state: TableState, column_id: str) -> TableState:
    current = state.column_visibility.get(column_id)
    # Unknown columns are treated as visible, so the first toggle hides them.
    return set_column_visibility(state, column_id, False if current is None else not current)


def set_all_column_visibility(state: TableState, visibility: dict[str, bool]) -> TableState:
    return replace(state, column_visibility=dict(visibility))


def set_column_sizing(state: TableState, column_id: str, size: int) -> TableState:
    if size <= 0:
        raise ValueError("Column size must be positive")
    return replace(state, column_sizing={**state.column_sizing, column_id: size})


def set_all_column_sizing(state: TableState, sizing: dict[str, int]) -> TableState:
    return replace(state, column_sizing=dict(sizing))


def set_column_order(state: TableState, order: list[str]) -> TableState:
    return replace(state, column_order=list(order))


def set_group_by_keys(state: TableState, keys: list[str | None] | tuple[str | None, ...]) -> TableState:
    keys = list(keys)
    if len(keys) > MAX_GROUP_LEVELS:
        raise ValueError(f"At most {MAX_GROUP_LEVELS} grouping levels are supported")
    keys += [None] * (MAX_GROUP_LEVELS - len(keys))
    level1, level2 = (k or None for k in keys)
    if level1 is None and level2 is not None:
        level1, level2 = level2, None
    return replace(state, group_by_keys=(level1, level2), collapsed_groups=[])


def set_group_by_key(state: TableState, key: str | None) -> TableState:
    return set_group_by_keys(state, [key, None])


def set_group_sorting(state: TableState, level: int, direction: str | None) -> TableState:
    if level not in (1, 2):
        raise ValueError("Group level must be 1 or 2")
    if direction is not None and direction not in SORT_ORDERS:
        raise ValueError(f"Unknown sort order: {direction}")
    return replace(state, group_sorting={**state.group_sorting, f"level{level}": direction})


def toggle_group_collapse(state: TableState, group_key: str) -> TableState:
    if group_key in state.collapsed_groups:
        collapsed = [k for k in state.collapsed_groups if k != group_key]
    else:
        collapsed = [*state.collapsed_groups, group_key]
    return replace(state, collapsed_groups=collapsed)


class TableStateStore:
    """Latest ``TableState`` per resource key for a single owner.

    Reads, reducers and writes for one owner run under a single lock, so
    concurrent requests from the same owner never drop each other's updates.
    """

    def __init__(self) -> None:
        self._tables: dict[str, TableState] = {}
        self._lock = threading.RLock()

    def get(self, resource_key: str) -> TableState | None:
        with self._lock:
            return self._tables.get(resource_key)

    def is_initialized(self, resource_key: str) -> bool:
        with self._lock:
            return resource_key in self._tables

    def initialize(
        self,
        resource_key: str,
        column_ids: list[str],
        initial_visibility: dict[str, bool] | None = None,
        initial_sizing: dict[str, int] | None = None,
        initial_order: list[str] | None = None,
    ) -> TableState:
        with self._lock:
            existing = self._tables.get(resource_key)
            if existing is not None:
                return existing
            state = new_table_state(column_ids, initial_visibility, initial_sizing, initial_order)
            self._tables[resource_key] = state
            return state

    def dispatch(self, resource_key: str, reducer: Callable[..., TableState], *args, **kwargs) -> TableState | None:
        with self._lock:
            state = self._tables.get(resource_key)
            if state is None:
                logger.debug(f"Ignoring {reducer.__name__} for uninitialized table {resource_key}")
                return None
            updated = reducer(state, *args, **kwargs)
            self._tables[resource_key] = updated
            return updated

    def set_column_visibility(self, resource_key: str, column_id: str, visible: bool) -> TableState:
        with self._lock:
            if resource_key not in self._tables:
                self._tables[resource_key] = TableState(
                    column_visibility={column_id: visible},
                    column_order=[column_id],
                    page_size=get_settings().default_page_size,
                )
                return self._tables[resource_key]
            return self.dispatch(resource_key, set_column_visibility, column_id, visible)


class TableStateRegistry:
    def __init__(self) -> None:
        self._stores: dict[int, TableStateStore] = {}
        self._lock = threading.Lock()

    def for_owner(self, owner_id: int) -> TableStateStore:
        with self._lock:
            store = self._stores.get(owner_id)
            if store is None:
                store = TableStateStore()
                self._stores[owner_id] = store
            return store

    def clear(self) -> None:
        with self._lock:
            self._stores.clear()
