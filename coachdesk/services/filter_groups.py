"""Filter predicates and nested AND/OR/NOT filter groups.

A saved view stores either a flat ``advancedFilters`` list (implicitly AND-ed)
or a ``filterGroup`` tree. All helpers here are pure: they return new objects
and never mutate their inputs.
"""
import uuid
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def new_node_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


class ActiveFilter(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    field_id: str = Field(alias="fieldId")
    field_label: str = Field(default="", alias="fieldLabel")
    operator: str
    values: list[str] = Field(default_factory=list)
    type: str = "text"

    @field_validator("values", mode="before")
    @classmethod
    def _stringify_values(cls, value):
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            value = [value]
        return ["" if v is None else str(v) for v in value]


class FilterGroup(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    operator: Literal["and", "or"] = "and"
    negate: bool = Field(default=False, alias="not")
    children: list[Union["FilterGroup", ActiveFilter]] = Field(default_factory=list)


FilterGroup.model_rebuild()

FilterNode = Union[FilterGroup, ActiveFilter]


def is_filter_group(node: FilterNode) -> bool:
    return isinstance(node, FilterGroup)


def create_root_group(source: FilterGroup | list[ActiveFilter] | None = None) -> FilterGroup:
    if source is None:
        return FilterGroup(id=new_node_id("group"), operator="and", children=[])
    if isinstance(source, FilterGroup):
        return source
    return FilterGroup(id=new_node_id("group"), operator="and", children=list(source))


def flatten_filter_group(group: FilterGroup) -> list[ActiveFilter]:
    result: list[ActiveFilter] = []

    def walk(node: FilterNode) -> None:
        if isinstance(node, FilterGroup):
            for child in node.children:
                walk(child)
        else:
            result.append(node)

    walk(group)
    return result


def add_filter_to_group(group: FilterGroup, flt: ActiveFilter, parent_group_id: str | None = None) -> FilterGroup:
    if not parent_group_id or group.id == parent_group_id:
        return group.model_copy(update={"children": [*group.children, flt]})
    return group.model_copy(
        update={
            "children": [
                add_filter_to_group(child, flt, parent_group_id) if isinstance(child, FilterGroup) else child
                for child in group.children
            ]
        }
    )


def update_filter_in_group(group: FilterGroup, flt: ActiveFilter) -> FilterGroup:
    children: list[FilterNode] = []
    for child in group.children:
        if isinstance(child, FilterGroup):
            children.append(update_filter_in_group(child, flt))
        else:
            children.append(flt if child.id == flt.id else child)
    return group.model_copy(update={"children": children})


def remove_filter_from_group(group: FilterGroup, filter_id: str) -> FilterGroup:
    children: list[FilterNode] = []
    for child in group.children:
        if isinstance(child, FilterGroup):
            children.append(remove_filter_from_group(child, filter_id))
        elif child.id != filter_id:
            children.append(child)
    return group.model_copy(update={"children": children})


def add_group_to_group(group: FilterGroup, new_group: FilterGroup, parent_group_id: str | None = None) -> FilterGroup:
    if not parent_group_id or group.id == parent_group_id:
        return group.model_copy(update={"children": [*group.children, new_group]})
    return group.model_copy(
        update={
            "children": [
                add_group_to_group(child, new_group, parent_group_id) if isinstance(child, FilterGroup) else child
                for child in group.children
            ]
        }
    )


def remove_group_from_group(group: FilterGroup, group_id: str) -> FilterGroup:
    # Removing the root only empties it.
    if group.id == group_id:
        return group.model_copy(update={"children": []})
    children: list[FilterNode] = []
    for child in group.children:
        if isinstance(child, FilterGroup):
            if child.id == group_id:
                continue
            children.append(remove_group_from_group(child, group_id))
        else:
            children.append(child)
    return group.model_copy(update={"children": children})


def is_advanced_filter_group(group: FilterGroup | None) -> bool:
    """True when the group cannot be expressed as a flat AND list."""
    if group is None:
        return False
    if group.negate or group.operator == "or":
        return True
    return any(isinstance(child, FilterGroup) for child in group.children)


def create_search_group(query: str, field_ids: list[str]) -> FilterGroup:
    needle = query.strip()
    return FilterGroup(
        id=new_node_id("search"),
        operator="or",
        children=[
            ActiveFilter(
                id=new_node_id(f"{field_id}-search"),
                field_id=field_id,
                field_label=field_id,
                operator="contains",
                values=[needle],
                type="text",
            )
            for field_id in field_ids
        ],
    )


def merge_filter_groups(primary: FilterGroup | None, secondary: FilterGroup | None) -> FilterGroup | None:
    if primary is None and secondary is None:
        return None
    if primary is not None and not primary.children:
        return secondary or primary
    if secondary is None or not secondary.children:
        return primary or secondary
    return FilterGroup(id=new_node_id("group"), operator="and", children=[primary, secondary])
