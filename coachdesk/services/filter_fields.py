"""Column definitions and filter-field generation.

``infer_field_kind`` is a separate inference pass over a column and sample rows;
``generate_filter_fields`` turns the inferred kinds into ``FieldSchema``
entries with operators and observed option values.
"""
import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Iterable

PLACEHOLDER = "-"
SAMPLE_SIZE = 10
MAX_SELECT_VALUES = 20

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_SKIPPED_COLUMNS = {"actions", "select", "__select__"}
_DATE_HINTS = ("date", "created", "updated", "birth")
_NUMBER_HINTS = ("age", "weight", "height", "count", "amount", "total", "steps", "price", "leads", "spent", "goal")
_MULTISELECT_IDS = {
    "status",
    "fitnessgoal",
    "activitylevel",
    "preferredtime",
    "source",
    "tags",
    "goal_tags",
    "membership_tier",
    "currency",
    "category",
}
_BOOLEAN_IDS = {"is_public", "has_leads", "is_published"}


class FieldKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    MULTISELECT = "multiselect"


DEFAULT_OPERATORS: dict[FieldKind, tuple[str, ...]] = {
    FieldKind.SELECT: ("is", "isNot"),
    FieldKind.MULTISELECT: ("is", "isNot"),
    FieldKind.DATE: ("equals", "before", "after", "between"),
    FieldKind.NUMBER: ("equals", "greaterThan", "lessThan", "notEquals"),
    FieldKind.TEXT: ("contains", "notContains", "equals", "notEquals"),
}


@dataclass(frozen=True)
class ColumnDef:
    id: str
    header: str | None = None
    accessor_key: str | None = None
    accessor_fn: Callable[[dict], Any] | None = None
    formatter: Callable[[Any], str] | None = None
    size: int = 150
    enable_sorting: bool = True
    enable_hiding: bool = True
    is_numeric: bool = False
    is_selection: bool = False
    placeholder: str = PLACEHOLDER

    @property
    def has_accessor(self) -> bool:
        return self.accessor_key is not None or self.accessor_fn is not None

    def value(self, row: dict | None) -> Any:
        if row is None:
            return None
        if self.accessor_key is not None:
            return row.get(self.accessor_key)
        if self.accessor_fn is not None:
            return self.accessor_fn(row)
        return None

    def render(self, row: dict | None) -> str:
        value = self.value(row)
        if value is None or value == "" or value == [] or value == {}:
            return self.placeholder
        if self.formatter is not None:
            return self.formatter(value)
        return str(value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "header": self.header or self.id,
            "size": self.size,
            "enableSorting": self.enable_sorting,
            "enableHiding": self.enable_hiding,
            "isNumeric": self.is_numeric,
        }


@dataclass(frozen=True)
class FieldSchema:
    id: str
    label: str
    kind: FieldKind
    operators: tuple[str, ...]
    options: list[str] | None = None
    dynamic_options: list[str] | None = None

    def with_prefix(self, prefix: str) -> "FieldSchema":
        return replace(self, id=f"{prefix}{self.id}")

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "label": self.label,
            "type": self.kind.value,
            "operators": list(self.operators),
        }
        if self.options is not None:
            payload["options"] = list(self.options)
        if self.dynamic_options is not None:
            payload["dynamicOptions"] = list(self.dynamic_options)
        return payload


def field_schema(
    field_id: str,
    label: str,
    kind: FieldKind,
    options: list[str] | None = None,
    operators: tuple[str, ...] | None = None,
) -> FieldSchema:
    return FieldSchema(
        id=field_id,
        label=label,
        kind=kind,
        operators=operators or DEFAULT_OPERATORS[kind],
        options=options,
    )


def _sample_values(column: ColumnDef, rows: list[dict]) -> list[Any]:
    values = (column.value(row) for row in rows[:SAMPLE_SIZE])
    return [v for v in values if v is not None]


def infer_field_kind(column: ColumnDef, rows: Iterable[dict] = ()) -> FieldKind:
    column_id = column.id.lower()

    if any(hint in column_id for hint in _DATE_HINTS):
        return FieldKind.DATE
    if column.is_numeric or any(hint in column_id for hint in _NUMBER_HINTS):
        return FieldKind.NUMBER

    rows = list(rows)
    if rows and column.has_accessor:
        samples = _sample_values(column, rows)
        if samples:
            first = samples[0]
            if isinstance(first, bool):
                return FieldKind.SELECT
            if isinstance(first, (int, float)):
                return FieldKind.NUMBER
            if isinstance(first, (date, datetime)):
                return FieldKind.DATE
            if isinstance(first, str) and _ISO_DATE.match(first):
                return FieldKind.DATE
            unique = {str(v) for v in samples}
            if 0 < len(unique) <= MAX_SELECT_VALUES and len(samples) >= len(unique):
                return FieldKind.TEXT if len(unique) == len(samples) else FieldKind.MULTISELECT

    if column_id in _BOOLEAN_IDS:
        return FieldKind.SELECT
    if column_id in _MULTISELECT_IDS:
        return FieldKind.MULTISELECT
    return FieldKind.TEXT


def _option_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def extract_column_values(column: ColumnDef, rows: Iterable[dict]) -> list[str]:
    seen: set[str] = set()
    for row in rows:
        value = column.value(row)
        if value is None:
            continue
        items = value if isinstance(value, (list, tuple, set)) else [value]
        for item in items:
            if item is not None:
                seen.add(_option_text(item))
    return sorted(seen)


def column_to_filter_field(
    column: ColumnDef,
    rows: Iterable[dict] = (),
    overrides: dict[str, Any] | None = None,
) -> FieldSchema | None:
    if column.id in _SKIPPED_COLUMNS or column.is_selection:
        return None
    if not column.enable_hiding or not column.has_accessor:
        return None

    rows = list(rows)
    kind = infer_field_kind(column, rows)
    dynamic_options = None
    if kind in (FieldKind.SELECT, FieldKind.MULTISELECT):
        dynamic_options = extract_column_values(column, rows) or None

    schema = FieldSchema(
        id=column.id,
        label=column.header or column.id,
        kind=kind,
        operators=DEFAULT_OPERATORS[kind],
        dynamic_options=dynamic_options,
    )
    if overrides:
        schema = replace(schema, **overrides)
    return schema


def generate_filter_fields(
    columns: list[ColumnDef],
    rows: Iterable[dict] = (),
    existing: Iterable[FieldSchema] = (),
    overrides: dict[str, dict[str, Any]] | None = None,
) -> list[FieldSchema]:
    """One filter field per filterable column.

    Hand-authored ``existing`` fields take precedence over generated ones and
    are kept even when no column matches them.
    """
    rows = list(rows)
    overrides = overrides or {}
    existing_by_id = {f.id: f for f in existing}
    column_ids = {c.id for c in columns}

    fields: list[FieldSchema] = []
    for column in columns:
        custom = overrides.get(column.id)
        known = existing_by_id.get(column.id)
        if known is not None:
            fields.append(replace(known, **custom) if custom else known)
            continue
        generated = column_to_filter_field(column, rows, custom)
        if generated is not None:
            fields.append(generated)

    fields.extend(f for f in existing_by_id.values() if f.id not in column_ids)
    return fields
