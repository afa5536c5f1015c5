"""Row matching, searching, sorting, paging and grouping for table data.

Rows are plain dicts produced by the resource serializers. Values are read
through a ``get_value(row, field_id)`` callable so related fields such as
``budget.name`` resolve the same way they render.
"""
import re
from datetime import date, datetime
from typing import Any, Callable, Iterable

from coachdesk.services.filter_fields import PLACEHOLDER, FieldKind, FieldSchema
from coachdesk.services.filter_groups import ActiveFilter, FilterGroup

ValueGetter = Callable[[dict, str], Any]

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_TRUE_STRINGS = ["true", "כן", "yes", "1"]
_FALSE_STRINGS = ["false", "לא", "no", "0"]


def _row_value(row: dict, field_id: str) -> Any:
    return row.get(field_id)


def to_date_only(value: Any) -> str | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        if _ISO_DATE.match(value):
            return value[:10]
        try:
            return datetime.fromisoformat(value).date().isoformat()
        except ValueError:
            return None
    return None


def to_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def comparable_strings(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return [s for item in value for s in comparable_strings(item)]
    if isinstance(value, bool):
        return list(_TRUE_STRINGS if value else _FALSE_STRINGS)
    if isinstance(value, (int, float)):
        return [str(value)]
    return [str(value).lower()]


def matches_text(flt: ActiveFilter, raw: Any) -> bool:
    value = ("" if raw is None else str(raw)).lower()
    needle = (flt.values[0] if flt.values else "").lower()
    if flt.operator == "contains":
        return needle in value
    if flt.operator == "notContains":
        return needle not in value
    if flt.operator == "equals":
        return value == needle
    if flt.operator == "notEquals":
        return value != needle
    return True


def matches_number(flt: ActiveFilter, raw: Any) -> bool:
    value = to_number(raw)
    target = to_number(flt.values[0]) if flt.values else None
    if value is None or target is None:
        return False
    if flt.operator == "equals":
        return value == target
    if flt.operator == "notEquals":
        return value != target
    if flt.operator == "greaterThan":
        return value > target
    if flt.operator == "lessThan":
        return value < target
    return True


def matches_date(flt: ActiveFilter, raw: Any) -> bool:
    value = to_date_only(raw)
    if not value:
        return False
    first = flt.values[0] if flt.values else ""
    if flt.operator == "equals":
        return value == first
    if flt.operator == "before":
        return value < first
    if flt.operator == "after":
        return value > first
    if flt.operator == "between":
        second = flt.values[1] if len(flt.values) > 1 else ""
        return bool(first) and bool(second) and first <= value <= second
    return True


def matches_select(flt: ActiveFilter, raw: Any) -> bool:
    options = comparable_strings(raw)
    hit = any(target.lower() in options for target in flt.values)
    return not hit if flt.operator == "isNot" else hit


_MATCHERS: dict[FieldKind, Callable[[ActiveFilter, Any], bool]] = {
    FieldKind.TEXT: matches_text,
    FieldKind.NUMBER: matches_number,
    FieldKind.DATE: matches_date,
    FieldKind.SELECT: matches_select,
    FieldKind.MULTISELECT: matches_select,
}


def matches_kind(flt: ActiveFilter, kind: FieldKind, raw: Any) -> bool:
    matcher = _MATCHERS.get(kind)
    return matcher(flt, raw) if matcher else True


def matches_filter(flt: ActiveFilter, field: FieldSchema | None, raw: Any) -> bool:
    # Filters on fields the table does not know about never exclude rows.
    if field is None:
        return True
    return matches_kind(flt, field.kind, raw)


def apply_table_filters(
    rows: list[dict],
    filters: list[ActiveFilter],
    fields: Iterable[FieldSchema],
    get_value: ValueGetter | None = None,
) -> list[dict]:
    if not filters:
        return rows
    get_value = get_value or _row_value
    field_map = {f.id: f for f in fields}
    return [
        row
        for row in rows
        if all(matches_filter(flt, field_map.get(flt.field_id), get_value(row, flt.field_id)) for flt in filters)
    ]


def matches_group(row: dict, group: FilterGroup, field_map: dict[str, FieldSchema], get_value: ValueGetter) -> bool:
    if not group.children:
        result = True
    else:
        outcomes = (
            matches_group(row, child, field_map, get_value)
            if isinstance(child, FilterGroup)
            else matches_filter(child, field_map.get(child.field_id), get_value(row, child.field_id))
            for child in group.children
        )
        result = any(outcomes) if group.operator == "or" else all(outcomes)
    return not result if group.negate else result


def apply_filter_group(
    rows: list[dict],
    group: FilterGroup | None,
    fields: Iterable[FieldSchema],
    get_value: ValueGetter | None = None,
) -> list[dict]:
    if group is None:
        return rows
    get_value = get_value or _row_value
    field_map = {f.id: f for f in fields}
    return [row for row in rows if matches_group(row, group, field_map, get_value)]


def search_rows(
    rows: list[dict],
    query: str,
    search_fields: Iterable[str],
    get_value: ValueGetter | None = None,
) -> list[dict]:
    needle = (query or "").strip().lower()
    if not needle:
        return rows
    get_value = get_value or _row_value
    search_fields = list(search_fields)

    def hit(row: dict) -> bool:
        for field_id in search_fields:
            value = get_value(row, field_id)
            if value is not None and needle in str(value).lower():
                return True
        return False

    return [row for row in rows if hit(row)]


def _sort_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, (date, datetime)):
        return (1, value.isoformat())
    return (2, str(value).lower())


def sort_rows(
    rows: list[dict],
    sort_by: str | None,
    sort_order: str = "asc",
    get_value: ValueGetter | None = None,
) -> list[dict]:
    """Stable sort by ``sort_by``; rows without a value go last in both directions."""
    if not sort_by:
        return list(rows)
    get_value = get_value or _row_value
    present = [row for row in rows if get_value(row, sort_by) is not None]
    missing = [row for row in rows if get_value(row, sort_by) is None]
    present.sort(key=lambda row: _sort_key(get_value(row, sort_by)), reverse=sort_order == "desc")
    return present + missing


def paginate(rows: list[dict], page: int, page_size: int) -> tuple[list[dict], int]:
    total = len(rows)
    start = (max(page, 1) - 1) * page_size
    return rows[start : start + page_size], total


def _group_label(value: Any) -> str:
    if value is None or value == "" or value == []:
        return PLACEHOLDER
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _bucket(rows: list[dict], key: str, direction: str | None, get_value: ValueGetter) -> list[tuple[str, list[dict]]]:
    buckets: dict[str, list[dict]] = {}
    for row in rows:
        buckets.setdefault(_group_label(get_value(row, key)), []).append(row)
    items = list(buckets.items())
    if direction in ("asc", "desc"):
        items.sort(key=lambda item: item[0].lower(), reverse=direction == "desc")
    return items


def group_rows(
    rows: list[dict],
    group_by_keys: tuple[str | None, str | None] | list[str | None],
    group_sorting: dict[str, str | None] | None = None,
    collapsed_groups: Iterable[str] = (),
    get_value: ValueGetter | None = None,
) -> list[dict[str, Any]]:
    """Bucket rows into at most two grouping levels.

    Group keys are the level-one label, or ``"<level1>/<level2>"`` for nested
    groups. Collapsed groups keep their counts but drop their rows.
    """
    level1, level2 = (list(group_by_keys) + [None, None])[:2]
    if not level1:
        return []
    get_value = get_value or _row_value
    sorting = group_sorting or {}
    collapsed = set(collapsed_groups)

    groups = []
    for label, members in _bucket(rows, level1, sorting.get("level1"), get_value):
        group: dict[str, Any] = {"key": label, "field": level1, "value": label, "count": len(members)}
        group["collapsed"] = label in collapsed
        if level2:
            children = []
            for sub_label, sub_members in _bucket(members, level2, sorting.get("level2"), get_value):
                sub_key = f"{label}/{sub_label}"
                children.append(
                    {
                        "key": sub_key,
                        "field": level2,
                        "value": sub_label,
                        "count": len(sub_members),
                        "collapsed": sub_key in collapsed,
                        "rows": [] if sub_key in collapsed else sub_members,
                    }
                )
            group["groups"] = [] if group["collapsed"] else children
        else:
            group["rows"] = [] if group["collapsed"] else members
        groups.append(group)
    return groups
