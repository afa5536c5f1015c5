from coachdesk.services.filter_fields import FieldKind, field_schema
from coachdesk.services.filter_groups import ActiveFilter, FilterGroup
from coachdesk.services.table_filters import (
    apply_filter_group,
    apply_table_filters,
    group_rows,
    paginate,
    search_rows,
    sort_rows,
)

FIELDS = [
    field_schema("name", "Name", FieldKind.TEXT),
    field_schema("age", "Age", FieldKind.NUMBER),
    field_schema("joined", "Joined", FieldKind.DATE),
    field_schema("status", "Status", FieldKind.MULTISELECT),
    field_schema("is_public", "Public", FieldKind.SELECT),
    field_schema("tags", "Tags", FieldKind.MULTISELECT),
]

ROWS = [
    {"id": 1, "name": "Dana Levi", "age": 34, "joined": "2026-01-10T08:00:00", "status": "VIP", "is_public": True, "tags": ["run"]},
    {"id": 2, "name": "Noam Cohen", "age": 29, "joined": "2026-02-01", "status": "new", "is_public": False, "tags": []},
    {"id": 3, "name": "Maya Katz", "age": None, "joined": None, "status": "new", "is_public": False, "tags": ["yoga", "run"]},
]


def _f(field_id, operator, *values):
    return ActiveFilter(id=f"{field_id}-{operator}", field_id=field_id, operator=operator, values=list(values))


def _ids(rows):
    return [r["id"] for r in rows]


def test_text_filters_are_case_insensitive():
    assert _ids(apply_table_filters(ROWS, [_f("name", "contains", "LEVI")], FIELDS)) == [1]
    assert _ids(apply_table_filters(ROWS, [_f("name", "notContains", "a")], FIELDS)) == []
    assert _ids(apply_table_filters(ROWS, [_f("name", "equals", "noam cohen")], FIELDS)) == [2]


def test_number_filters_skip_non_numeric_values():
    assert _ids(apply_table_filters(ROWS, [_f("age", "greaterThan", "30")], FIELDS)) == [1]
    assert _ids(apply_table_filters(ROWS, [_f("age", "notEquals", "34")], FIELDS)) == [2]
    assert _ids(apply_table_filters(ROWS, [_f("age", "lessThan", "abc")], FIELDS)) == []


def test_date_filters_compare_day_prefix():
    assert _ids(apply_table_filters(ROWS, [_f("joined", "equals", "2026-01-10")], FIELDS)) == [1]
    assert _ids(apply_table_filters(ROWS, [_f("joined", "after", "2026-01-15")], FIELDS)) == [2]
    assert _ids(apply_table_filters(ROWS, [_f("joined", "between", "2026-01-10", "2026-02-01")], FIELDS)) == [1, 2]
    assert _ids(apply_table_filters(ROWS, [_f("joined", "between", "2026-01-10")], FIELDS)) == []


def test_select_filters_handle_case_arrays_and_booleans():
    assert _ids(apply_table_filters(ROWS, [_f("status", "is", "vip")], FIELDS)) == [1]
    assert _ids(apply_table_filters(ROWS, [_f("status", "isNot", "new")], FIELDS)) == [1]
    assert _ids(apply_table_filters(ROWS, [_f("tags", "is", "run")], FIELDS)) == [1, 3]
    assert _ids(apply_table_filters(ROWS, [_f("is_public", "is", "Yes")], FIELDS)) == [1]
    assert _ids(apply_table_filters(ROWS, [_f("is_public", "is", "false")], FIELDS)) == [2, 3]


def test_unknown_fields_never_exclude_rows():
    assert _ids(apply_table_filters(ROWS, [_f("missing", "equals", "x")], FIELDS)) == [1, 2, 3]


def test_filter_group_or_and_not():
    group = FilterGroup(
        id="root",
        operator="or",
        children=[_f("status", "is", "vip"), _f("age", "lessThan", "30")],
    )
    assert _ids(apply_filter_group(ROWS, group, FIELDS)) == [1, 2]

    negated = group.model_copy(update={"negate": True})
    assert _ids(apply_filter_group(ROWS, negated, FIELDS)) == [3]

    nested = FilterGroup(id="outer", operator="and", children=[_f("status", "is", "new"), FilterGroup(id="empty")])
    assert _ids(apply_filter_group(ROWS, nested, FIELDS)) == [2, 3]


def test_search_matches_any_search_field():
    assert _ids(search_rows(ROWS, "  katz ", ["name", "status"])) == [3]
    assert _ids(search_rows(ROWS, "", ["name"])) == [1, 2, 3]


def test_sort_puts_missing_values_last_in_both_directions():
    assert _ids(sort_rows(ROWS, "age", "asc")) == [2, 1, 3]
    assert _ids(sort_rows(ROWS, "age", "desc")) == [1, 2, 3]
    assert _ids(sort_rows(ROWS, "name", "asc")) == [1, 3, 2]
    assert _ids(sort_rows(ROWS, None)) == [1, 2, 3]


def test_paginate_returns_total():
    page, total = paginate(ROWS, 2, 2)
    assert _ids(page) == [3]
    assert total == 3


def test_group_rows_two_levels_with_placeholder_bucket():
    groups = group_rows(ROWS, ("status", "age"), {"level1": "asc", "level2": None}, collapsed_groups=["new/-"])
    assert [g["value"] for g in groups] == ["new", "VIP"]
    new_group = groups[0]
    assert new_group["count"] == 2
    sub = {g["value"]: g for g in new_group["groups"]}
    assert set(sub) == {"29", "-"}
    assert sub["-"]["collapsed"] is True
    assert sub["-"]["rows"] == []
    assert group_rows(ROWS, (None, None)) == []
