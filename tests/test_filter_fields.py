from coachdesk.services.filter_fields import (
    ColumnDef,
    FieldKind,
    column_to_filter_field,
    field_schema,
    generate_filter_fields,
    infer_field_kind,
)


def test_kind_inference_from_ids():
    assert infer_field_kind(ColumnDef("createdDate", accessor_key="created_at")) == FieldKind.DATE
    assert infer_field_kind(ColumnDef("birthDate", accessor_key="birth_date")) == FieldKind.DATE
    assert infer_field_kind(ColumnDef("steps_goal", accessor_key="steps_goal")) == FieldKind.NUMBER
    assert infer_field_kind(ColumnDef("bmi", accessor_key="bmi", is_numeric=True)) == FieldKind.NUMBER
    assert infer_field_kind(ColumnDef("status", accessor_key="status")) == FieldKind.MULTISELECT
    assert infer_field_kind(ColumnDef("is_public", accessor_key="is_public")) == FieldKind.SELECT
    assert infer_field_kind(ColumnDef("notes", accessor_key="notes")) == FieldKind.TEXT


def test_kind_inference_from_sample_rows():
    rows = [{"plan": "gold", "day": "2026-01-02", "score": 4}, {"plan": "gold", "day": None, "score": 7}]
    assert infer_field_kind(ColumnDef("plan", accessor_key="plan"), rows) == FieldKind.MULTISELECT
    assert infer_field_kind(ColumnDef("day", accessor_key="day"), rows) == FieldKind.DATE
    assert infer_field_kind(ColumnDef("score", accessor_key="score"), rows) == FieldKind.NUMBER

    distinct = [{"nickname": "a"}, {"nickname": "b"}]
    assert infer_field_kind(ColumnDef("nickname", accessor_key="nickname"), distinct) == FieldKind.TEXT


def test_operators_and_dynamic_options():
    rows = [{"source": "instagram"}, {"source": "facebook"}, {"source": "instagram"}, {"source": None}]
    field = column_to_filter_field(ColumnDef("source", "Source", accessor_key="source"), rows)
    assert field.kind == FieldKind.MULTISELECT
    assert field.operators == ("is", "isNot")
    assert field.dynamic_options == ["facebook", "instagram"]
    assert field.to_dict()["type"] == "multiselect"

    text = column_to_filter_field(ColumnDef("notes", "Notes", accessor_key="notes"))
    assert text.operators == ("contains", "notContains", "equals", "notEquals")


def test_skipped_columns():
    assert column_to_filter_field(ColumnDef("actions", accessor_key="id")) is None
    assert column_to_filter_field(ColumnDef("__select__", accessor_key="id")) is None
    assert column_to_filter_field(ColumnDef("pick", accessor_key="id", is_selection=True)) is None
    assert column_to_filter_field(ColumnDef("targets", accessor_key="targets", enable_hiding=False)) is None
    assert column_to_filter_field(ColumnDef("computed")) is None


def test_existing_fields_win_and_survive_without_column():
    columns = [ColumnDef("name", "Name", accessor_key="name"), ColumnDef("status", "Status", accessor_key="status")]
    custom_status = field_schema("status", "Lead status", FieldKind.SELECT, options=["new", "vip"])
    legacy = field_schema("legacy_flag", "Legacy", FieldKind.SELECT, options=["Yes", "No"])

    fields = generate_filter_fields(columns, [], existing=[custom_status, legacy])

    assert [f.id for f in fields] == ["name", "status", "legacy_flag"]
    assert fields[1].label == "Lead status"
    assert fields[1].options == ["new", "vip"]


def test_render_uses_placeholder_and_formatter():
    column = ColumnDef("price", accessor_key="price", formatter=lambda v: f"₪{v:,}")
    assert column.render({"price": 1200}) == "₪1,200"
    assert column.render({"price": None}) == "-"
    assert column.render(None) == "-"
