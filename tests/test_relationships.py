from coachdesk.services.filter_fields import ColumnDef, FieldKind
from coachdesk.services.relationships import (
    EntityRelationship,
    RelationshipKind,
    build_value_getter,
    extract_entity_prefix,
    format_macros,
    get_base_field_id,
    get_entity_relationships,
    is_related_entity_field,
    numeric_formatter,
)
from coachdesk.services.resources import BUDGET_COLUMNS, relationship_columns, table_columns, table_fields


def _lead_relationship(name):
    return next(r for r in get_entity_relationships("leads") if r.entity_name == name)


LEAD_WITH_PLAN = {
    "id": 1,
    "subscription": {"initialPackageMonths": 3, "initialPrice": 1200, "monthlyRenewalPrice": 400},
    "budget_assignments": [
        {
            "budgets": {
                "name": "Fat loss",
                "description": "",
                "steps_goal": 10000,
                "is_public": False,
                "created_at": "2026-01-01T00:00:00",
                "nutrition_targets": {"calories": 2000},
                "nutrition_templates": None,
            }
        }
    ],
}
LEAD_WITHOUT_PLAN = {"id": 2, "subscription": None, "budget_assignments": []}


def test_field_id_helpers():
    assert is_related_entity_field("budget.name")
    assert not is_related_entity_field("name")
    assert extract_entity_prefix("budget.name") == "budget"
    assert extract_entity_prefix("name") is None
    assert get_base_field_id("budget.name") == "name"
    assert get_base_field_id("name") == "name"


def test_relationship_kinds_for_leads():
    kinds = {r.entity_name: r.kind for r in get_entity_relationships("leads")}
    assert kinds == {
        "subscription": RelationshipKind.EMBEDDED,
        "budget": RelationshipKind.THROUGH,
        "menu": RelationshipKind.THROUGH,
    }
    assert get_entity_relationships("articles") == []


def test_through_relationship_adds_exists_plus_one_field_per_column():
    budget = _lead_relationship("budget")
    related_rows = [budget.related_record(LEAD_WITH_PLAN)]

    fields = budget.derive_filter_fields(BUDGET_COLUMNS, related_rows)

    assert len(fields) == len(BUDGET_COLUMNS) + 1
    assert fields[0].id == "budget.exists"
    assert fields[0].kind == FieldKind.SELECT
    assert [f.id for f in fields[1:]] == [f"budget.{c.id}" for c in BUDGET_COLUMNS]


def test_through_relationship_falls_back_to_static_fields():
    menu = _lead_relationship("menu")
    fields = menu.derive_filter_fields()
    assert [f.id for f in fields] == ["menu.exists", "menu.nutrition_template_name", "menu.calories", "menu.protein"]


def test_direct_relationship_derives_fields_without_exists():
    customer = get_entity_relationships("payments")[0]
    columns = [ColumnDef("name", "Name", accessor_key="full_name"), ColumnDef("total_spent", accessor_key="total_spent")]
    fields = customer.derive_filter_fields(columns, [{"full_name": "Dana", "total_spent": 10}])
    assert [f.id for f in fields] == ["customer.name", "customer.total_spent"]


def test_embedded_relationship_uses_static_fields():
    subscription = _lead_relationship("subscription")
    fields = subscription.derive_filter_fields(BUDGET_COLUMNS, [])
    assert [f.id for f in fields] == [
        "subscription.exists",
        "subscription.months",
        "subscription.initialPrice",
        "subscription.renewalPrice",
    ]


def test_related_accessors_return_none_when_record_is_absent():
    for rel in get_entity_relationships("leads"):
        for column in rel.derive_columns():
            assert column.value(LEAD_WITHOUT_PLAN) is None
            assert column.render(LEAD_WITHOUT_PLAN) in ("-", "—")


def test_related_accessors_read_the_related_record():
    columns = {c.id: c for c in table_columns("leads")}
    assert columns["budget.name"].value(LEAD_WITH_PLAN) == "Fat loss"
    assert columns["budget.steps_goal"].render(LEAD_WITH_PLAN) == "10,000"
    assert columns["subscription.initialPrice"].render(LEAD_WITH_PLAN) == "₪1,200"
    # The menu falls back to the plan's own nutrition targets.
    assert columns["menu.calories"].value(LEAD_WITH_PLAN) == 2000
    assert columns["menu.targets"].render(LEAD_WITHOUT_PLAN) == "—"


def test_value_getter_resolves_exists_and_columns():
    rels = get_entity_relationships("leads")
    get_value = build_value_getter(table_columns("leads"), rels)
    assert get_value(LEAD_WITH_PLAN, "budget.exists") is True
    assert get_value(LEAD_WITHOUT_PLAN, "budget.exists") is False
    assert get_value(LEAD_WITH_PLAN, "subscription.months") == 3
    assert get_value(LEAD_WITHOUT_PLAN, "subscription.months") is None
    assert get_value({"custom": 5}, "custom") == 5


def test_custom_relationship_prefix():
    rel = EntityRelationship(
        entity_name="coach",
        label="Coach",
        kind=RelationshipKind.DIRECT,
        foreign_key="coach_id",
        target_table="users",
        resolve=lambda row: row.get("coach"),
    )
    assert rel.field_prefix == "coach."
    [column] = rel.derive_columns([ColumnDef("name", accessor_key="full_name")])
    assert column.id == "coach.name"
    assert column.value({"coach": {"full_name": "Ari"}}) == "Ari"
    assert column.value({"coach": None}) is None


def test_every_related_column_has_a_filter_field():
    lead = {**LEAD_WITH_PLAN, "subscription": {"initialPackageMonths": 3}}
    field_ids = {f.id for f in table_fields("leads", [lead])}
    for column in table_columns("leads"):
        if "." in column.id and column.enable_hiding:
            assert column.id in field_ids


def test_menu_fields_come_from_its_displayed_columns():
    menu = _lead_relationship("menu")
    assert [c.id for c in relationship_columns(menu)][:4] == ["nutrition_template_name", "targets", "calories", "protein"]
    fields = {f.id: f for f in table_fields("leads", [LEAD_WITH_PLAN])}
    assert fields["menu.calories"].kind == FieldKind.NUMBER
    assert fields["menu.protein"].kind == FieldKind.NUMBER


def test_formatters_accept_numeric_strings_and_text():
    columns = {c.id: c for c in table_columns("leads")}
    lead = {"subscription": {"initialPrice": "1200", "monthlyRenewalPrice": "call us", "initialPackageMonths": "3"}}
    assert columns["subscription.initialPrice"].render(lead) == "₪1,200"
    assert columns["subscription.renewalPrice"].render(lead) == "call us"
    assert columns["subscription.months"].render(lead) == "3 months"
    assert numeric_formatter("{:,}")(12500.5) == "12,500.5"


def test_macros_keep_zero_values_and_tolerate_non_dicts():
    assert format_macros({"calories": 1800, "protein": 0, "carbs": 200}) == "1800 kcal · 0g protein · 200g carbs"
    assert format_macros({}) == "—"
    assert format_macros("high protein") == "high protein"


def test_authored_related_fields_override_inferred_ones():
    meetings = [{"lead": {"full_name": "Dana", "status_main": "new"}}]
    fields = {f.id: f for f in table_fields("meetings", meetings)}
    assert fields["lead.status"].kind == FieldKind.MULTISELECT
    assert fields["lead.name"].label == "Lead name"
