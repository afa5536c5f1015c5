"""Declarative relationships between entities, used to extend tables with
filter fields and columns taken from related records.

Every relationship has a ``kind`` and the kind picks the strategy:

* ``EMBEDDED``: the related data sits in a JSON column of the base row. Its
  fields are hand-authored because there is no tabular column source.
* ``THROUGH``: joined through a junction table. An ``<entity>.exists`` field is
  always injected first, then fields are derived from the related columns.
* ``DIRECT``: joined by a foreign key on the base row. Fields are derived from
  the related columns.

Generated ids are prefixed with ``"<entity>."`` so they never collide with the
base entity's own fields.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable

from coachdesk.services.filter_fields import (
    ColumnDef,
    FieldKind,
    FieldSchema,
    field_schema,
    generate_filter_fields,
)
from coachdesk.services.table_filters import to_number

EXISTS_FIELD = "exists"
YES_NO = ["Yes", "No"]


class RelationshipKind(str, Enum):
    DIRECT = "direct"
    THROUGH = "through"
    EMBEDDED = "embedded"


@dataclass(frozen=True)
class EntityRelationship:
    entity_name: str
    label: str
    kind: RelationshipKind
    target_table: str
    resolve: Callable[[dict], dict | None]
    foreign_key: str | None = None
    junction_table: str | None = None
    junction_source_column: str | None = None
    junction_target_column: str | None = None
    embedded_column: str | None = None
    # Resource whose column definitions describe the related record.
    column_source: str | None = None
    static_fields: tuple[FieldSchema, ...] = ()
    static_columns: tuple[ColumnDef, ...] = ()
    exists_label: str | None = None

    @property
    def field_prefix(self) -> str:
        return f"{self.entity_name}."

    def related_record(self, row: dict) -> dict | None:
        return self.resolve(row) or None

    def derive_filter_fields(
        self,
        columns: list[ColumnDef] | None = None,
        related_rows: list[dict] | None = None,
    ) -> list[FieldSchema]:
        return STRATEGIES[self.kind].derive_filter_fields(self, columns or [], related_rows or [])

    def derive_columns(self, columns: list[ColumnDef] | None = None) -> list[ColumnDef]:
        return STRATEGIES[self.kind].derive_columns(self, columns or [])


def _related_column(rel: EntityRelationship, column: ColumnDef) -> ColumnDef:
    def accessor(row: dict) -> Any:
        return column.value(rel.related_record(row))

    return replace(column, id=f"{rel.field_prefix}{column.id}", accessor_key=None, accessor_fn=accessor)


def _exists_field(rel: EntityRelationship) -> FieldSchema:
    return field_schema(
        f"{rel.field_prefix}{EXISTS_FIELD}",
        rel.exists_label or f"Has {rel.label.lower()}",
        FieldKind.SELECT,
        options=list(YES_NO),
    )


class RelationshipStrategy:
    inject_exists = False

    def derive_filter_fields(self, rel, columns, related_rows) -> list[FieldSchema]:
        fields = [_exists_field(rel)] if self.inject_exists else []
        if columns:
            # Hand-authored fields win over inference for the same column.
            column_ids = {c.id for c in columns}
            authored = [f for f in rel.static_fields if f.id in column_ids]
            generated = generate_filter_fields(columns, related_rows, existing=authored)
        else:
            generated = list(rel.static_fields)
        fields.extend(f.with_prefix(rel.field_prefix) for f in generated)
        return fields

    def derive_columns(self, rel, columns) -> list[ColumnDef]:
        return [_related_column(rel, column) for column in (columns or rel.static_columns)]


class DirectStrategy(RelationshipStrategy):
    pass


class ThroughStrategy(RelationshipStrategy):
    inject_exists = True


class EmbeddedStrategy(RelationshipStrategy):
    def derive_filter_fields(self, rel, columns, related_rows) -> list[FieldSchema]:
        return [f.with_prefix(rel.field_prefix) for f in rel.static_fields]

    def derive_columns(self, rel, columns) -> list[ColumnDef]:
        return [_related_column(rel, column) for column in rel.static_columns]


STRATEGIES: dict[RelationshipKind, RelationshipStrategy] = {
    RelationshipKind.DIRECT: DirectStrategy(),
    RelationshipKind.THROUGH: ThroughStrategy(),
    RelationshipKind.EMBEDDED: EmbeddedStrategy(),
}


def _first_budget(row: dict) -> dict | None:
    assignments = row.get("budget_assignments") or []
    if not assignments:
        return None
    return assignments[0].get("budgets") or None


def _menu(row: dict) -> dict | None:
    budget = _first_budget(row)
    if not budget:
        return None
    template = budget.get("nutrition_templates") or {}
    targets = template.get("targets") or budget.get("nutrition_targets") or None
    if not template and not targets:
        return None
    return {**template, "targets": targets}


def numeric_formatter(template: str) -> Callable[[Any], str]:
    """Format numbers (or numeric strings) with ``template``; render anything else as text."""

    def format_value(value: Any) -> str:
        number = to_number(value)
        if number is None:
            return str(value)
        return template.format(int(number) if number.is_integer() else number)

    return format_value


_money = numeric_formatter("₪{:,}")


def format_macros(targets: Any) -> str:
    if not isinstance(targets, dict):
        return str(targets) if targets else "—"
    parts = []
    for key, unit in (("calories", " kcal"), ("protein", "g protein"), ("carbs", "g carbs"), ("fat", "g fat")):
        if targets.get(key) is not None:
            parts.append(f"{targets[key]}{unit}")
    return " · ".join(parts) or "—"


def _target(key: str) -> Callable[[dict], Any]:
    return lambda menu: (menu.get("targets") or {}).get(key)


LEAD_RELATIONSHIPS = [
    EntityRelationship(
        entity_name="subscription",
        label="Subscription",
        kind=RelationshipKind.EMBEDDED,
        embedded_column="subscription_data",
        target_table="subscription_types",
        resolve=lambda row: row.get("subscription") or None,
        static_fields=(
            field_schema("exists", "Has subscription", FieldKind.SELECT, options=list(YES_NO)),
            field_schema("months", "Subscription months", FieldKind.NUMBER),
            field_schema("initialPrice", "Initial price", FieldKind.NUMBER),
            field_schema("renewalPrice", "Renewal price", FieldKind.NUMBER),
        ),
        static_columns=(
            ColumnDef("months", "Subscription months", accessor_key="initialPackageMonths",
                      formatter=numeric_formatter("{} months"), size=120, is_numeric=True),
            ColumnDef("initialPrice", "Initial price", accessor_key="initialPrice",
                      formatter=_money, size=130, is_numeric=True),
            ColumnDef("renewalPrice", "Renewal price", accessor_key="monthlyRenewalPrice",
                      formatter=_money, size=130, is_numeric=True),
        ),
    ),
    EntityRelationship(
        entity_name="budget",
        label="Action plan",
        kind=RelationshipKind.THROUGH,
        junction_table="budget_assignments",
        junction_source_column="lead_id",
        junction_target_column="budget_id",
        target_table="budgets",
        resolve=_first_budget,
        column_source="budgets",
        exists_label="Has action plan",
        static_fields=(
            field_schema("name", "Action plan name", FieldKind.TEXT),
            field_schema("steps_goal", "Steps goal", FieldKind.NUMBER),
            field_schema("is_public", "Public action plan", FieldKind.SELECT),
        ),
        static_columns=(
            ColumnDef("name", "Action plan name", accessor_key="name", size=180),
            ColumnDef("steps_goal", "Steps goal", accessor_key="steps_goal",
                      formatter=numeric_formatter("{:,}"), size=120, is_numeric=True),
        ),
    ),
    EntityRelationship(
        entity_name="menu",
        label="Menu",
        kind=RelationshipKind.THROUGH,
        junction_table="budget_assignments",
        junction_source_column="lead_id",
        junction_target_column="budget_id",
        target_table="budgets",
        resolve=_menu,
        column_source="nutrition_templates",
        exists_label="Has menu",
        static_fields=(
            field_schema("nutrition_template_name", "Nutrition template", FieldKind.TEXT),
            field_schema("calories", "Calories", FieldKind.NUMBER),
            field_schema("protein", "Protein", FieldKind.NUMBER),
        ),
        static_columns=(
            ColumnDef("nutrition_template_name", "Nutrition template", accessor_key="name", size=200),
            ColumnDef("targets", "Macros", accessor_key="targets", formatter=format_macros,
                      size=350, enable_hiding=False, placeholder="—"),
            ColumnDef("calories", "Calories", accessor_fn=_target("calories"),
                      formatter=numeric_formatter("{} kcal"), size=100, is_numeric=True),
            ColumnDef("protein", "Protein", accessor_fn=_target("protein"),
                      formatter=numeric_formatter("{}g"), size=100, is_numeric=True),
        ),
    ),
]

ENTITY_RELATIONSHIPS: dict[str, list[EntityRelationship]] = {
    "leads": LEAD_RELATIONSHIPS,
    "payments": [
        EntityRelationship(
            entity_name="customer",
            label="Customer",
            kind=RelationshipKind.DIRECT,
            foreign_key="customer_id",
            target_table="customers",
            resolve=lambda row: row.get("customer") or None,
            column_source="customers",
            static_fields=(
                field_schema("name", "Customer name", FieldKind.TEXT),
                field_schema("membership_tier", "Membership tier", FieldKind.MULTISELECT),
            ),
            static_columns=(
                ColumnDef("name", "Customer name", accessor_key="full_name", size=180),
                ColumnDef("membership_tier", "Membership tier", accessor_key="membership_tier", size=130),
            ),
        )
    ],
    "meetings": [
        EntityRelationship(
            entity_name="lead",
            label="Lead",
            kind=RelationshipKind.DIRECT,
            foreign_key="lead_id",
            target_table="leads",
            resolve=lambda row: row.get("lead") or None,
            static_fields=(
                field_schema("name", "Lead name", FieldKind.TEXT),
                field_schema("status", "Lead status", FieldKind.MULTISELECT),
            ),
            static_columns=(
                ColumnDef("name", "Lead name", accessor_key="full_name", size=180),
                ColumnDef("status", "Lead status", accessor_key="status_main", size=120),
            ),
        )
    ],
}


def get_entity_relationships(entity_name: str) -> list[EntityRelationship]:
    return ENTITY_RELATIONSHIPS.get(entity_name, [])


def is_related_entity_field(field_id: str) -> bool:
    return "." in field_id


def extract_entity_prefix(field_id: str) -> str | None:
    parts = field_id.split(".")
    return parts[0] if len(parts) > 1 else None


def get_base_field_id(field_id: str) -> str:
    parts = field_id.split(".")
    return ".".join(parts[1:]) if len(parts) > 1 else field_id


def build_value_getter(
    columns: list[ColumnDef],
    relationships: list[EntityRelationship],
) -> Callable[[dict, str], Any]:
    """Resolve a field id against a row.

    ``<entity>.exists`` reports whether the related record is present, column
    ids use the column accessor and anything else falls back to the row key.
    """
    by_id: dict[str, ColumnDef] = {}
    for column in columns:
        by_id.setdefault(column.id, column)
    by_entity = {rel.entity_name: rel for rel in relationships}

    def get_value(row: dict, field_id: str) -> Any:
        entity = extract_entity_prefix(field_id)
        if entity in by_entity and get_base_field_id(field_id) == EXISTS_FIELD:
            return by_entity[entity].related_record(row) is not None
        column = by_id.get(field_id)
        if column is not None:
            return column.value(row)
        return row.get(field_id)

    return get_value


__all__ = [
    "ENTITY_RELATIONSHIPS",
    "EntityRelationship",
    "RelationshipKind",
    "build_value_getter",
    "extract_entity_prefix",
    "format_macros",
    "get_base_field_id",
    "get_entity_relationships",
    "is_related_entity_field",
    "numeric_formatter",
]
