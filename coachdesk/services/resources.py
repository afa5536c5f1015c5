"""Table resources: model, columns, search fields and row serializers.

Rows are loaded in full and filtered in memory, the same pipeline the
frontend tables run, so related fields (``budget.name``, ``menu.calories``)
filter and sort exactly as they render.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable

from fastapi import HTTPException
from sqlalchemy.orm import Session, selectinload

from coachdesk.models import (
    Budget,
    BudgetAssignment,
    Customer,
    KnowledgeBaseArticle,
    Lead,
    Meeting,
    NutritionTemplate,
    Payment,
    WorkoutTemplate,
)
from coachdesk.services import table_filters as tf
from coachdesk.services.filter_fields import ColumnDef, FieldKind, FieldSchema, generate_filter_fields
from coachdesk.services.filter_groups import ActiveFilter
from coachdesk.services.relationships import (
    EntityRelationship,
    build_value_getter,
    format_macros,
    get_entity_relationships,
)
from coachdesk.services.table_state import TableState


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value else None


def _age(birth_date: str | None) -> int | None:
    if not birth_date:
        return None
    born = date.fromisoformat(birth_date[:10])
    today = date.today()
    return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


def serialize_customer(customer: Customer) -> dict[str, Any]:
    return {
        "id": customer.id,
        "full_name": customer.full_name,
        "phone": customer.phone,
        "email": customer.email,
        "total_spent": customer.total_spent,
        "membership_tier": customer.membership_tier,
        "created_at": _iso(customer.created_at),
    }


def serialize_nutrition_template(template: NutritionTemplate) -> dict[str, Any]:
    return {
        "id": template.id,
        "name": template.name,
        "description": template.description,
        "targets": template.targets or {},
        "is_public": template.is_public,
        "created_at": _iso(template.created_at),
    }


def serialize_budget(budget: Budget) -> dict[str, Any]:
    template = budget.nutrition_template
    return {
        "id": budget.id,
        "name": budget.name,
        "description": budget.description,
        "steps_goal": budget.steps_goal,
        "is_public": budget.is_public,
        "nutrition_template_id": budget.nutrition_template_id,
        "nutrition_targets": budget.nutrition_targets or {},
        "nutrition_templates": serialize_nutrition_template(template) if template else None,
        "created_at": _iso(budget.created_at),
    }


def serialize_lead(lead: Lead) -> dict[str, Any]:
    assignments = [a for a in lead.budget_assignments if a.is_active]
    return {
        "id": lead.id,
        "customer_id": lead.customer_id,
        "full_name": lead.full_name,
        "phone": lead.phone,
        "email": lead.email,
        "city": lead.city,
        "birth_date": _iso(lead.birth_date),
        "gender": lead.gender,
        "status_main": lead.status_main,
        "status_sub": lead.status_sub,
        "height": lead.height,
        "weight": lead.weight,
        "source": lead.source,
        "fitness_goal": lead.fitness_goal,
        "activity_level": lead.activity_level,
        "preferred_time": lead.preferred_time,
        "notes": lead.notes,
        "created_at": _iso(lead.created_at),
        "subscription": lead.subscription_data or None,
        "budget_assignments": [
            {
                "id": a.id,
                "budget_id": a.budget_id,
                "assigned_at": _iso(a.assigned_at),
                "budgets": serialize_budget(a.budget),
            }
            for a in assignments
        ],
    }


def serialize_meeting(meeting: Meeting) -> dict[str, Any]:
    lead = meeting.lead
    return {
        "id": meeting.id,
        "title": meeting.title,
        "meeting_date": _iso(meeting.meeting_date),
        "status": meeting.status,
        "lead_id": meeting.lead_id,
        "customer_id": meeting.customer_id,
        "created_at": _iso(meeting.created_at),
        "lead": (
            {"id": lead.id, "full_name": lead.full_name, "phone": lead.phone, "status_main": lead.status_main}
            if lead
            else None
        ),
    }


def serialize_payment(payment: Payment) -> dict[str, Any]:
    return {
        "id": payment.id,
        "product_name": payment.product_name,
        "amount": payment.amount,
        "currency": payment.currency,
        "status": payment.status,
        "notes": payment.notes,
        "customer_id": payment.customer_id,
        "lead_id": payment.lead_id,
        "created_at": _iso(payment.created_at),
        "customer": serialize_customer(payment.customer) if payment.customer else None,
    }


def serialize_workout_template(template: WorkoutTemplate) -> dict[str, Any]:
    return {
        "id": template.id,
        "name": template.name,
        "description": template.description,
        "goal_tags": list(template.goal_tags or []),
        "is_public": template.is_public,
        "created_at": _iso(template.created_at),
    }


def serialize_article(article: KnowledgeBaseArticle) -> dict[str, Any]:
    return {
        "id": article.id,
        "title": article.title,
        "category": article.category,
        "tags": list(article.tags or []),
        "is_published": article.is_published,
        "created_at": _iso(article.created_at),
        "updated_at": _iso(article.updated_at),
    }


def _created(size: int = 120) -> ColumnDef:
    return ColumnDef("createdDate", "Created", accessor_key="created_at", size=size)


LEAD_COLUMNS = [
    ColumnDef("id", "ID", accessor_key="id", size=80),
    ColumnDef("name", "Name", accessor_key="full_name", size=180),
    _created(),
    ColumnDef("status", "Status", accessor_key="status_main", size=120),
    ColumnDef("phone", "Phone", accessor_key="phone", size=140),
    ColumnDef("email", "Email", accessor_key="email", size=200),
    ColumnDef("source", "Source", accessor_key="source", size=120),
    ColumnDef("age", "Age", accessor_fn=lambda row: _age(row.get("birth_date")), size=80, is_numeric=True),
    ColumnDef("birthDate", "Birth date", accessor_key="birth_date", size=120),
    ColumnDef("height", "Height", accessor_key="height", size=90, is_numeric=True),
    ColumnDef("weight", "Weight", accessor_key="weight", size=90, is_numeric=True),
    ColumnDef("fitnessGoal", "Fitness goal", accessor_key="fitness_goal", size=140),
    ColumnDef("activityLevel", "Activity level", accessor_key="activity_level", size=140),
    ColumnDef("preferredTime", "Preferred time", accessor_key="preferred_time", size=130),
    ColumnDef("notes", "Notes", accessor_key="notes", size=250, enable_sorting=False),
]

CUSTOMER_COLUMNS = [
    ColumnDef("name", "Name", accessor_key="full_name", size=180),
    ColumnDef("phone", "Phone", accessor_key="phone", size=140),
    ColumnDef("email", "Email", accessor_key="email", size=200),
    ColumnDef("total_spent", "Total spent", accessor_key="total_spent", size=120, is_numeric=True),
    ColumnDef("membership_tier", "Membership tier", accessor_key="membership_tier", size=130),
    _created(),
]

MEETING_COLUMNS = [
    ColumnDef("title", "Title", accessor_key="title", size=200),
    ColumnDef("meetingDate", "Meeting date", accessor_key="meeting_date", size=120),
    ColumnDef("status", "Status", accessor_key="status", size=110),
    _created(),
]

PAYMENT_COLUMNS = [
    ColumnDef("product_name", "Product", accessor_key="product_name", size=200),
    ColumnDef("amount", "Amount", accessor_key="amount", size=100, is_numeric=True),
    ColumnDef("currency", "Currency", accessor_key="currency", size=80),
    ColumnDef("status", "Status", accessor_key="status", size=110),
    _created(),
]

BUDGET_COLUMNS = [
    ColumnDef("name", "Name", accessor_key="name", size=200),
    ColumnDef("description", "Description", accessor_key="description", size=250),
    ColumnDef("steps_goal", "Steps goal", accessor_key="steps_goal", size=110, is_numeric=True),
    ColumnDef("is_public", "Public", accessor_key="is_public", size=80),
    _created(),
]

WORKOUT_TEMPLATE_COLUMNS = [
    ColumnDef("name", "Name", accessor_key="name", size=200),
    ColumnDef("description", "Description", accessor_key="description", size=250),
    ColumnDef("tags", "Tags", accessor_key="goal_tags", size=160, enable_sorting=False),
    ColumnDef("is_public", "Public", accessor_key="is_public", size=80),
    _created(),
]

NUTRITION_TEMPLATE_COLUMNS = [
    ColumnDef("name", "Name", accessor_key="name", size=200),
    ColumnDef("description", "Description", accessor_key="description", size=250),
    ColumnDef("targets", "Macros", accessor_key="targets", formatter=format_macros, size=300,
              enable_sorting=False, enable_hiding=False, placeholder="—"),
    ColumnDef("is_public", "Public", accessor_key="is_public", size=80),
    _created(),
]

ARTICLE_COLUMNS = [
    ColumnDef("title", "Title", accessor_key="title", size=240),
    ColumnDef("category", "Category", accessor_key="category", size=120),
    ColumnDef("tags", "Tags", accessor_key="tags", size=160, enable_sorting=False),
    ColumnDef("is_published", "Published", accessor_key="is_published", size=100),
    _created(),
    ColumnDef("updatedDate", "Updated", accessor_key="updated_at", size=120),
]


@dataclass(frozen=True)
class Resource:
    key: str
    label: str
    model: type
    columns: list[ColumnDef]
    serialize: Callable[[Any], dict[str, Any]]
    search_fields: tuple[str, ...] = ()
    load_options: tuple = ()
    # Scalar filter key -> field id it narrows.
    scalar_fields: dict[str, str] = field(default_factory=dict)


RESOURCES: dict[str, Resource] = {
    r.key: r
    for r in (
        Resource(
            key="leads",
            label="Leads",
            model=Lead,
            columns=LEAD_COLUMNS,
            serialize=serialize_lead,
            search_fields=("name", "phone", "email", "status", "source"),
            load_options=(
                selectinload(Lead.budget_assignments)
                .selectinload(BudgetAssignment.budget)
                .selectinload(Budget.nutrition_template),
            ),
            scalar_fields={
                "selectedDate": "createdDate",
                "selectedStatus": "status",
                "selectedFitnessGoal": "fitnessGoal",
                "selectedActivityLevel": "activityLevel",
                "selectedPreferredTime": "preferredTime",
                "selectedSource": "source",
            },
        ),
        Resource(
            key="customers",
            label="Customers",
            model=Customer,
            columns=CUSTOMER_COLUMNS,
            serialize=serialize_customer,
            search_fields=("name", "phone", "email"),
            scalar_fields={"selectedDate": "createdDate"},
        ),
        Resource(
            key="meetings",
            label="Meetings",
            model=Meeting,
            columns=MEETING_COLUMNS,
            serialize=serialize_meeting,
            search_fields=("title", "lead.name"),
            load_options=(selectinload(Meeting.lead),),
        ),
        Resource(
            key="payments",
            label="Payments",
            model=Payment,
            columns=PAYMENT_COLUMNS,
            serialize=serialize_payment,
            search_fields=("product_name", "customer.name"),
            load_options=(selectinload(Payment.customer),),
        ),
        Resource(
            key="budgets",
            label="Action plans",
            model=Budget,
            columns=BUDGET_COLUMNS,
            serialize=serialize_budget,
            search_fields=("name", "description"),
            load_options=(selectinload(Budget.nutrition_template),),
            scalar_fields={"selectedDate": "createdDate"},
        ),
        Resource(
            key="templates",
            label="Workout plans",
            model=WorkoutTemplate,
            columns=WORKOUT_TEMPLATE_COLUMNS,
            serialize=serialize_workout_template,
            search_fields=("name", "description"),
            scalar_fields={"selectedDate": "createdDate", "selectedTags": "tags"},
        ),
        Resource(
            key="nutrition_templates",
            label="Nutrition templates",
            model=NutritionTemplate,
            columns=NUTRITION_TEMPLATE_COLUMNS,
            serialize=serialize_nutrition_template,
            search_fields=("name", "description"),
            scalar_fields={"selectedDate": "createdDate"},
        ),
        Resource(
            key="articles",
            label="Knowledge base",
            model=KnowledgeBaseArticle,
            columns=ARTICLE_COLUMNS,
            serialize=serialize_article,
            search_fields=("title", "category"),
            scalar_fields={"selectedDate": "createdDate"},
        ),
    )
}


def get_resource(resource_key: str) -> Resource:
    resource = RESOURCES.get(resource_key)
    if resource is None:
        raise HTTPException(status_code=404, detail=f"Unknown resource: {resource_key}")
    return resource


def _source_columns(resource_key: str | None) -> list[ColumnDef]:
    if resource_key is None or resource_key not in RESOURCES:
        return []
    return RESOURCES[resource_key].columns


def table_columns(resource_key: str) -> list[ColumnDef]:
    """Base columns followed by the hand-authored related columns."""
    resource = get_resource(resource_key)
    columns = list(resource.columns)
    for rel in get_entity_relationships(resource_key):
        columns.extend(rel.derive_columns(list(rel.static_columns) or _source_columns(rel.column_source)))
    return columns


def relationship_columns(rel: EntityRelationship) -> list[ColumnDef]:
    """Columns describing a related record: the displayed ones, then any
    extra columns from its ``column_source`` resource."""
    columns = list(rel.static_columns)
    known = {c.id for c in columns}
    columns.extend(c for c in _source_columns(rel.column_source) if c.id not in known)
    return columns


def lookup_columns(resource_key: str) -> list[ColumnDef]:
    columns = table_columns(resource_key)
    for rel in get_entity_relationships(resource_key):
        columns.extend(rel.derive_columns(relationship_columns(rel)))
    return columns


def value_getter(resource_key: str) -> tf.ValueGetter:
    return build_value_getter(lookup_columns(resource_key), get_entity_relationships(resource_key))


def table_fields(resource_key: str, rows: list[dict]) -> list[FieldSchema]:
    resource = get_resource(resource_key)
    fields = generate_filter_fields(resource.columns, rows)
    for rel in get_entity_relationships(resource_key):
        related_rows = [record for record in (rel.related_record(row) for row in rows) if record is not None]
        fields.extend(rel.derive_filter_fields(relationship_columns(rel), related_rows))
    return fields


def load_rows(db: Session, resource_key: str) -> list[dict]:
    resource = get_resource(resource_key)
    query = db.query(resource.model)
    if resource.load_options:
        query = query.options(*resource.load_options)
    return [resource.serialize(record) for record in query.order_by(resource.model.id.desc()).all()]


def _scalar_filters(resource: Resource, scalars: dict[str, Any]) -> list[ActiveFilter]:
    filters = []
    for key, field_id in resource.scalar_fields.items():
        value = scalars.get(key)
        if value in (None, "", [], "all"):
            continue
        values = value if isinstance(value, list) else [value]
        if key == "selectedDate":
            day = tf.to_date_only(values[0]) or ""
            filters.append(ActiveFilter(id=key, field_id=field_id, operator="equals", values=[day], type="date"))
        else:
            filters.append(ActiveFilter(id=key, field_id=field_id, operator="is", values=values, type="select"))
    return filters


def filter_rows(resource_key: str, rows: list[dict], state: TableState, fields: list[FieldSchema]) -> list[dict]:
    resource = get_resource(resource_key)
    get_value = value_getter(resource_key)

    rows = tf.search_rows(rows, state.search_query, resource.search_fields, get_value)
    if state.filter_group is not None:
        rows = tf.apply_filter_group(rows, state.filter_group, fields, get_value)
    else:
        rows = tf.apply_table_filters(rows, state.active_filters, fields, get_value)

    for flt in _scalar_filters(resource, state.scalar_filters):
        kind = FieldKind.DATE if flt.type == "date" else FieldKind.SELECT
        rows = [row for row in rows if tf.matches_kind(flt, kind, get_value(row, flt.field_id))]
    return rows


def query_table(db: Session, resource_key: str, state: TableState) -> dict[str, Any]:
    """Load, filter, sort, page and group the rows for ``state``."""
    all_rows = load_rows(db, resource_key)
    fields = table_fields(resource_key, all_rows)
    get_value = value_getter(resource_key)
    columns = table_columns(resource_key)

    rows = filter_rows(resource_key, all_rows, state, fields)
    rows = tf.sort_rows(rows, state.sort_by, state.sort_order, get_value)
    page_rows, total = tf.paginate(rows, state.page, state.page_size)

    for row in page_rows:
        row["cells"] = {c.id: c.render(row) for c in columns if state.column_visibility.get(c.id, True)}

    return {
        "resourceKey": resource_key,
        "total": total,
        "page": state.page,
        "pageSize": state.page_size,
        "rows": page_rows,
        "groups": tf.group_rows(
            page_rows, state.group_by_keys, state.group_sorting, state.collapsed_groups, get_value
        ),
    }
