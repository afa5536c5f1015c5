from datetime import date

from coachdesk.main import app
from coachdesk.models import Budget, NutritionTemplate


def _login(client, email="coach@test.local", password="pass1234"):
    response = client.post("/login", data={"email": email, "password": password})
    assert response.status_code == 200
    return response.json()["id"]


def _seed_budget():
    db = app.state.testing_sessionmaker()
    try:
        template = NutritionTemplate(name="Cut 1800", targets={"calories": 1800, "protein": 150})
        db.add(template)
        db.flush()
        budget = Budget(name="Fat loss", steps_goal=10000, nutrition_template_id=template.id)
        db.add(budget)
        db.commit()
        return budget.id
    finally:
        db.close()


def _seed_leads(client):
    leads = [
        {"full_name": "Dana Levi", "phone": "0501", "status_main": "vip", "source": "instagram", "birth_date": "1990-04-12",
         "subscription_data": {"initialPackageMonths": 3, "initialPrice": 1200, "monthlyRenewalPrice": 400}},
        {"full_name": "Noam Cohen", "phone": "0502", "status_main": "new", "source": "facebook"},
        {"full_name": "Maya Katz", "phone": "0503", "status_main": "new", "source": "instagram"},
    ]
    ids = []
    for lead in leads:
        response = client.post("/leads", json=lead)
        assert response.status_code == 201
        ids.append(response.json()["id"])
    return ids


def test_unknown_resource_is_rejected(client):
    _login(client)
    assert client.get("/tables/spaceships/state").status_code == 404
    assert client.get("/tables/spaceships/rows").status_code == 404


def test_state_mutations_before_init_are_noops(client):
    _login(client)
    response = client.put("/tables/leads/state/search", json={"query": "dana"})
    assert response.status_code == 200
    assert response.json()["initialized"] is False

    visibility = client.put("/tables/leads/state/columns/visibility", json={"columnId": "email", "visible": False})
    assert visibility.json()["initialized"] is True
    assert visibility.json()["state"]["columnVisibility"] == {"email": False}


def test_init_applies_default_view_and_is_idempotent(client):
    _login(client)
    first = client.post("/tables/leads/state/init", json={})
    assert first.status_code == 200
    state = first.json()["state"]
    assert state["columnVisibility"]["name"] is True
    assert state["scalarFilters"]["selectedStatus"] is None

    client.put("/tables/leads/state/search", json={"query": "noam"})
    again = client.post("/tables/leads/state/init", json={})
    assert again.json()["state"]["searchQuery"] == "noam"
    assert client.get("/views?resource_key=leads").json()[0]["view_name"] == "All Leads"


def test_state_reducers_over_http(client):
    _login(client)
    client.post("/tables/leads/state/init", json={"applyDefaultView": False})

    client.put("/tables/leads/state/page", json={"page": 3})
    added = client.post(
        "/tables/leads/state/filters",
        json={"id": "f1", "fieldId": "status", "operator": "is", "values": ["vip"], "type": "multiselect"},
    ).json()["state"]
    assert added["page"] == 1
    assert added["activeFilters"][0]["fieldId"] == "status"

    removed = client.delete("/tables/leads/state/filters/f1").json()["state"]
    assert removed["activeFilters"] == []

    sort = client.put("/tables/leads/state/sort", json={"sortBy": "name", "sortOrder": "asc"}).json()["state"]
    assert (sort["sortBy"], sort["sortOrder"]) == ("name", "asc")
    assert client.put("/tables/leads/state/sort", json={"sortBy": "name", "sortOrder": "up"}).status_code == 400

    toggled = client.post("/tables/leads/state/columns/phone/toggle").json()["state"]
    assert toggled["columnVisibility"]["phone"] is False

    sizing = client.put("/tables/leads/state/columns/sizing", json={"columnId": "name", "size": 240}).json()["state"]
    assert sizing["columnSizing"] == {"name": 240}

    order = client.put("/tables/leads/state/columns/order", json={"order": ["status", "name"]}).json()["state"]
    assert order["columnOrder"] == ["status", "name"]

    grouped = client.put("/tables/leads/state/group-by", json={"keys": ["status", "source"]}).json()["state"]
    assert grouped["groupByKeys"] == ["status", "source"]
    legacy = client.put("/tables/leads/state/group-by", json={"key": "source"}).json()["state"]
    assert legacy["groupByKeys"] == ["source", None]

    sorting = client.put("/tables/leads/state/group-sorting", json={"level": 1, "direction": "desc"}).json()["state"]
    assert sorting["groupSorting"]["level1"] == "desc"

    collapsed = client.post("/tables/leads/state/groups/toggle", json={"groupKey": "instagram"}).json()["state"]
    assert collapsed["collapsedGroups"] == ["instagram"]

    too_big = client.put("/tables/leads/state/page", json={"page": 1, "pageSize": 1000})
    assert too_big.status_code == 400


def test_table_state_is_per_user(client):
    _login(client)
    client.post("/tables/leads/state/init", json={"applyDefaultView": False})
    client.put("/tables/leads/state/search", json={"query": "mine"})

    _login(client, "other@test.local")
    assert client.get("/tables/leads/state").json()["initialized"] is False


def test_rows_apply_search_filters_sort_and_paging(client):
    _login(client)
    _seed_leads(client)
    client.post("/tables/leads/state/init", json={"applyDefaultView": False})

    everything = client.get("/tables/leads/rows").json()
    assert everything["total"] == 3

    client.put("/tables/leads/state/search", json={"query": "katz"})
    assert [r["full_name"] for r in client.get("/tables/leads/rows").json()["rows"]] == ["Maya Katz"]

    client.put("/tables/leads/state/search", json={"query": ""})
    client.post(
        "/tables/leads/state/filters",
        json={"fieldId": "source", "operator": "is", "values": ["INSTAGRAM"], "type": "multiselect"},
    )
    client.put("/tables/leads/state/sort", json={"sortBy": "name", "sortOrder": "desc"})
    client.put("/tables/leads/state/page", json={"page": 1, "pageSize": 1})
    page = client.get("/tables/leads/rows").json()
    assert page["total"] == 2
    assert [r["full_name"] for r in page["rows"]] == ["Maya Katz"]
    assert page["rows"][0]["cells"]["budget.name"] == "-"


def test_related_fields_filter_rows(client):
    _login(client)
    lead_ids = _seed_leads(client)
    budget_id = _seed_budget()
    assigned = client.post(f"/leads/{lead_ids[1]}/budget", json={"budget_id": budget_id})
    assert assigned.status_code == 200
    assert assigned.json()["budget_assignments"][0]["budgets"]["name"] == "Fat loss"

    fields = {f["id"]: f for f in client.get("/tables/leads/fields").json()}
    assert fields["budget.exists"]["type"] == "select"
    assert "budget.steps_goal" in fields
    assert "menu.exists" in fields
    assert fields["subscription.months"]["type"] == "number"

    client.post("/tables/leads/state/init", json={"applyDefaultView": False})
    client.post(
        "/tables/leads/state/filters",
        json={"fieldId": "budget.exists", "operator": "is", "values": ["Yes"], "type": "select"},
    )
    rows = client.get("/tables/leads/rows").json()["rows"]
    assert [r["full_name"] for r in rows] == ["Noam Cohen"]
    assert rows[0]["cells"]["budget.steps_goal"] == "10,000"
    assert rows[0]["cells"]["menu.calories"] == "1800 kcal"

    client.delete("/tables/leads/state/filters")
    client.post(
        "/tables/leads/state/filters",
        json={"fieldId": "subscription.months", "operator": "greaterThan", "values": ["1"], "type": "number"},
    )
    rows = client.get("/tables/leads/rows").json()["rows"]
    assert [r["full_name"] for r in rows] == ["Dana Levi"]
    assert rows[0]["cells"]["subscription.initialPrice"] == "₪1,200"


def test_rows_grouped_by_status(client):
    _login(client)
    _seed_leads(client)
    client.post("/tables/leads/state/init", json={"applyDefaultView": False})
    client.put("/tables/leads/state/group-by", json={"keys": ["status"]})
    client.put("/tables/leads/state/group-sorting", json={"level": 1, "direction": "asc"})

    groups = client.get("/tables/leads/rows").json()["groups"]
    assert [(g["value"], g["count"]) for g in groups] == [("new", 2), ("vip", 1)]


def test_capture_and_apply_view(client):
    _login(client)
    client.post("/tables/leads/state/init", json={"applyDefaultView": False})
    client.put("/tables/leads/state/search", json={"query": "dana"})
    client.put("/tables/leads/state/sort", json={"sortBy": "createdDate", "sortOrder": "desc"})

    captured = client.post("/views/capture", json={"resource_key": "leads", "view_name": "Dana"})
    assert captured.status_code == 201
    assert captured.json()["filter_config"]["searchQuery"] == "dana"

    client.put("/tables/leads/state/search", json={"query": "other"})
    applied = client.post(f"/views/{captured.json()['id']}/apply").json()
    assert applied["state"]["searchQuery"] == "dana"
    assert applied["state"]["sortBy"] == "createdDate"
    assert client.get("/tables/leads/state").json()["state"]["searchQuery"] == "dana"


def test_capture_requires_initialized_state(client):
    _login(client)
    response = client.post("/views/capture", json={"resource_key": "budgets", "view_name": "Nope"})
    assert response.status_code == 404


def test_lead_validation(client):
    _login(client)
    assert client.post("/leads", json={"full_name": " ", "phone": "1"}).status_code == 400
    assert client.post("/leads", json={"full_name": "A", "phone": "1", "birth_date": str(date(2000, 1, 1))}).status_code == 201
    assert client.post("/leads", json={"full_name": "B", "phone": "1"}).status_code == 409
    assert client.post("/leads/999/budget", json={"budget_id": 1}).status_code == 404


def test_menu_calories_filter_narrows_rows(client):
    _login(client)
    lead_ids = _seed_leads(client)
    budget_id = _seed_budget()
    client.post(f"/leads/{lead_ids[1]}/budget", json={"budget_id": budget_id})

    fields = {f["id"]: f for f in client.get("/tables/leads/fields").json()}
    assert fields["menu.calories"]["type"] == "number"
    assert fields["menu.protein"]["type"] == "number"

    client.post("/tables/leads/state/init", json={"applyDefaultView": False})
    client.post(
        "/tables/leads/state/filters",
        json={"id": "cal", "fieldId": "menu.calories", "operator": "greaterThan", "values": ["5000"], "type": "number"},
    )
    assert client.get("/tables/leads/rows").json()["rows"] == []

    client.delete("/tables/leads/state/filters/cal")
    client.post(
        "/tables/leads/state/filters",
        json={"fieldId": "menu.calories", "operator": "greaterThan", "values": ["1000"], "type": "number"},
    )
    assert [r["full_name"] for r in client.get("/tables/leads/rows").json()["rows"]] == ["Noam Cohen"]


def test_rows_render_free_form_subscription_values(client):
    _login(client)
    created = client.post(
        "/leads",
        json={"full_name": "Tal Bar", "phone": "0509", "subscription_data": {"initialPrice": "1200", "monthlyRenewalPrice": "TBD"}},
    )
    assert created.status_code == 201
    client.post("/tables/leads/state/init", json={"applyDefaultView": False})

    response = client.get("/tables/leads/rows")
    assert response.status_code == 200
    cells = response.json()["rows"][0]["cells"]
    assert cells["subscription.initialPrice"] == "₪1,200"
    assert cells["subscription.renewalPrice"] == "TBD"
    assert cells["subscription.months"] == "-"


def test_saved_view_with_oversized_page_is_rejected_before_apply(client):
    _login(client)
    too_big = client.post("/views", json={"resource_key": "leads", "view_name": "Huge", "filter_config": {"pageSize": 1000}})
    assert too_big.status_code == 400

    ok = client.post("/views", json={"resource_key": "leads", "view_name": "Big", "filter_config": {"pageSize": 500}})
    assert ok.status_code == 201
    applied = client.post(f"/views/{ok.json()['id']}/apply")
    assert applied.status_code == 200
    assert applied.json()["state"]["pageSize"] == 500
