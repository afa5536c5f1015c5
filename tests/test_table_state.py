import threading

import pytest

from coachdesk.services import table_state as ts
from coachdesk.services.filter_groups import ActiveFilter, create_root_group
from coachdesk.services.table_state import TableStateRegistry, TableStateStore


def _status_filter(filter_id="f1"):
    return ActiveFilter(id=filter_id, field_id="status", field_label="Status", operator="is", values=["new"], type="select")


def test_initialize_is_idempotent_and_keeps_user_changes():
    store = TableStateStore()
    store.initialize("leads", ["name", "phone"], initial_visibility={"phone": False})
    store.dispatch("leads", ts.set_search_query, "dana")

    again = store.initialize("leads", ["name", "phone", "email"])
    assert again.search_query == "dana"
    assert again.column_visibility == {"name": True, "phone": False}
    assert again.column_order == ["name", "phone"]


def test_operations_on_uninitialized_table_are_noops():
    store = TableStateStore()
    assert store.dispatch("leads", ts.set_search_query, "x") is None
    assert store.get("leads") is None


def test_column_visibility_creates_minimal_state():
    store = TableStateStore()
    state = store.set_column_visibility("budgets", "description", False)
    assert store.is_initialized("budgets")
    assert state.column_visibility == {"description": False}
    assert state.page == 1


def test_search_filters_and_page_size_reset_page():
    state = ts.new_table_state(["name"])
    state = ts.set_page(state, 4)
    assert ts.set_search_query(state, "a").page == 1
    assert ts.add_filter(state, _status_filter()).page == 1
    assert ts.set_filter_group(state, create_root_group()).page == 1
    assert ts.set_page_size(state, 50).page == 1


def test_filters_add_remove_clear():
    state = ts.new_table_state(["name"])
    state = ts.add_filter(state, _status_filter("a"))
    state = ts.add_filter(state, _status_filter("b"))
    assert [f.id for f in ts.remove_filter(state, "a").active_filters] == ["b"]

    state = ts.set_filter_group(state, create_root_group([_status_filter("c")]))
    cleared = ts.clear_filters(state)
    assert cleared.active_filters == []
    assert cleared.filter_group is None


def test_reducers_do_not_mutate_input():
    state = ts.new_table_state(["name", "phone"])
    ts.toggle_column_visibility(state, "name")
    ts.set_column_sizing(state, "name", 220)
    assert state.column_visibility == {"name": True, "phone": True}
    assert state.column_sizing == {}


def test_toggle_unknown_column_hides_it():
    state = ts.new_table_state(["name"])
    state = ts.toggle_column_visibility(state, "age")
    assert state.column_visibility["age"] is False
    assert ts.toggle_column_visibility(state, "age").column_visibility["age"] is True


def test_invalid_values_are_rejected():
    state = ts.new_table_state(["name"])
    with pytest.raises(ValueError):
        ts.set_sort(state, "name", "sideways")
    with pytest.raises(ValueError):
        ts.set_page(state, 0)
    with pytest.raises(ValueError):
        ts.set_page_size(state, 501)
    with pytest.raises(ValueError):
        ts.set_column_sizing(state, "name", 0)
    with pytest.raises(ValueError):
        ts.set_group_by_keys(state, ["a", "b", "c"])


def test_group_by_keys_levels():
    state = ts.new_table_state(["status", "source"])
    state = ts.toggle_group_collapse(state, "new")
    state = ts.set_group_by_keys(state, ["status", "source"])
    assert state.group_by_keys == ("status", "source")
    assert state.collapsed_groups == []

    # The legacy single key sets level one and clears level two.
    state = ts.set_group_by_key(state, "source")
    assert state.group_by_keys == ("source", None)
    assert state.group_by_key == "source"

    assert ts.set_group_by_keys(state, [None, "status"]).group_by_keys == ("status", None)


def test_group_sorting_and_collapse():
    state = ts.new_table_state(["status"])
    state = ts.set_group_sorting(state, 2, "desc")
    assert state.group_sorting == {"level1": None, "level2": "desc"}

    state = ts.toggle_group_collapse(state, "vip")
    assert state.collapsed_groups == ["vip"]
    assert ts.toggle_group_collapse(state, "vip").collapsed_groups == []


def test_registry_hands_out_one_store_per_owner():
    registry = TableStateRegistry()
    first = registry.for_owner(1)
    first.initialize("leads", ["name"])
    assert registry.for_owner(1) is first
    assert not registry.for_owner(2).is_initialized("leads")


def test_concurrent_dispatches_keep_every_filter():
    store = TableStateStore()
    store.initialize("leads", ["status"])
    start = threading.Barrier(8)

    def add(index):
        start.wait()
        for n in range(25):
            store.dispatch("leads", ts.add_filter, _status_filter(f"f{index}-{n}"))

    workers = [threading.Thread(target=add, args=(i,)) for i in range(8)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()

    assert len(store.get("leads").active_filters) == 200
