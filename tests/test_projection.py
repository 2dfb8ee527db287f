from types import SimpleNamespace

from services.projection import (
    matches_search,
    order_by_name,
    project_collection,
    sort_tasks_by_priority,
)


CATEGORIES = [
    {"id": 3, "name": "Research", "order": 2, "description": "Reading papers"},
    {"id": 1, "name": "Bug", "order": 0, "description": "Something is broken"},
    {"id": 2, "name": "Feature", "order": 1, "description": None},
]


def test_projection_sorts_by_order_and_flags_boundaries():
    projected = project_collection(CATEGORIES)

    assert [entry.entity["name"] for entry in projected] == ["Bug", "Feature", "Research"]
    assert [(entry.is_first, entry.is_last) for entry in projected] == [
        (True, False),
        (False, False),
        (False, True),
    ]


def test_boundaries_are_computed_against_full_collection():
    projected = project_collection(CATEGORIES, "feat", ("description",))

    assert len(projected) == 1
    assert projected[0].entity["name"] == "Feature"
    assert projected[0].is_first is False
    assert projected[0].is_last is False


def test_search_matches_extra_fields_case_insensitively():
    projected = project_collection(CATEGORIES, "PAPERS", ("description",))

    assert [entry.entity["id"] for entry in projected] == [3]


def test_search_ignores_extra_fields_not_listed():
    assert project_collection(CATEGORIES, "papers") == []


def test_blank_search_matches_everything():
    assert matches_search({"name": "Anything"}, "   ")
    assert matches_search({"name": "Anything"}, None)


def test_projected_entity_serializes_flags():
    payload = project_collection(CATEGORIES)[0].to_dict()

    assert payload["name"] == "Bug"
    assert payload["is_first"] is True
    assert payload["is_last"] is False


def test_order_by_name_maps_names_to_orders():
    priorities = [{"name": "Low", "order": 0}, {"name": "High", "order": 2}]

    assert order_by_name(priorities) == {"Low": 0, "High": 2}


def test_sort_tasks_by_priority_puts_unknown_last():
    priorities = [
        {"name": "High", "order": 0},
        {"name": "Medium", "order": 1},
        {"name": "Low", "order": 2},
    ]
    tasks = [
        SimpleNamespace(name="a", priority="Low"),
        SimpleNamespace(name="b", priority="Urgent"),
        SimpleNamespace(name="c", priority="High"),
        SimpleNamespace(name="d", priority="Medium"),
    ]

    ordered = sort_tasks_by_priority(tasks, priorities)

    assert [task.name for task in ordered] == ["c", "d", "a", "b"]
