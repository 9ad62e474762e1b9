from __future__ import annotations

from datetime import date

import pytest

from maintenance_orchestrator.errors import NotFoundError, ValidationFailedError
from maintenance_orchestrator.storage.memory import InMemoryEntityStore
from maintenance_orchestrator.storage.models import DEFAULT_EQUIPMENT_TYPES, DEFAULT_TASK_TYPES


def test_lookup_tables_are_seeded_once(store: InMemoryEntityStore) -> None:
    store.migrate()

    assert [row.name for row in store.list("equipment_type")] == list(DEFAULT_EQUIPMENT_TYPES)
    assert len(store.list("task_type")) == len(DEFAULT_TASK_TYPES)


def test_ids_auto_increment_and_timestamps_are_set(store: InMemoryEntityStore, truck) -> None:
    second = store.create(
        "equipment",
        {"name": "Generator", "equipment_type_id": 4, "usage_unit": "hours"},
    )

    assert second.id == truck.id + 1
    assert second.created_at == second.updated_at
    assert second.current_usage_value == 0.0


def test_create_rejects_missing_parent(store: InMemoryEntityStore) -> None:
    with pytest.raises(ValidationFailedError, match="Equipment with ID 42 does not exist"):
        store.create("task", {"equipment_id": 42, "task_type_id": 1, "title": "Orphan"})


def test_update_missing_row_raises_not_found(store: InMemoryEntityStore) -> None:
    with pytest.raises(NotFoundError):
        store.update("task", 7, {"title": "Nope"})


def test_update_merges_patch_and_refreshes_updated_at(store: InMemoryEntityStore, make_task) -> None:
    task = make_task(priority="low")

    updated = store.update("task", task.id, {"priority": "high"})

    assert updated.priority == "high"
    assert updated.title == task.title
    assert updated.updated_at >= task.updated_at


def test_list_filters_on_equality_and_ignores_none(store: InMemoryEntityStore, make_task) -> None:
    first = make_task(priority="high")
    make_task(priority="low")

    assert [row.id for row in store.list("task", priority="high")] == [first.id]
    assert len(store.list("task", priority=None)) == 2


def test_delete_equipment_cascades_to_tasks_and_logs(store: InMemoryEntityStore, truck, make_task) -> None:
    task = make_task()
    store.create(
        "maintenance_log",
        {"task_id": task.id, "equipment_id": truck.id, "completed_date": date(2024, 1, 1)},
    )

    assert store.delete("equipment", truck.id) is True

    assert store.get("task", task.id) is None
    assert store.list("maintenance_log") == []
    assert store.delete("equipment", truck.id) is False


def test_delete_task_cascades_to_logs_only(store: InMemoryEntityStore, truck, make_task) -> None:
    task = make_task()
    other = make_task(title="Keep me")
    store.create(
        "maintenance_log",
        {"task_id": task.id, "equipment_id": truck.id, "completed_date": date(2024, 1, 1)},
    )
    kept = store.create(
        "maintenance_log",
        {"task_id": other.id, "equipment_id": truck.id, "completed_date": date(2024, 1, 2)},
    )

    store.delete("task", task.id)

    assert [row.id for row in store.list("maintenance_log")] == [kept.id]
    assert store.get("equipment", truck.id) is not None


def test_transaction_rolls_back_on_error(store: InMemoryEntityStore, truck) -> None:
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.update("equipment", truck.id, {"current_usage_value": 99999.0})
            store.create("equipment", {"name": "Ghost", "equipment_type_id": 1, "usage_unit": "hours"})
            raise RuntimeError("abort")

    assert store.get("equipment", truck.id).current_usage_value == 50000.0
    assert [row.name for row in store.list("equipment")] == ["Work Truck"]


def test_invalid_record_values_raise_validation_failed(store: InMemoryEntityStore, truck) -> None:
    with pytest.raises(ValidationFailedError):
        store.update("equipment", truck.id, {"current_usage_value": "lots"})
