from __future__ import annotations

from datetime import date

import pytest

from maintenance_orchestrator.actions.confirmation import (
    CANCELLED_MESSAGE,
    UNAVAILABLE_MESSAGE,
    ConfirmationHandler,
)
from maintenance_orchestrator.graph.orchestrator import ConversationOrchestrator
from maintenance_orchestrator.tools.llm import FunctionCall, ModelReply


@pytest.fixture
def handler(store, pending_actions, engine, clock) -> ConfirmationHandler:
    return ConfirmationHandler(
        store=store, pending_actions=pending_actions, engine=engine, clock=clock
    )


def _propose(executor, pending_actions, function_name: str, /, **arguments) -> str:
    result = executor.execute(function_name, arguments)
    assert result.status == "ok", result.error
    return pending_actions.put(result.action).token


def test_cancel_then_confirm_same_token_is_not_found(
    scripted_model, executor, pending_actions, handler, store
) -> None:
    model = scripted_model(
        [
            ModelReply(
                content=None,
                function_calls=[
                    FunctionCall(
                        name="create_equipment",
                        arguments={"name": "Chainsaw", "equipment_type_id": 2, "usage_unit": "hours"},
                    )
                ],
            )
        ]
    )
    orchestrator = ConversationOrchestrator(
        chat_model=model, executor=executor, pending_actions=pending_actions
    )
    proposal = orchestrator.propose("Add my chainsaw")
    assert proposal.action.requires_confirmation is True

    cancelled = handler.confirm(proposal.action_id, confirmed=False)
    replayed = handler.confirm(proposal.action_id, confirmed=True)

    assert cancelled.success is True
    assert cancelled.message == CANCELLED_MESSAGE
    assert replayed.success is False
    assert replayed.error_kind == "not_found"
    assert replayed.error == UNAVAILABLE_MESSAGE
    assert store.list("equipment") == []


def test_expired_token_is_rejected_even_while_resident(
    executor, pending_actions, handler, store, clock
) -> None:
    token = _propose(
        executor,
        pending_actions,
        "create_equipment",
        name="Chainsaw",
        equipment_type_id=2,
        usage_unit="hours",
    )
    clock.advance(minutes=11)
    assert token in pending_actions

    response = handler.confirm(token, confirmed=True)

    assert response.success is False
    assert response.error_kind == "expired"
    assert response.error == UNAVAILABLE_MESSAGE
    assert token not in pending_actions
    assert store.list("equipment") == []


def test_confirm_create_equipment_applies_edits(executor, pending_actions, handler, store) -> None:
    token = _propose(
        executor,
        pending_actions,
        "create_equipment",
        name="Chainsaw",
        equipment_type_id=2,
        usage_unit="hours",
    )

    response = handler.confirm(
        token,
        confirmed=True,
        edited_data={"name": "Stihl Chainsaw", "current_usage_value": 12.5},
        feedback="name it properly",
    )

    assert response.success is True
    assert response.message == "Equipment created successfully"
    assert response.feedback == "name it properly"
    assert response.result["name"] == "Stihl Chainsaw"
    assert store.get("equipment", response.result["id"]).current_usage_value == 12.5


def test_invalid_edits_are_rejected_without_writing(executor, pending_actions, handler, store) -> None:
    token = _propose(
        executor,
        pending_actions,
        "create_equipment",
        name="Chainsaw",
        equipment_type_id=2,
        usage_unit="hours",
    )

    response = handler.confirm(token, confirmed=True, edited_data={"horsepower": 3})

    assert response.success is False
    assert response.error_kind == "invalid_arguments"
    assert store.list("equipment") == []


def test_confirmed_completion_runs_through_recurrence_engine(
    executor, pending_actions, handler, store, truck, make_task
) -> None:
    task = make_task(usage_interval=5000.0, next_due_usage_value=55000.0)
    token = _propose(
        executor,
        pending_actions,
        "complete_task",
        task_id=task.id,
        completed_date="2024-02-20",
        completed_usage_value=56000,
    )

    response = handler.confirm(token, confirmed=True)

    assert response.success is True
    assert response.message == "Maintenance log created successfully"
    assert response.result["updated_task"]["next_due_usage_value"] == 61000.0
    assert response.result["maintenance_log"]["completed_date"] == "2024-02-20"
    assert store.get("equipment", truck.id).current_usage_value == 56000.0


def test_edits_to_completion_date_are_honoured(
    executor, pending_actions, handler, make_task
) -> None:
    task = make_task(time_interval_days=90)
    token = _propose(
        executor, pending_actions, "complete_task", task_id=task.id, completed_date="2024-02-20"
    )

    response = handler.confirm(token, confirmed=True, edited_data={"completed_date": "2024-01-15"})

    assert response.result["updated_task"]["next_due_date"] == "2024-04-14"


def test_confirmed_task_creation_seeds_due_date(
    executor, pending_actions, handler, store, truck
) -> None:
    token = _propose(
        executor,
        pending_actions,
        "create_task",
        equipment_id=truck.id,
        task_type_id=1,
        title="Oil change",
        time_interval_days=30,
    )

    response = handler.confirm(token, confirmed=True)

    assert response.message == "Task created successfully"
    created = store.get("task", response.result["id"])
    assert created.next_due_date == date(2024, 3, 31)


def test_confirmed_update_task_applies_patch(executor, pending_actions, handler, make_task) -> None:
    task = make_task(priority="low")
    token = _propose(
        executor,
        pending_actions,
        "update_task",
        task_id=task.id,
        updates={"priority": "critical"},
    )

    response = handler.confirm(token, confirmed=True)

    assert response.message == "Task updated successfully"
    assert response.result["priority"] == "critical"
    assert response.result["title"] == task.title


def test_confirmed_delete_cascades(executor, pending_actions, handler, store, truck, make_task) -> None:
    task = make_task()
    store.create(
        "maintenance_log",
        {"task_id": task.id, "equipment_id": truck.id, "completed_date": date(2024, 1, 1)},
    )
    token = _propose(executor, pending_actions, "delete_equipment", equipment_id=truck.id)

    response = handler.confirm(token, confirmed=True)

    assert response.success is True
    assert response.message == "Equipment deleted successfully"
    assert response.result == {"id": truck.id, "deleted": True}
    assert store.list("task") == []
    assert store.list("maintenance_log") == []


def test_record_removed_after_proposal_reports_not_found(
    executor, pending_actions, handler, store, make_task
) -> None:
    task = make_task()
    token = _propose(executor, pending_actions, "delete_task", task_id=task.id)
    store.delete("task", task.id)

    response = handler.confirm(token, confirmed=True)

    assert response.success is False
    assert response.error_kind == "not_found"
