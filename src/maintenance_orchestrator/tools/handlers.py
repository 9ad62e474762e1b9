"""Catalog function implementations.

Query handlers read from the store and return JSON-ready rows. Mutation
handlers only check that every referenced record exists and then describe
the change as an action proposal; they never write.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from maintenance_orchestrator.actions.models import (
    CompleteTaskAction,
    CreateEquipmentAction,
    CreateTaskAction,
    DeleteData,
    DeleteEquipmentAction,
    DeleteTaskAction,
    EquipmentUpdateData,
    TaskUpdateData,
    UpdateEquipmentAction,
    UpdateTaskAction,
)
from maintenance_orchestrator.errors import InvalidArgumentsError, NotFoundError
from maintenance_orchestrator.recurrence import RecurrenceEngine, check_completion_target
from maintenance_orchestrator.storage.base import EntityStore
from maintenance_orchestrator.storage.models import Equipment, Task
from maintenance_orchestrator.tools.schemas import (
    CreateMaintenanceLogInput,
    EquipmentCreate,
    EquipmentIdInput,
    GetMaintenanceLogsInput,
    GetTasksInput,
    GetUpcomingTasksInput,
    NoArgs,
    SearchEquipmentInput,
    TaskCompletion,
    TaskCreate,
    TaskIdInput,
    UpdateEquipmentInput,
    UpdateTaskInput,
)


@dataclass(frozen=True)
class FunctionContext:
    store: EntityStore
    engine: RecurrenceEngine
    upcoming_days: int = 90


# Queries


def get_equipment_list(ctx: FunctionContext, _: NoArgs) -> list[dict[str, Any]]:
    return _rows(ctx.store.list("equipment"))


def get_equipment_types(ctx: FunctionContext, _: NoArgs) -> list[dict[str, Any]]:
    return _rows(ctx.store.list("equipment_type"))


def search_equipment(ctx: FunctionContext, payload: SearchEquipmentInput) -> list[dict[str, Any]]:
    needle = payload.query.strip().lower()
    matches = []
    for row in ctx.store.list("equipment"):
        haystack = " ".join(
            value for value in (row.name, row.make, row.model, row.serial_number) if value
        ).lower()
        if needle in haystack:
            matches.append(row)
    return _rows(matches)


def get_task_types(ctx: FunctionContext, _: NoArgs) -> list[dict[str, Any]]:
    return _rows(ctx.store.list("task_type"))


def get_tasks(ctx: FunctionContext, payload: GetTasksInput) -> list[dict[str, Any]]:
    tasks = ctx.engine.list_tasks(
        equipment_id=payload.equipment_id,
        priority=payload.priority,
        status=payload.status,
    )
    return _task_rows(ctx, tasks)


def get_upcoming_tasks(ctx: FunctionContext, payload: GetUpcomingTasksInput) -> list[dict[str, Any]]:
    days = payload.days or ctx.upcoming_days
    return _task_rows(ctx, ctx.engine.list_tasks(view="upcoming", days=days))


def get_overdue_tasks(ctx: FunctionContext, _: NoArgs) -> list[dict[str, Any]]:
    return _task_rows(ctx, ctx.engine.list_tasks(view="overdue"))


def get_maintenance_logs(
    ctx: FunctionContext, payload: GetMaintenanceLogsInput
) -> list[dict[str, Any]]:
    logs = ctx.store.list(
        "maintenance_log", equipment_id=payload.equipment_id, task_id=payload.task_id
    )
    window = payload.date_range
    if window is not None:
        logs = [
            log
            for log in logs
            if (window.start_date is None or log.completed_date >= window.start_date)
            and (window.end_date is None or log.completed_date <= window.end_date)
        ]
    logs.sort(key=lambda log: (log.completed_date, log.id), reverse=True)
    return _rows(logs)


# Mutations


def create_equipment(ctx: FunctionContext, payload: EquipmentCreate) -> CreateEquipmentAction:
    _require(ctx, "equipment_type", payload.equipment_type_id)
    label = " ".join(value for value in (payload.make, payload.model) if value)
    suffix = f" ({label})" if label else ""
    return CreateEquipmentAction(
        data=payload,
        confirmation_message=f"Create {payload.name}{suffix}?",
    )


def update_equipment(ctx: FunctionContext, payload: UpdateEquipmentInput) -> UpdateEquipmentAction:
    equipment: Equipment = _require(ctx, "equipment", payload.equipment_id)
    _require_changes(payload.updates)
    if payload.updates.equipment_type_id is not None:
        _require(ctx, "equipment_type", payload.updates.equipment_type_id)
    return UpdateEquipmentAction(
        data=EquipmentUpdateData(id=equipment.id, updates=payload.updates),
        confirmation_message=f"Update {equipment.name}: {_change_summary(payload.updates)}?",
    )


def delete_equipment(ctx: FunctionContext, payload: EquipmentIdInput) -> DeleteEquipmentAction:
    equipment: Equipment = _require(ctx, "equipment", payload.equipment_id)
    return DeleteEquipmentAction(
        data=DeleteData(id=equipment.id),
        confirmation_message=(
            f"Delete {equipment.name}? This will also delete all associated tasks "
            "and maintenance logs."
        ),
    )


def create_task(ctx: FunctionContext, payload: TaskCreate) -> CreateTaskAction:
    equipment: Equipment = _require(ctx, "equipment", payload.equipment_id)
    _require(ctx, "task_type", payload.task_type_id)
    return CreateTaskAction(
        data=payload,
        confirmation_message=f'Create task "{payload.title}" for {equipment.name}?',
    )


def update_task(ctx: FunctionContext, payload: UpdateTaskInput) -> UpdateTaskAction:
    task: Task = _require(ctx, "task", payload.task_id)
    _require_changes(payload.updates)
    if payload.updates.task_type_id is not None:
        _require(ctx, "task_type", payload.updates.task_type_id)
    return UpdateTaskAction(
        data=TaskUpdateData(id=task.id, updates=payload.updates),
        confirmation_message=f'Update task "{task.title}": {_change_summary(payload.updates)}?',
    )


def delete_task(ctx: FunctionContext, payload: TaskIdInput) -> DeleteTaskAction:
    task: Task = _require(ctx, "task", payload.task_id)
    return DeleteTaskAction(
        data=DeleteData(id=task.id),
        confirmation_message=(
            f'Delete task "{task.title}"? This will also delete all associated maintenance logs.'
        ),
    )


def complete_task(ctx: FunctionContext, payload: TaskCompletion) -> CompleteTaskAction:
    task: Task = _require(ctx, "task", payload.task_id)
    check_completion_target(task, payload.equipment_id)
    data = payload.model_copy(update={"equipment_id": task.equipment_id})
    return CompleteTaskAction(
        data=data,
        confirmation_message=(
            f'Mark task "{task.title}" as completed on {payload.completed_date.isoformat()}?'
        ),
    )


def create_maintenance_log(
    ctx: FunctionContext, payload: CreateMaintenanceLogInput
) -> CompleteTaskAction:
    task: Task = _require(ctx, "task", payload.task_id)
    equipment: Equipment = _require(ctx, "equipment", payload.equipment_id)
    check_completion_target(task, equipment.id)
    return CompleteTaskAction(
        data=TaskCompletion.model_validate(payload.model_dump()),
        confirmation_message=(
            f"Create maintenance log for {equipment.name} on "
            f"{payload.completed_date.isoformat()}?"
        ),
    )


def _require(ctx: FunctionContext, entity: str, entity_id: int) -> Any:
    record = ctx.store.get(entity, entity_id)
    if record is None:
        label = entity.replace("_", " ").capitalize()
        raise NotFoundError(f"{label} with ID {entity_id} not found")
    return record


def _require_changes(updates: BaseModel) -> None:
    if not updates.model_dump(exclude_none=True):
        raise InvalidArgumentsError("No fields to update")


def _change_summary(updates: BaseModel) -> str:
    changes = updates.model_dump(mode="json", exclude_none=True)
    return "set " + ", ".join(f"{key} to {value}" for key, value in changes.items())


def _rows(records: list[BaseModel]) -> list[dict[str, Any]]:
    return [record.model_dump(mode="json") for record in records]


def _task_rows(ctx: FunctionContext, tasks: list[Task]) -> list[dict[str, Any]]:
    names = {row.id: row.name for row in ctx.store.list("equipment")}
    rows = []
    for task in tasks:
        row = task.model_dump(mode="json")
        row["equipment_name"] = names.get(task.equipment_id)
        rows.append(row)
    return rows
