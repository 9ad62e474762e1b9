"""Function catalog exposed to the language model."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel

from maintenance_orchestrator.tools import handlers
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

FunctionKind = Literal["query", "mutation"]


@dataclass(frozen=True)
class FunctionSpec:
    name: str
    description: str
    input_model: type[BaseModel]
    kind: FunctionKind
    fn: Callable[[handlers.FunctionContext, Any], Any]

    def parameters_schema(self) -> dict[str, Any]:
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return schema

    def to_tool(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters_schema(),
            },
        }


def build_catalog() -> dict[str, FunctionSpec]:
    specs = [
        FunctionSpec(
            name="get_equipment_list",
            description="Get all equipment with basic information.",
            input_model=NoArgs,
            kind="query",
            fn=handlers.get_equipment_list,
        ),
        FunctionSpec(
            name="get_equipment_types",
            description="Get all available equipment types.",
            input_model=NoArgs,
            kind="query",
            fn=handlers.get_equipment_types,
        ),
        FunctionSpec(
            name="search_equipment",
            description="Search equipment by name, make, model, or serial number.",
            input_model=SearchEquipmentInput,
            kind="query",
            fn=handlers.search_equipment,
        ),
        FunctionSpec(
            name="get_task_types",
            description="Get all available maintenance task types.",
            input_model=NoArgs,
            kind="query",
            fn=handlers.get_task_types,
        ),
        FunctionSpec(
            name="get_tasks",
            description=(
                "Get maintenance tasks, optionally filtered by equipment, status "
                "(pending, completed, overdue), or priority."
            ),
            input_model=GetTasksInput,
            kind="query",
            fn=handlers.get_tasks,
        ),
        FunctionSpec(
            name="get_upcoming_tasks",
            description="Get pending tasks due within the next number of days.",
            input_model=GetUpcomingTasksInput,
            kind="query",
            fn=handlers.get_upcoming_tasks,
        ),
        FunctionSpec(
            name="get_overdue_tasks",
            description="Get pending tasks that are past their due date or usage threshold.",
            input_model=NoArgs,
            kind="query",
            fn=handlers.get_overdue_tasks,
        ),
        FunctionSpec(
            name="get_maintenance_logs",
            description="Get maintenance history, optionally filtered by equipment, task, or date range.",
            input_model=GetMaintenanceLogsInput,
            kind="query",
            fn=handlers.get_maintenance_logs,
        ),
        FunctionSpec(
            name="create_equipment",
            description="Create a new piece of equipment.",
            input_model=EquipmentCreate,
            kind="mutation",
            fn=handlers.create_equipment,
        ),
        FunctionSpec(
            name="update_equipment",
            description="Update fields of an existing piece of equipment.",
            input_model=UpdateEquipmentInput,
            kind="mutation",
            fn=handlers.update_equipment,
        ),
        FunctionSpec(
            name="delete_equipment",
            description="Delete equipment together with its tasks and maintenance logs.",
            input_model=EquipmentIdInput,
            kind="mutation",
            fn=handlers.delete_equipment,
        ),
        FunctionSpec(
            name="create_task",
            description=(
                "Create a recurring maintenance task. Set time_interval_days, "
                "usage_interval, or both."
            ),
            input_model=TaskCreate,
            kind="mutation",
            fn=handlers.create_task,
        ),
        FunctionSpec(
            name="update_task",
            description="Update fields of an existing maintenance task.",
            input_model=UpdateTaskInput,
            kind="mutation",
            fn=handlers.update_task,
        ),
        FunctionSpec(
            name="delete_task",
            description="Delete a maintenance task together with its maintenance logs.",
            input_model=TaskIdInput,
            kind="mutation",
            fn=handlers.delete_task,
        ),
        FunctionSpec(
            name="complete_task",
            description=(
                "Mark a maintenance task as completed. Records a maintenance log and "
                "schedules the next occurrence."
            ),
            input_model=TaskCompletion,
            kind="mutation",
            fn=handlers.complete_task,
        ),
        FunctionSpec(
            name="create_maintenance_log",
            description="Record maintenance performed on equipment for a specific task.",
            input_model=CreateMaintenanceLogInput,
            kind="mutation",
            fn=handlers.create_maintenance_log,
        ),
    ]
    return {spec.name: spec for spec in specs}


def list_functions() -> list[str]:
    return sorted(build_catalog())


def tool_definitions(catalog: dict[str, FunctionSpec] | None = None) -> list[dict[str, Any]]:
    specs = catalog or build_catalog()
    return [spec.to_tool() for spec in specs.values()]
