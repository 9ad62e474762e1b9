"""Proposed-action union and the response envelopes built around it."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Tag, TypeAdapter

from maintenance_orchestrator.errors import ErrorKind
from maintenance_orchestrator.tools.schemas import (
    EquipmentCreate,
    EquipmentPatch,
    StrictModel,
    TaskCompletion,
    TaskCreate,
    TaskPatch,
)

ActionType = Literal["create", "update", "delete"]
ActionEntity = Literal["equipment", "task", "maintenance_log"]


class EquipmentUpdateData(StrictModel):
    id: int
    updates: EquipmentPatch


class TaskUpdateData(StrictModel):
    id: int
    updates: TaskPatch


class DeleteData(StrictModel):
    id: int


class _ActionBase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    requires_confirmation: bool = True
    confirmation_message: str


class CreateEquipmentAction(_ActionBase):
    type: Literal["create"] = "create"
    entity: Literal["equipment"] = "equipment"
    data: EquipmentCreate


class UpdateEquipmentAction(_ActionBase):
    type: Literal["update"] = "update"
    entity: Literal["equipment"] = "equipment"
    data: EquipmentUpdateData


class DeleteEquipmentAction(_ActionBase):
    type: Literal["delete"] = "delete"
    entity: Literal["equipment"] = "equipment"
    data: DeleteData


class CreateTaskAction(_ActionBase):
    type: Literal["create"] = "create"
    entity: Literal["task"] = "task"
    data: TaskCreate


class UpdateTaskAction(_ActionBase):
    type: Literal["update"] = "update"
    entity: Literal["task"] = "task"
    data: TaskUpdateData


class DeleteTaskAction(_ActionBase):
    type: Literal["delete"] = "delete"
    entity: Literal["task"] = "task"
    data: DeleteData


class CompleteTaskAction(_ActionBase):
    """Completion events are proposed as a maintenance log creation."""

    type: Literal["create"] = "create"
    entity: Literal["maintenance_log"] = "maintenance_log"
    data: TaskCompletion


def _action_tag(value: Any) -> str | None:
    if isinstance(value, dict):
        return f"{value.get('type')}:{value.get('entity')}"
    return f"{getattr(value, 'type', None)}:{getattr(value, 'entity', None)}"


ActionResult = Annotated[
    Union[
        Annotated[CreateEquipmentAction, Tag("create:equipment")],
        Annotated[UpdateEquipmentAction, Tag("update:equipment")],
        Annotated[DeleteEquipmentAction, Tag("delete:equipment")],
        Annotated[CreateTaskAction, Tag("create:task")],
        Annotated[UpdateTaskAction, Tag("update:task")],
        Annotated[DeleteTaskAction, Tag("delete:task")],
        Annotated[CompleteTaskAction, Tag("create:maintenance_log")],
    ],
    Discriminator(_action_tag),
]

ACTION_ADAPTER: TypeAdapter[ActionResult] = TypeAdapter(ActionResult)


def success_message(action: BaseModel) -> str:
    entity = getattr(action, "entity", "record").replace("_", " ")
    verb = {"create": "created", "update": "updated", "delete": "deleted"}[action.type]
    return f"{entity.capitalize()} {verb} successfully"


class ProposalResponse(BaseModel):
    """Outcome of one natural-language request."""

    success: bool
    action: ActionResult | None = None
    action_id: str | None = None
    message: str | None = None
    requires_more_info: bool = False
    executed_functions: list[str] = []
    error: str | None = None
    error_kind: ErrorKind | None = None


class ConfirmationResponse(BaseModel):
    success: bool
    result: Any = None
    message: str | None = None
    feedback: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
