"""Redeem a pending action token and apply the confirmed change."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from maintenance_orchestrator.actions.models import (
    ACTION_ADAPTER,
    CompleteTaskAction,
    ConfirmationResponse,
    CreateEquipmentAction,
    CreateTaskAction,
    DeleteEquipmentAction,
    DeleteTaskAction,
    UpdateEquipmentAction,
    UpdateTaskAction,
    success_message,
)
from maintenance_orchestrator.actions.pending import PendingActionStore
from maintenance_orchestrator.errors import (
    ExpiredError,
    InvalidArgumentsError,
    MaintenanceError,
    NotFoundError,
)
from maintenance_orchestrator.recurrence import RecurrenceEngine, check_completion_target
from maintenance_orchestrator.storage.base import EntityStore
from maintenance_orchestrator.tools.schemas import CompletionDetails

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "This request is no longer available, please try again."
CANCELLED_MESSAGE = "Action cancelled"


class ConfirmationHandler:
    def __init__(
        self,
        *,
        store: EntityStore,
        pending_actions: PendingActionStore,
        engine: RecurrenceEngine | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.pending_actions = pending_actions
        self.clock = clock or (lambda: datetime.now(UTC))
        self.engine = engine or RecurrenceEngine(store, clock=self.clock)

    def confirm(
        self,
        token: str,
        *,
        confirmed: bool,
        edited_data: dict[str, Any] | None = None,
        feedback: str | None = None,
    ) -> ConfirmationResponse:
        pending = self.pending_actions.take(token)
        if pending is None:
            logger.info("confirmation event=not_found action_id=%s", token)
            return _failure(NotFoundError(UNAVAILABLE_MESSAGE), feedback)
        if pending.is_expired(self.clock()):
            logger.info(
                "confirmation event=expired action_id=%s expires_at=%s",
                token,
                pending.expires_at.isoformat(),
            )
            return _failure(ExpiredError(UNAVAILABLE_MESSAGE), feedback)
        if feedback:
            logger.info("confirmation event=feedback action_id=%s feedback=%r", token, feedback)

        action = pending.action
        if not confirmed:
            logger.info(
                "confirmation event=cancelled action_id=%s type=%s entity=%s",
                token,
                action.type,
                action.entity,
            )
            return ConfirmationResponse(success=True, message=CANCELLED_MESSAGE, feedback=feedback)

        try:
            action = apply_edits(action, edited_data)
            result = self.execute(action)
        except MaintenanceError as exc:
            logger.info(
                "confirmation event=failed action_id=%s error_kind=%s error=%s",
                token,
                exc.kind,
                exc.message,
            )
            return _failure(exc, feedback)

        logger.info(
            "confirmation event=applied action_id=%s type=%s entity=%s",
            token,
            action.type,
            action.entity,
        )
        return ConfirmationResponse(
            success=True,
            result=result,
            message=success_message(action),
            feedback=feedback,
        )

    def execute(self, action: BaseModel) -> dict[str, Any]:
        """Apply a validated action and return a JSON-ready result."""
        if isinstance(action, CompleteTaskAction):
            data = action.data
            task = self.store.get("task", data.task_id)
            if task is None:
                raise NotFoundError(f"Task with ID {data.task_id} not found")
            check_completion_target(task, data.equipment_id)
            details = data.model_dump(exclude={"task_id", "equipment_id"})
            completion = self.engine.complete_task(
                data.task_id, CompletionDetails.model_validate(details)
            )
            return completion.model_dump(mode="json")
        if isinstance(action, CreateEquipmentAction):
            record = self.store.create("equipment", action.data.model_dump(exclude_none=True))
        elif isinstance(action, UpdateEquipmentAction):
            record = self.store.update(
                "equipment", action.data.id, _changes(action.data.updates)
            )
        elif isinstance(action, CreateTaskAction):
            record = self.engine.create_task(action.data)
        elif isinstance(action, UpdateTaskAction):
            record = self.store.update("task", action.data.id, _changes(action.data.updates))
        elif isinstance(action, (DeleteEquipmentAction, DeleteTaskAction)):
            if not self.store.delete(action.entity, action.data.id):
                label = action.entity.replace("_", " ").capitalize()
                raise NotFoundError(f"{label} with ID {action.data.id} not found")
            return {"id": action.data.id, "deleted": True}
        else:
            raise InvalidArgumentsError(f"Unsupported action: {action.type} {action.entity}")
        return record.model_dump(mode="json")


def apply_edits(action: BaseModel, edited_data: dict[str, Any] | None) -> BaseModel:
    """Shallow-merge user corrections into the proposal and re-validate it."""
    if not edited_data:
        return action
    payload = action.model_dump(exclude_none=True)
    payload["data"] = {**payload["data"], **edited_data}
    try:
        return ACTION_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise InvalidArgumentsError(f"Invalid edited data: {details}") from exc


def _changes(updates: BaseModel) -> dict[str, Any]:
    changes = updates.model_dump(exclude_none=True)
    if not changes:
        raise InvalidArgumentsError("No fields to update")
    return changes


def _failure(exc: MaintenanceError, feedback: str | None) -> ConfirmationResponse:
    return ConfirmationResponse(
        success=False,
        error=exc.message,
        error_kind=exc.kind,
        feedback=feedback,
    )
