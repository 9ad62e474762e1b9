"""Recurrence engine: task completion, next-due computation, and due state.

Overdue is never persisted. It is derived on read from the task's next-due
values, the equipment's current usage meter, and the caller's calendar day.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel

from maintenance_orchestrator.errors import NotFoundError, ValidationFailedError
from maintenance_orchestrator.storage.base import EntityStore
from maintenance_orchestrator.storage.models import Equipment, MaintenanceLog, Task
from maintenance_orchestrator.tools.schemas import CompletionDetails, TaskCreate

logger = logging.getLogger(__name__)

DueView = Literal["all", "upcoming", "overdue"]


@dataclass
class _TaskLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class CompletionResult(BaseModel):
    maintenance_log: MaintenanceLog
    updated_task: Task


def next_due_values(
    task: Task,
    *,
    completed_date: date,
    completed_usage_value: float | None,
) -> tuple[date | None, float | None]:
    """Return the (date, usage) pair a completion schedules; ``None`` means unchanged."""
    next_date = None
    if task.time_interval_days:
        next_date = completed_date + timedelta(days=task.time_interval_days)
    next_usage = None
    if task.usage_interval and completed_usage_value is not None:
        next_usage = completed_usage_value + task.usage_interval
    return next_date, next_usage


def initial_due_values(payload: TaskCreate, *, today: date) -> dict[str, Any]:
    """Seed next-due values for a new task unless the caller supplied them."""
    values: dict[str, Any] = {}
    if payload.next_due_date is None and payload.time_interval_days:
        anchor = payload.last_completed_date or today
        values["next_due_date"] = anchor + timedelta(days=payload.time_interval_days)
    if (
        payload.next_due_usage_value is None
        and payload.usage_interval
        and payload.last_completed_usage_value is not None
    ):
        values["next_due_usage_value"] = payload.last_completed_usage_value + payload.usage_interval
    return values


def is_overdue(task: Task, equipment_usage: float | None, *, today: date) -> bool:
    if task.status != "pending":
        return False
    if task.next_due_date is not None and task.next_due_date < today:
        return True
    return (
        task.next_due_usage_value is not None
        and equipment_usage is not None
        and task.next_due_usage_value <= equipment_usage
    )


def is_upcoming(task: Task, equipment_usage: float | None, *, today: date, days: int) -> bool:
    if task.status != "pending" or is_overdue(task, equipment_usage, today=today):
        return False
    if task.next_due_date is None:
        return False
    return today <= task.next_due_date <= today + timedelta(days=days)


def due_sort_key(task: Task) -> tuple[Any, ...]:
    return (
        task.next_due_date is None,
        task.next_due_date or date.min,
        task.next_due_usage_value is None,
        task.next_due_usage_value or 0.0,
        task.id,
    )


class RecurrenceEngine:
    """Apply completion events and answer due-state queries against a store."""

    def __init__(
        self,
        store: EntityStore,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.clock = clock or (lambda: datetime.now(UTC))
        self._task_locks: dict[int, _TaskLock] = {}
        self._task_locks_guard = threading.Lock()

    def today(self) -> date:
        return self.clock().date()

    def complete_task(self, task_id: int, completion: CompletionDetails) -> CompletionResult:
        """Record a completion, reschedule the task, and advance the usage meter.

        Everything is validated before the first write; the three writes share
        one store transaction so a failure leaves no partial state behind.
        """
        with self._task_lock(task_id), self.store.transaction():
            task = self.store.get("task", task_id)
            if task is None:
                raise NotFoundError(f"Task with ID {task_id} not found")
            equipment = self.store.get("equipment", task.equipment_id)
            if equipment is None:
                raise NotFoundError(f"Equipment with ID {task.equipment_id} not found")

            next_date, next_usage = next_due_values(
                task,
                completed_date=completion.completed_date,
                completed_usage_value=completion.completed_usage_value,
            )
            if next_date is None and next_usage is None:
                logger.warning(
                    "task_completion event=no_recurrence task_id=%s "
                    "time_interval_days=%s usage_interval=%s usage_supplied=%s",
                    task.id,
                    task.time_interval_days,
                    task.usage_interval,
                    completion.completed_usage_value is not None,
                )

            task_patch: dict[str, Any] = {
                "last_completed_date": completion.completed_date,
                "status": "pending",
            }
            if completion.completed_usage_value is not None:
                task_patch["last_completed_usage_value"] = completion.completed_usage_value
            if next_date is not None:
                task_patch["next_due_date"] = next_date
            if next_usage is not None:
                task_patch["next_due_usage_value"] = next_usage

            updated_task = self.store.update("task", task.id, task_patch)
            self._ratchet_usage(equipment, completion.completed_usage_value)
            log = self.store.create(
                "maintenance_log",
                {
                    "task_id": task.id,
                    "equipment_id": equipment.id,
                    "completed_date": completion.completed_date,
                    "completed_usage_value": completion.completed_usage_value,
                    "notes": completion.notes,
                    "cost": completion.cost,
                    "parts_used": completion.parts_used or [],
                    "service_provider": completion.service_provider,
                },
            )

        logger.info(
            "task_completion event=completed task_id=%s log_id=%s next_due_date=%s "
            "next_due_usage_value=%s",
            updated_task.id,
            log.id,
            updated_task.next_due_date,
            updated_task.next_due_usage_value,
        )
        return CompletionResult(maintenance_log=log, updated_task=updated_task)

    def create_task(self, payload: TaskCreate) -> Task:
        data = payload.model_dump(exclude_none=True)
        data.update(initial_due_values(payload, today=self.today()))
        return self.store.create("task", data)

    def list_tasks(
        self,
        *,
        view: DueView = "all",
        days: int = 90,
        equipment_id: int | None = None,
        priority: str | None = None,
        status: str | None = None,
    ) -> list[Task]:
        today = self.today()
        usage = self._usage_by_equipment()
        persisted_status = status if status in {"pending", "completed"} else None
        tasks = self.store.list(
            "task", equipment_id=equipment_id, priority=priority, status=persisted_status
        )
        if status == "overdue":
            view = "overdue"
        if view == "overdue":
            tasks = [
                task for task in tasks if is_overdue(task, usage.get(task.equipment_id), today=today)
            ]
        elif view == "upcoming":
            tasks = [
                task
                for task in tasks
                if is_upcoming(task, usage.get(task.equipment_id), today=today, days=days)
            ]
        return sorted(tasks, key=due_sort_key)

    def dashboard_stats(self, *, days: int = 90) -> dict[str, int]:
        today = self.today()
        usage = self._usage_by_equipment()
        tasks = self.store.list("task")
        return {
            "total_equipment": len(usage),
            "total_tasks": len(tasks),
            "upcoming_jobs": sum(
                1
                for task in tasks
                if is_upcoming(task, usage.get(task.equipment_id), today=today, days=days)
            ),
            "overdue_jobs": sum(
                1 for task in tasks if is_overdue(task, usage.get(task.equipment_id), today=today)
            ),
        }

    def _ratchet_usage(self, equipment: Equipment, usage_value: float | None) -> None:
        if usage_value is None or usage_value <= equipment.current_usage_value:
            return
        self.store.update("equipment", equipment.id, {"current_usage_value": usage_value})

    def _usage_by_equipment(self) -> dict[int, float]:
        return {row.id: row.current_usage_value for row in self.store.list("equipment")}

    @contextmanager
    def _task_lock(self, task_id: int) -> Iterator[None]:
        with self._task_locks_guard:
            entry = self._task_locks.setdefault(task_id, _TaskLock())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            # Drop the entry once no caller holds or waits on it.
            with self._task_locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._task_locks[task_id]


def check_completion_target(task: Task, equipment_id: int | None) -> None:
    if equipment_id is not None and equipment_id != task.equipment_id:
        raise ValidationFailedError(
            f"Task {task.id} belongs to equipment {task.equipment_id}, not {equipment_id}"
        )
