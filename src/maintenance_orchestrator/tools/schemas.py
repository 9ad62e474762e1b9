"""Strict Pydantic schemas for catalog function inputs and action payloads."""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from maintenance_orchestrator.storage.models import Priority, TaskStatus


class StrictModel(BaseModel):
    """Base model for strict schema validation."""

    model_config = ConfigDict(extra="forbid")


class NoArgs(StrictModel):
    pass


# Queries


class SearchEquipmentInput(StrictModel):
    query: str = Field(min_length=1, description="Text matched against name, make, and model")


class GetTasksInput(StrictModel):
    equipment_id: int | None = None
    status: Literal["pending", "completed", "overdue"] | None = None
    priority: Priority | None = None


class GetUpcomingTasksInput(StrictModel):
    days: int | None = Field(default=None, ge=1, le=3650, description="Look-ahead window in days")


class DateRange(StrictModel):
    start_date: date | None = None
    end_date: date | None = None

    @model_validator(mode="after")
    def _ordered(self) -> DateRange:
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class GetMaintenanceLogsInput(StrictModel):
    equipment_id: int | None = None
    task_id: int | None = None
    date_range: DateRange | None = None


# Equipment payloads


class EquipmentCreate(StrictModel):
    name: str = Field(min_length=1)
    equipment_type_id: int
    make: str | None = None
    model: str | None = None
    year: int | None = Field(default=None, ge=1800, le=2200)
    serial_number: str | None = None
    purchase_date: date | None = None
    current_usage_value: float = Field(default=0.0, ge=0)
    usage_unit: str = Field(min_length=1, description="e.g. miles, km, hours, cycles")


class EquipmentPatch(StrictModel):
    name: str | None = Field(default=None, min_length=1)
    equipment_type_id: int | None = None
    make: str | None = None
    model: str | None = None
    year: int | None = Field(default=None, ge=1800, le=2200)
    serial_number: str | None = None
    purchase_date: date | None = None
    current_usage_value: float | None = Field(default=None, ge=0)
    usage_unit: str | None = Field(default=None, min_length=1)


class UpdateEquipmentInput(StrictModel):
    equipment_id: int
    updates: EquipmentPatch


class EquipmentIdInput(StrictModel):
    equipment_id: int


# Task payloads


class TaskCreate(StrictModel):
    equipment_id: int
    task_type_id: int
    title: str = Field(min_length=1)
    description: str | None = None
    usage_interval: float | None = Field(default=None, gt=0)
    time_interval_days: int | None = Field(default=None, gt=0)
    last_completed_usage_value: float | None = Field(default=None, ge=0)
    last_completed_date: date | None = None
    next_due_usage_value: float | None = Field(default=None, ge=0)
    next_due_date: date | None = None
    priority: Priority = "medium"


class TaskPatch(StrictModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    task_type_id: int | None = None
    usage_interval: float | None = Field(default=None, gt=0)
    time_interval_days: int | None = Field(default=None, gt=0)
    next_due_usage_value: float | None = Field(default=None, ge=0)
    next_due_date: date | None = None
    priority: Priority | None = None
    status: TaskStatus | None = None


class UpdateTaskInput(StrictModel):
    task_id: int
    updates: TaskPatch


class TaskIdInput(StrictModel):
    task_id: int


# Completion payloads


class CompletionDetails(StrictModel):
    """What happened when a task was performed."""

    completed_date: date
    completed_usage_value: float | None = Field(default=None, ge=0)
    notes: str | None = None
    cost: float | None = Field(default=None, ge=0)
    parts_used: list[str] | None = None
    service_provider: str | None = None

    @field_validator("parts_used", mode="before")
    @classmethod
    def _parse_parts(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, list):
                return [str(item) for item in parsed]
        return [part.strip() for part in text.split(",") if part.strip()]


class TaskCompletion(CompletionDetails):
    task_id: int
    equipment_id: int | None = None


class CreateMaintenanceLogInput(CompletionDetails):
    task_id: int
    equipment_id: int
