"""Entity records shared by the engine, the API, and persistence backends."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

Priority = Literal["low", "medium", "high", "critical"]
TaskStatus = Literal["pending", "completed"]
EntityName = Literal["equipment_type", "task_type", "equipment", "task", "maintenance_log"]

DEFAULT_EQUIPMENT_TYPES = ("vehicle", "tool", "appliance", "system", "device", "other")
DEFAULT_TASK_TYPES = (
    ("oil change", "Replace engine or gearbox oil", 45),
    ("inspection", "Visual and functional inspection", 30),
    ("cleaning", "Clean and clear debris", 30),
    ("filter replacement", "Replace air, fuel, or water filters", 20),
    ("lubrication", "Grease and lubricate moving parts", 15),
    ("battery service", "Test, charge, or replace batteries", 20),
    ("tire service", "Rotate, inflate, or replace tires", 40),
    ("general service", "Scheduled general service", 60),
)


class EquipmentType(BaseModel):
    id: int
    name: str


class TaskType(BaseModel):
    id: int
    name: str
    description: str | None = None
    estimated_duration_minutes: int | None = None


class Equipment(BaseModel):
    """A tracked piece of equipment with a monotonic usage meter."""

    id: int
    name: str
    equipment_type_id: int
    make: str | None = None
    model: str | None = None
    year: int | None = None
    serial_number: str | None = None
    purchase_date: date | None = None
    current_usage_value: float = 0.0
    usage_unit: str = "hours"
    created_at: datetime
    updated_at: datetime


class Task(BaseModel):
    """A recurring maintenance obligation attached to one equipment item."""

    id: int
    equipment_id: int
    task_type_id: int
    title: str
    description: str | None = None
    usage_interval: float | None = None
    time_interval_days: int | None = None
    last_completed_usage_value: float | None = None
    last_completed_date: date | None = None
    next_due_usage_value: float | None = None
    next_due_date: date | None = None
    priority: Priority = "medium"
    status: TaskStatus = "pending"
    created_at: datetime
    updated_at: datetime


class MaintenanceLog(BaseModel):
    """Immutable record of one completion event."""

    id: int
    task_id: int
    equipment_id: int
    completed_date: date
    completed_usage_value: float | None = None
    notes: str | None = None
    cost: float | None = None
    parts_used: list[str] = Field(default_factory=list)
    service_provider: str | None = None
    created_at: datetime


RECORD_MODELS: dict[str, type[BaseModel]] = {
    "equipment_type": EquipmentType,
    "task_type": TaskType,
    "equipment": Equipment,
    "task": Task,
    "maintenance_log": MaintenanceLog,
}

# Parent references checked before a row is written: field -> referenced entity.
REFERENCES: dict[str, dict[str, str]] = {
    "equipment": {"equipment_type_id": "equipment_type"},
    "task": {"equipment_id": "equipment", "task_type_id": "task_type"},
    "maintenance_log": {"task_id": "task", "equipment_id": "equipment"},
}
