"""Storage backends and models."""

from maintenance_orchestrator.storage.base import EntityStore
from maintenance_orchestrator.storage.memory import InMemoryEntityStore
from maintenance_orchestrator.storage.models import (
    Equipment,
    EquipmentType,
    MaintenanceLog,
    Task,
    TaskType,
)
from maintenance_orchestrator.storage.postgres import PostgresEntityStore

__all__ = [
    "EntityStore",
    "Equipment",
    "EquipmentType",
    "InMemoryEntityStore",
    "MaintenanceLog",
    "PostgresEntityStore",
    "Task",
    "TaskType",
]
