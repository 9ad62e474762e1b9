"""In-memory storage backend for tests and local runs."""

from __future__ import annotations

import copy
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from maintenance_orchestrator.errors import NotFoundError, ValidationFailedError
from maintenance_orchestrator.storage.models import (
    DEFAULT_EQUIPMENT_TYPES,
    DEFAULT_TASK_TYPES,
    RECORD_MODELS,
    REFERENCES,
    EntityName,
)


class InMemoryEntityStore:
    """Dictionary-backed store with snapshot rollback for transactions."""

    def __init__(self, *, seed_lookups: bool = True) -> None:
        self._lock = threading.RLock()
        self._rows: dict[str, dict[int, BaseModel]] = {name: {} for name in RECORD_MODELS}
        self._next_ids: dict[str, int] = {name: 1 for name in RECORD_MODELS}
        if seed_lookups:
            self.migrate()

    def migrate(self) -> None:
        with self._lock:
            if not self._rows["equipment_type"]:
                for name in DEFAULT_EQUIPMENT_TYPES:
                    self.create("equipment_type", {"name": name})
            if not self._rows["task_type"]:
                for name, description, minutes in DEFAULT_TASK_TYPES:
                    self.create(
                        "task_type",
                        {
                            "name": name,
                            "description": description,
                            "estimated_duration_minutes": minutes,
                        },
                    )

    def get(self, entity: EntityName, entity_id: int) -> BaseModel | None:
        with self._lock:
            return self._table(entity).get(entity_id)

    def list(self, entity: EntityName, **filters: Any) -> list[BaseModel]:
        active = {key: value for key, value in filters.items() if value is not None}
        with self._lock:
            rows = sorted(self._table(entity).values(), key=lambda row: row.id)
        return [
            row
            for row in rows
            if all(getattr(row, key, None) == value for key, value in active.items())
        ]

    def create(self, entity: EntityName, data: dict[str, Any]) -> BaseModel:
        model = RECORD_MODELS[entity]
        with self._lock:
            self._check_references(entity, data)
            now = datetime.now(UTC)
            payload = {**data, "id": self._next_ids[entity]}
            for field in ("created_at", "updated_at"):
                if field in model.model_fields:
                    payload[field] = now
            record = _validate(model, payload)
            self._table(entity)[record.id] = record
            self._next_ids[entity] += 1
            return record

    def update(self, entity: EntityName, entity_id: int, patch: dict[str, Any]) -> BaseModel:
        model = RECORD_MODELS[entity]
        with self._lock:
            current = self._table(entity).get(entity_id)
            if current is None:
                raise NotFoundError(f"{_label(entity)} with ID {entity_id} not found")
            merged = {**current.model_dump(), **patch, "id": entity_id}
            self._check_references(entity, merged)
            if "updated_at" in model.model_fields:
                merged["updated_at"] = datetime.now(UTC)
            record = _validate(model, merged)
            self._table(entity)[entity_id] = record
            return record

    def delete(self, entity: EntityName, entity_id: int) -> bool:
        with self._lock:
            if entity_id not in self._table(entity):
                return False
            if entity == "equipment":
                for task in self.list("task", equipment_id=entity_id):
                    self.delete("task", task.id)
                for log in self.list("maintenance_log", equipment_id=entity_id):
                    del self._rows["maintenance_log"][log.id]
            elif entity == "task":
                for log in self.list("maintenance_log", task_id=entity_id):
                    del self._rows["maintenance_log"][log.id]
            del self._table(entity)[entity_id]
            return True

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            rows_snapshot = copy.deepcopy(self._rows)
            ids_snapshot = dict(self._next_ids)
            try:
                yield
            except BaseException:
                self._rows = rows_snapshot
                self._next_ids = ids_snapshot
                raise

    def _table(self, entity: str) -> dict[int, BaseModel]:
        if entity not in self._rows:
            raise ValueError(f"Unknown entity: {entity}")
        return self._rows[entity]

    def _check_references(self, entity: str, data: dict[str, Any]) -> None:
        for field, parent in REFERENCES.get(entity, {}).items():
            parent_id = data.get(field)
            if parent_id is None:
                continue
            if parent_id not in self._rows[parent]:
                raise ValidationFailedError(
                    f"{_label(parent)} with ID {parent_id} does not exist"
                )


def _validate(model: type[BaseModel], payload: dict[str, Any]) -> BaseModel:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ValidationFailedError(f"Invalid {model.__name__}: {exc.errors()[0]['msg']}") from exc


def _label(entity: str) -> str:
    return entity.replace("_", " ").capitalize()
