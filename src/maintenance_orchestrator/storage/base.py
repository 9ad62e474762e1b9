"""Storage interface for equipment, tasks, and maintenance logs."""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Protocol

from pydantic import BaseModel

from maintenance_orchestrator.storage.models import EntityName


class EntityStore(Protocol):
    """Generic CRUD surface over the five entity tables.

    ``update`` raises ``NotFoundError`` for a missing row, ``delete`` returns
    ``False`` instead. Writes that break a parent reference raise
    ``ValidationFailedError``. Deleting equipment removes its tasks and logs,
    deleting a task removes its logs.
    """

    def migrate(self) -> None: ...

    def get(self, entity: EntityName, entity_id: int) -> BaseModel | None: ...

    def list(self, entity: EntityName, **filters: Any) -> list[BaseModel]: ...

    def create(self, entity: EntityName, data: dict[str, Any]) -> BaseModel: ...

    def update(self, entity: EntityName, entity_id: int, patch: dict[str, Any]) -> BaseModel: ...

    def delete(self, entity: EntityName, entity_id: int) -> bool: ...

    def transaction(self) -> AbstractContextManager[None]: ...
