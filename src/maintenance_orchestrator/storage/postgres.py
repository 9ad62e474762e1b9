"""PostgreSQL-backed entity storage with automatic table migration."""

from __future__ import annotations

import json
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
    EntityName,
)

TABLES: dict[str, str] = {
    "equipment_type": "equipment_types",
    "task_type": "task_types",
    "equipment": "equipment",
    "task": "tasks",
    "maintenance_log": "maintenance_logs",
}
JSON_COLUMNS = frozenset({"parts_used"})

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS equipment_types (
        id BIGSERIAL PRIMARY KEY,
        name TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS task_types (
        id BIGSERIAL PRIMARY KEY,
        name TEXT NOT NULL UNIQUE,
        description TEXT,
        estimated_duration_minutes INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS equipment (
        id BIGSERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        equipment_type_id BIGINT NOT NULL REFERENCES equipment_types(id),
        make TEXT,
        model TEXT,
        year INTEGER,
        serial_number TEXT,
        purchase_date DATE,
        current_usage_value DOUBLE PRECISION NOT NULL DEFAULT 0,
        usage_unit TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id BIGSERIAL PRIMARY KEY,
        equipment_id BIGINT NOT NULL REFERENCES equipment(id) ON DELETE CASCADE,
        task_type_id BIGINT NOT NULL REFERENCES task_types(id),
        title TEXT NOT NULL,
        description TEXT,
        usage_interval DOUBLE PRECISION,
        time_interval_days INTEGER,
        last_completed_usage_value DOUBLE PRECISION,
        last_completed_date DATE,
        next_due_usage_value DOUBLE PRECISION,
        next_due_date DATE,
        priority TEXT NOT NULL DEFAULT 'medium',
        status TEXT NOT NULL DEFAULT 'pending',
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_tasks_equipment_id
    ON tasks(equipment_id)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_tasks_next_due_date
    ON tasks(next_due_date)
    """,
    """
    CREATE TABLE IF NOT EXISTS maintenance_logs (
        id BIGSERIAL PRIMARY KEY,
        task_id BIGINT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
        equipment_id BIGINT NOT NULL REFERENCES equipment(id) ON DELETE CASCADE,
        completed_date DATE NOT NULL,
        completed_usage_value DOUBLE PRECISION,
        notes TEXT,
        cost DOUBLE PRECISION,
        parts_used JSONB NOT NULL DEFAULT '[]'::jsonb,
        service_provider TEXT,
        created_at TIMESTAMPTZ NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_maintenance_logs_task_id
    ON maintenance_logs(task_id)
    """,
)


class PostgresEntityStore:
    """Persist equipment, tasks, and maintenance logs in PostgreSQL.

    Column names interpolated into SQL always come from the record models,
    never from caller input.
    """

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("MAINTENANCE_ORCHESTRATOR_DATABASE_URL is required")
        self.database_url = database_url
        self._lock = threading.RLock()
        self._local = threading.local()
        self._psycopg, self._dict_row, self._json_wrapper = self._load_psycopg()

    def migrate(self) -> None:
        with self.transaction(), self._connection() as conn:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(statement)
            for name in DEFAULT_EQUIPMENT_TYPES:
                conn.execute(
                    "INSERT INTO equipment_types (name) VALUES (%s) ON CONFLICT (name) DO NOTHING",
                    (name,),
                )
            for name, description, minutes in DEFAULT_TASK_TYPES:
                conn.execute(
                    """
                    INSERT INTO task_types (name, description, estimated_duration_minutes)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (name) DO NOTHING
                    """,
                    (name, description, minutes),
                )

    def get(self, entity: EntityName, entity_id: int) -> BaseModel | None:
        table = _table(entity)
        with self._connection() as conn:
            row = conn.execute(f"SELECT * FROM {table} WHERE id = %s", (entity_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_record(entity, row)

    def list(self, entity: EntityName, **filters: Any) -> list[BaseModel]:
        table = _table(entity)
        fields = RECORD_MODELS[entity].model_fields
        active = {key: value for key, value in filters.items() if value is not None}
        unknown = sorted(key for key in active if key not in fields)
        if unknown:
            raise ValueError(f"Unknown filter field(s) for {entity}: {', '.join(unknown)}")
        where = " AND ".join(f"{key} = %s" for key in active)
        query = f"SELECT * FROM {table}"
        if where:
            query += f" WHERE {where}"
        query += " ORDER BY id"
        with self._connection() as conn:
            rows = conn.execute(query, tuple(active.values())).fetchall()
        return [self._row_to_record(entity, row) for row in rows]

    def create(self, entity: EntityName, data: dict[str, Any]) -> BaseModel:
        table = _table(entity)
        model = RECORD_MODELS[entity]
        now = datetime.now(tz=UTC)
        candidate = {**data, "id": 0}
        for field in ("created_at", "updated_at"):
            if field in model.model_fields:
                candidate[field] = now
        values = _validate(model, candidate).model_dump(exclude={"id"})
        columns = list(values)
        placeholders = ", ".join(["%s"] * len(columns))
        with self._connection() as conn:
            row = self._execute(
                conn,
                f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) RETURNING *",
                tuple(self._adapt(column, values[column]) for column in columns),
            ).fetchone()
        if row is None:
            raise RuntimeError(f"Failed to persist {entity}")
        return self._row_to_record(entity, row)

    def update(self, entity: EntityName, entity_id: int, patch: dict[str, Any]) -> BaseModel:
        table = _table(entity)
        model = RECORD_MODELS[entity]
        with self.transaction(), self._connection() as conn:
            current = conn.execute(
                f"SELECT * FROM {table} WHERE id = %s FOR UPDATE", (entity_id,)
            ).fetchone()
            if current is None:
                raise NotFoundError(f"{_label(entity)} with ID {entity_id} not found")
            merged = {**self._row_to_record(entity, current).model_dump(), **patch, "id": entity_id}
            if "updated_at" in model.model_fields:
                merged["updated_at"] = datetime.now(tz=UTC)
            values = _validate(model, merged).model_dump(exclude={"id", "created_at"})
            assignments = ", ".join(f"{column} = %s" for column in values)
            row = self._execute(
                conn,
                f"UPDATE {table} SET {assignments} WHERE id = %s RETURNING *",
                (*(self._adapt(column, value) for column, value in values.items()), entity_id),
            ).fetchone()
        return self._row_to_record(entity, row)

    def delete(self, entity: EntityName, entity_id: int) -> bool:
        table = _table(entity)
        with self._connection() as conn:
            row = self._execute(
                conn, f"DELETE FROM {table} WHERE id = %s RETURNING id", (entity_id,)
            ).fetchone()
        return row is not None

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if getattr(self._local, "conn", None) is not None:
            yield
            return
        with self._lock, self._connect() as conn:
            self._local.conn = conn
            try:
                yield
                conn.commit()
            finally:
                self._local.conn = None

    @contextmanager
    def _connection(self) -> Iterator[Any]:
        active = getattr(self._local, "conn", None)
        if active is not None:
            yield active
            return
        with self._lock, self._connect() as conn:
            yield conn
            conn.commit()

    def _connect(self) -> Any:
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    def _execute(self, conn: Any, query: str, params: tuple[Any, ...]) -> Any:
        try:
            return conn.execute(query, params)
        except self._psycopg.IntegrityError as exc:
            raise ValidationFailedError(f"Constraint violation: {exc}") from exc

    def _adapt(self, column: str, value: Any) -> Any:
        if column in JSON_COLUMNS:
            return self._json_wrapper(value)
        return value

    @staticmethod
    def _row_to_record(entity: str, row: Any) -> BaseModel:
        payload = dict(row)
        for column in JSON_COLUMNS.intersection(payload):
            if isinstance(payload[column], str):
                payload[column] = json.loads(payload[column])
        return RECORD_MODELS[entity].model_validate(payload)

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
            from psycopg.types.json import Json
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row, Json


def _table(entity: str) -> str:
    table = TABLES.get(entity)
    if table is None:
        raise ValueError(f"Unknown entity: {entity}")
    return table


def _validate(model: type[BaseModel], payload: dict[str, Any]) -> BaseModel:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ValidationFailedError(f"Invalid {model.__name__}: {exc.errors()[0]['msg']}") from exc


def _label(entity: str) -> str:
    return entity.replace("_", " ").capitalize()
