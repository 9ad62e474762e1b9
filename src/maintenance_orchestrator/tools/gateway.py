"""Schema-enforcing function executor: runs queries, turns mutations into proposals."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ValidationError

from maintenance_orchestrator.actions.models import ActionResult
from maintenance_orchestrator.errors import (
    ErrorKind,
    InvalidArgumentsError,
    MaintenanceError,
    UnknownFunctionError,
)
from maintenance_orchestrator.recurrence import RecurrenceEngine
from maintenance_orchestrator.storage.base import EntityStore
from maintenance_orchestrator.tools.handlers import FunctionContext
from maintenance_orchestrator.tools.registry import FunctionKind, FunctionSpec, build_catalog

logger = logging.getLogger(__name__)


class FunctionResult(BaseModel):
    function: str
    kind: FunctionKind | None = None
    status: Literal["ok", "failed"]
    result: Any = None
    action: ActionResult | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    duration_ms: float = 0.0


class FunctionExecutor:
    """Validate a call against the catalog and run it without raising."""

    def __init__(
        self,
        *,
        store: EntityStore,
        engine: RecurrenceEngine | None = None,
        catalog: dict[str, FunctionSpec] | None = None,
        upcoming_days: int = 90,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.engine = engine or RecurrenceEngine(store, clock=clock)
        self.catalog = catalog or build_catalog()
        self.context = FunctionContext(
            store=store, engine=self.engine, upcoming_days=upcoming_days
        )

    def execute(self, name: str, args: dict[str, Any] | None) -> FunctionResult:
        started_at = time.perf_counter()
        spec = self.catalog.get(name)
        kind = spec.kind if spec is not None else None
        try:
            output = self._execute_once(spec, name, args)
        except MaintenanceError as exc:
            logger.info(
                "function_call event=failed function=%s kind=%s error_kind=%s error=%s",
                name,
                kind,
                exc.kind,
                exc.message,
            )
            return FunctionResult(
                function=name,
                kind=kind,
                status="failed",
                error=exc.message,
                error_kind=exc.kind,
                duration_ms=_duration_ms(started_at),
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("function_call event=error function=%s", name)
            return FunctionResult(
                function=name,
                kind=kind,
                status="failed",
                error=f"Store operation failed: {exc}",
                error_kind="validation_failed",
                duration_ms=_duration_ms(started_at),
            )

        logger.info(
            "function_call event=ok function=%s kind=%s duration_ms=%s",
            name,
            kind,
            _duration_ms(started_at),
        )
        if kind == "mutation":
            return FunctionResult(
                function=name,
                kind=kind,
                status="ok",
                action=output,
                duration_ms=_duration_ms(started_at),
            )
        return FunctionResult(
            function=name,
            kind=kind,
            status="ok",
            result=output,
            duration_ms=_duration_ms(started_at),
        )

    def _execute_once(self, spec: FunctionSpec | None, name: str, args: dict[str, Any] | None) -> Any:
        if spec is None:
            raise UnknownFunctionError(f"Unknown function: {name}")
        if args is not None and not isinstance(args, dict):
            raise InvalidArgumentsError(f"Arguments for {name} must be an object")
        try:
            payload = spec.input_model.model_validate(args or {})
        except ValidationError as exc:
            raise InvalidArgumentsError(
                f"Invalid arguments for {name}: {_format_validation_error(exc)}"
            ) from exc
        return spec.fn(self.context, payload)


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "arguments"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


def _duration_ms(started_at: float) -> float:
    return round((time.perf_counter() - started_at) * 1000.0, 2)
