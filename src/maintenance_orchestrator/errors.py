"""Error taxonomy shared by the executor, the engine, and the API layer."""

from __future__ import annotations

from typing import Literal

ErrorKind = Literal[
    "not_found",
    "expired",
    "invalid_arguments",
    "unknown_function",
    "validation_failed",
    "iteration_budget_exhausted",
    "external_capability_failure",
]

# HTTP status used by the API layer for each failure kind.
ERROR_STATUS_CODES: dict[str, int] = {
    "not_found": 404,
    "expired": 410,
    "invalid_arguments": 422,
    "unknown_function": 422,
    "validation_failed": 409,
    "iteration_budget_exhausted": 200,
    "external_capability_failure": 502,
}


class MaintenanceError(Exception):
    """Base class for failures that carry a machine-readable kind."""

    kind: ErrorKind = "validation_failed"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(MaintenanceError):
    kind: ErrorKind = "not_found"


class ExpiredError(MaintenanceError):
    kind: ErrorKind = "expired"


class InvalidArgumentsError(MaintenanceError):
    kind: ErrorKind = "invalid_arguments"


class UnknownFunctionError(MaintenanceError):
    kind: ErrorKind = "unknown_function"


class ValidationFailedError(MaintenanceError):
    kind: ErrorKind = "validation_failed"


class IterationBudgetExhaustedError(MaintenanceError):
    kind: ErrorKind = "iteration_budget_exhausted"


class ExternalCapabilityError(MaintenanceError):
    """Model call failed, or its reply could not be interpreted."""

    kind: ErrorKind = "external_capability_failure"


def status_code_for(kind: str | None) -> int:
    if kind is None:
        return 200
    return ERROR_STATUS_CODES.get(kind, 400)
