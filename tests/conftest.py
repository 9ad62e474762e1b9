from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from maintenance_orchestrator.actions.pending import InMemoryPendingActionStore
from maintenance_orchestrator.recurrence import RecurrenceEngine
from maintenance_orchestrator.storage.memory import InMemoryEntityStore
from maintenance_orchestrator.storage.models import Equipment
from maintenance_orchestrator.tools.gateway import FunctionExecutor
from maintenance_orchestrator.tools.llm import ModelReply


class FixedClock:
    """Manually advanced clock shared by the engine and the pending store."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class ScriptedChatModel:
    """Test double that replays canned replies and records every transcript."""

    def __init__(self, replies: list[ModelReply | Exception] | Callable[[int], ModelReply]) -> None:
        self.replies = replies
        self.calls: list[list[dict[str, Any]]] = []
        self.tools: list[dict[str, Any]] = []

    def complete(self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> ModelReply:
        self.calls.append(list(messages))
        self.tools = tools
        index = len(self.calls) - 1
        if callable(self.replies):
            return self.replies(index)
        if index >= len(self.replies):
            raise AssertionError("model called more often than scripted")
        reply = self.replies[index]
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 3, 1, 9, 0, tzinfo=UTC))


@pytest.fixture
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def truck(store: InMemoryEntityStore) -> Equipment:
    return store.create(
        "equipment",
        {
            "name": "Work Truck",
            "equipment_type_id": 1,
            "make": "Ford",
            "model": "F-150",
            "current_usage_value": 50000.0,
            "usage_unit": "miles",
        },
    )


@pytest.fixture
def engine(store: InMemoryEntityStore, clock: FixedClock) -> RecurrenceEngine:
    return RecurrenceEngine(store, clock=clock)


@pytest.fixture
def executor(store: InMemoryEntityStore, engine: RecurrenceEngine) -> FunctionExecutor:
    return FunctionExecutor(store=store, engine=engine)


@pytest.fixture
def pending_actions(clock: FixedClock) -> InMemoryPendingActionStore:
    return InMemoryPendingActionStore(ttl_s=600, max_entries=100, evict_to=50, clock=clock)


@pytest.fixture
def scripted_model() -> type[ScriptedChatModel]:
    return ScriptedChatModel


@pytest.fixture
def make_task(store: InMemoryEntityStore, truck: Equipment) -> Callable[..., Any]:
    def _make_task(**overrides: Any) -> Any:
        data = {
            "equipment_id": truck.id,
            "task_type_id": 1,
            "title": "Oil change",
        }
        data.update(overrides)
        return store.create("task", data)

    return _make_task
