"""Typed state contract for the conversation loop."""

from typing import Any, TypedDict

from maintenance_orchestrator.tools.llm import FunctionCall


class ConversationState(TypedDict, total=False):
    messages: list[dict[str, Any]]
    pending_calls: list[FunctionCall]
    executed_functions: list[str]
    iteration: int
    max_iterations: int
    outcome: dict[str, Any] | None


def initial_state(messages: list[dict[str, Any]], *, max_iterations: int = 3) -> ConversationState:
    return {
        "messages": list(messages),
        "pending_calls": [],
        "executed_functions": [],
        "iteration": 0,
        "max_iterations": max_iterations,
        "outcome": None,
    }
