"""Resolve node: run the calls requested by the model through the executor."""

from __future__ import annotations

import json

from maintenance_orchestrator.graph.state import ConversationState
from maintenance_orchestrator.tools.gateway import FunctionExecutor


def run(state: ConversationState, *, executor: FunctionExecutor) -> ConversationState:
    messages = list(state.get("messages", []))
    executed = list(state.get("executed_functions", []))

    for call in state.get("pending_calls", []):
        result = executor.execute(call.name, call.arguments)
        executed.append(call.name)
        if result.status == "failed":
            return {
                "messages": messages,
                "executed_functions": executed,
                "pending_calls": [],
                "outcome": {
                    "status": "error",
                    "error": result.error,
                    "error_kind": result.error_kind,
                    "function": call.name,
                },
            }
        if result.kind == "mutation":
            # The first proposal ends the turn; later calls are dropped.
            return {
                "messages": messages,
                "executed_functions": executed,
                "pending_calls": [],
                "outcome": {"status": "action", "action": result.action, "function": call.name},
            }
        messages.append(
            {
                "role": "function_result",
                "call_id": call.call_id,
                "name": call.name,
                "content": json.dumps(result.result, default=str),
            }
        )

    return {"messages": messages, "executed_functions": executed, "pending_calls": []}
