"""Think node: one model call per iteration."""

from __future__ import annotations

import logging
from typing import Any

from maintenance_orchestrator.errors import MaintenanceError
from maintenance_orchestrator.graph.state import ConversationState
from maintenance_orchestrator.tools.llm import ChatModel

logger = logging.getLogger(__name__)


def run(
    state: ConversationState,
    *,
    chat_model: ChatModel,
    tools: list[dict[str, Any]],
) -> ConversationState:
    iteration = int(state.get("iteration", 0)) + 1
    messages = list(state.get("messages", []))
    try:
        reply = chat_model.complete(messages, tools)
    except MaintenanceError as exc:
        logger.warning("conversation event=model_failed iteration=%s error=%s", iteration, exc.message)
        return {"iteration": iteration, "outcome": _error(exc.message, exc.kind)}
    except Exception as exc:  # noqa: BLE001
        logger.warning("conversation event=model_failed iteration=%s error=%s", iteration, exc)
        return {
            "iteration": iteration,
            "outcome": _error(f"Model call failed: {exc}", "external_capability_failure"),
        }

    messages.append(
        {
            "role": "assistant",
            "content": reply.content,
            "function_calls": list(reply.function_calls),
        }
    )
    if reply.function_calls:
        logger.info(
            "conversation event=function_calls iteration=%s functions=%s",
            iteration,
            [call.name for call in reply.function_calls],
        )
        return {
            "iteration": iteration,
            "messages": messages,
            "pending_calls": list(reply.function_calls),
        }

    return {
        "iteration": iteration,
        "messages": messages,
        "pending_calls": [],
        "outcome": {"status": "text", "message": (reply.content or "").strip()},
    }


def _error(message: str, kind: str) -> dict[str, Any]:
    return {"status": "error", "error": message, "error_kind": kind}
