"""Turn a natural-language request into a pending, confirmable action."""

from __future__ import annotations

import json
import logging
from typing import Any

from maintenance_orchestrator.actions.models import ProposalResponse
from maintenance_orchestrator.actions.pending import PendingActionStore
from maintenance_orchestrator.graph.state import initial_state
from maintenance_orchestrator.graph.workflow import build_graph, recursion_limit
from maintenance_orchestrator.tools.gateway import FunctionExecutor
from maintenance_orchestrator.tools.llm import ChatModel
from maintenance_orchestrator.tools.registry import tool_definitions

logger = logging.getLogger(__name__)

NEEDS_MORE_INFO_MESSAGE = "I need more information to help you with that request."

SYSTEM_PROMPT = """You are a maintenance management assistant. You help users track \
equipment, schedule recurring maintenance tasks, and record completed work.

Guidelines:
- Before creating or changing equipment, look at the existing equipment in the \
context or search for it so you reference the right id.
- Use the available equipment types and task types from the context; equipment \
types are vehicle, tool, appliance, system, device, or other.
- Dates are always formatted as YYYY-MM-DD.
- Recurring tasks repeat every time_interval_days, every usage_interval units of \
the equipment's usage meter, or both.
- When the user reports finished work, call complete_task for the matching task.
- Call exactly one create, update, delete, or complete function per request. \
Every change is shown to the user for confirmation before it is applied.
- If the request is ambiguous, ask a short clarifying question instead of guessing."""


class ConversationOrchestrator:
    """Drive the bounded think/resolve loop and park proposals for confirmation."""

    def __init__(
        self,
        *,
        chat_model: ChatModel,
        executor: FunctionExecutor,
        pending_actions: PendingActionStore,
        max_iterations: int = 3,
    ) -> None:
        self.chat_model = chat_model
        self.executor = executor
        self.pending_actions = pending_actions
        self.max_iterations = max_iterations
        self.tools = tool_definitions(executor.catalog)
        self.workflow = build_graph(chat_model=chat_model, executor=executor, tools=self.tools)

    def propose(self, prompt: str, *, context: str | None = None) -> ProposalResponse:
        if not prompt or not prompt.strip():
            return ProposalResponse(
                success=False, error="Prompt is required", error_kind="invalid_arguments"
            )

        state = initial_state(
            self._initial_messages(prompt.strip(), context),
            max_iterations=self.max_iterations,
        )
        result: dict[str, Any] = self.workflow.invoke(
            state, config={"recursion_limit": recursion_limit(self.max_iterations)}
        )
        outcome = result.get("outcome") or {"status": "exhausted"}
        executed = list(result.get("executed_functions", []))
        logger.info(
            "conversation event=finished status=%s iterations=%s executed=%s",
            outcome.get("status"),
            result.get("iteration"),
            executed,
        )
        return self._to_response(outcome, executed)

    def prefetch_context(self) -> dict[str, Any]:
        """Load lookup tables and a compact equipment list for the first model call."""
        context: dict[str, Any] = {}
        for key, function in (
            ("available_equipment_types", "get_equipment_types"),
            ("available_task_types", "get_task_types"),
            ("existing_equipment", "get_equipment_list"),
        ):
            result = self.executor.execute(function, {})
            if result.status != "ok":
                logger.warning(
                    "conversation event=prefetch_failed function=%s error=%s",
                    function,
                    result.error,
                )
                continue
            context[key] = result.result

        context["existing_equipment"] = [
            {
                key: row.get(key)
                for key in (
                    "id",
                    "name",
                    "make",
                    "model",
                    "equipment_type_id",
                    "current_usage_value",
                    "usage_unit",
                )
            }
            for row in context.get("existing_equipment", [])
        ]
        return context

    def _initial_messages(self, prompt: str, user_context: str | None) -> list[dict[str, Any]]:
        context = self.prefetch_context()
        context["today"] = self.executor.engine.today().isoformat()
        if user_context:
            context["user_context"] = user_context
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "system", "content": f"Context: {json.dumps(context, default=str)}"},
            {"role": "user", "content": prompt},
        ]

    def _to_response(self, outcome: dict[str, Any], executed: list[str]) -> ProposalResponse:
        status = outcome.get("status")
        if status == "action":
            action = outcome["action"]
            pending = self.pending_actions.put(action)
            logger.info(
                "conversation event=proposed function=%s type=%s entity=%s action_id=%s",
                outcome.get("function"),
                action.type,
                action.entity,
                pending.token,
            )
            return ProposalResponse(
                success=True,
                action=action,
                action_id=pending.token,
                message=action.confirmation_message,
                executed_functions=executed,
            )
        if status == "text":
            message = outcome.get("message") or NEEDS_MORE_INFO_MESSAGE
            return ProposalResponse(
                success=True,
                message=message,
                requires_more_info=True,
                executed_functions=executed,
            )
        if status == "error":
            return ProposalResponse(
                success=False,
                error=outcome.get("error"),
                error_kind=outcome.get("error_kind"),
                executed_functions=executed,
            )
        return ProposalResponse(
            success=False,
            message=NEEDS_MORE_INFO_MESSAGE,
            requires_more_info=True,
            error=NEEDS_MORE_INFO_MESSAGE,
            error_kind="iteration_budget_exhausted",
            executed_functions=executed,
        )
