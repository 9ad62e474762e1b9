"""LangGraph workflow assembly for the conversation loop."""

from functools import partial
from typing import Any

from langgraph.graph import END, StateGraph

from maintenance_orchestrator.graph.nodes import resolve, think
from maintenance_orchestrator.graph.state import ConversationState
from maintenance_orchestrator.tools.gateway import FunctionExecutor
from maintenance_orchestrator.tools.llm import ChatModel


def _exhausted(state: ConversationState) -> ConversationState:
    return {"outcome": {"status": "exhausted"}}


def _after_think(state: ConversationState) -> str:
    if state.get("outcome") is not None:
        return "done"
    if state.get("pending_calls"):
        return "resolve"
    return "done"


def _after_resolve(state: ConversationState) -> str:
    if state.get("outcome") is not None:
        return "done"
    if int(state.get("iteration", 0)) >= int(state.get("max_iterations", 3)):
        return "exhausted"
    return "think"


def build_graph(*, chat_model: ChatModel, executor: FunctionExecutor, tools: list[dict[str, Any]]):
    graph = StateGraph(ConversationState)

    graph.add_node("think", partial(think.run, chat_model=chat_model, tools=tools))
    graph.add_node("resolve_tools", partial(resolve.run, executor=executor))
    graph.add_node("exhausted", _exhausted)

    graph.set_entry_point("think")
    graph.add_conditional_edges("think", _after_think, {"resolve": "resolve_tools", "done": END})
    graph.add_conditional_edges(
        "resolve_tools",
        _after_resolve,
        {"think": "think", "exhausted": "exhausted", "done": END},
    )
    graph.add_edge("exhausted", END)

    return graph.compile()


def recursion_limit(max_iterations: int) -> int:
    return 2 * max_iterations + 5
