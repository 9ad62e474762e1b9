"""FastAPI app entrypoint for maintenance-orchestrator."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, Literal

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from maintenance_orchestrator.actions.confirmation import ConfirmationHandler
from maintenance_orchestrator.actions.models import ConfirmationResponse, ProposalResponse
from maintenance_orchestrator.actions.pending import InMemoryPendingActionStore, PendingActionStore
from maintenance_orchestrator.config.settings import Settings, configure_logging, get_settings
from maintenance_orchestrator.errors import MaintenanceError, status_code_for
from maintenance_orchestrator.graph.orchestrator import ConversationOrchestrator
from maintenance_orchestrator.recurrence import RecurrenceEngine
from maintenance_orchestrator.storage import EntityStore, InMemoryEntityStore, PostgresEntityStore
from maintenance_orchestrator.tools.gateway import FunctionExecutor
from maintenance_orchestrator.tools.llm import ChatModel, build_chat_model
from maintenance_orchestrator.tools.registry import list_functions
from maintenance_orchestrator.tools.schemas import CompletionDetails

logger = logging.getLogger(__name__)

LLM_NOT_CONFIGURED = (
    "LLM service not properly configured. Set OPENAI_API_KEY or "
    "MAINTENANCE_ORCHESTRATOR_LLM_BASE_URL to an Ollama endpoint."
)


class QuickEditRequest(BaseModel):
    prompt: str = Field(min_length=1)
    context: str | None = None


class ConfirmRequest(BaseModel):
    action_id: str = Field(min_length=1)
    confirmed: bool
    edited_data: dict[str, Any] | None = None
    feedback: str | None = None


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    store_override: EntityStore | None,
    chat_model_override: ChatModel | None,
    pending_override: PendingActionStore | None,
    clock: Callable[[], datetime],
) -> None:
    if not hasattr(app.state, "store"):
        database_url = settings.resolved_database_url()
        if store_override is not None:
            app.state.store = store_override
        elif database_url:
            app.state.store = PostgresEntityStore(database_url)
        else:
            logger.warning("startup event=in_memory_store reason=no_database_url")
            app.state.store = InMemoryEntityStore()
        app.state.store.migrate()

    if not hasattr(app.state, "engine"):
        store = app.state.store
        app.state.settings = settings
        app.state.engine = RecurrenceEngine(store, clock=clock)
        app.state.executor = FunctionExecutor(
            store=store,
            engine=app.state.engine,
            upcoming_days=settings.upcoming_task_range_days,
        )
        app.state.pending_actions = pending_override or InMemoryPendingActionStore(
            ttl_s=settings.pending_action_ttl_s,
            max_entries=settings.pending_action_max_entries,
            evict_to=settings.pending_action_evict_to,
            clock=clock,
        )
        app.state.confirmation = ConfirmationHandler(
            store=store,
            pending_actions=app.state.pending_actions,
            engine=app.state.engine,
            clock=clock,
        )
        chat_model = chat_model_override or build_chat_model(settings)
        app.state.orchestrator = (
            ConversationOrchestrator(
                chat_model=chat_model,
                executor=app.state.executor,
                pending_actions=app.state.pending_actions,
                max_iterations=settings.max_conversation_iterations,
            )
            if chat_model is not None
            else None
        )


def create_app(
    *,
    store: EntityStore | None = None,
    settings_override: Settings | None = None,
    chat_model: ChatModel | None = None,
    pending_actions: PendingActionStore | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    configure_logging(settings)
    now = clock or (lambda: datetime.now(UTC))

    def _init(app: FastAPI) -> None:
        _ensure_runtime_state(
            app,
            settings=settings,
            store_override=store,
            chat_model_override=chat_model,
            pending_override=pending_actions,
            clock=now,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _init(app)
        yield

    app_lifespan = lifespan if store is None else None
    app = FastAPI(title=settings.app_name, lifespan=app_lifespan)

    # Keep test paths reliable when lifespan is not executed by the client.
    if store is not None:
        _init(app)

    def _state(request: Request) -> Any:
        if not hasattr(request.app.state, "engine"):
            _init(request.app)
        return request.app.state

    @app.exception_handler(MaintenanceError)
    async def maintenance_error_handler(_: Request, exc: MaintenanceError) -> JSONResponse:
        return JSONResponse(
            status_code=status_code_for(exc.kind),
            content={"error": exc.message, "error_kind": exc.kind},
        )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/functions")
    def functions() -> dict[str, list[str]]:
        return {"functions": list_functions()}

    @app.get("/dashboard")
    def dashboard(request: Request) -> dict[str, int]:
        state = _state(request)
        return state.engine.dashboard_stats(days=settings.upcoming_task_range_days)

    @app.get("/tasks")
    def tasks(
        request: Request,
        view: Literal["all", "upcoming", "overdue"] = "all",
        days: int | None = Query(default=None, ge=1, le=3650),
        equipment_id: int | None = None,
    ) -> list[dict[str, Any]]:
        state = _state(request)
        rows = state.engine.list_tasks(
            view=view,
            days=days or settings.upcoming_task_range_days,
            equipment_id=equipment_id,
        )
        return [row.model_dump(mode="json") for row in rows]

    @app.post("/tasks/{task_id}/complete")
    def complete_task(task_id: int, payload: CompletionDetails, request: Request) -> dict[str, Any]:
        state = _state(request)
        result = state.engine.complete_task(task_id, payload)
        return result.model_dump(mode="json")

    @app.post("/quick-edit")
    def quick_edit(payload: QuickEditRequest, request: Request) -> JSONResponse:
        state = _state(request)
        if state.orchestrator is None:
            response = ProposalResponse(
                success=False,
                error=LLM_NOT_CONFIGURED,
                error_kind="external_capability_failure",
            )
        else:
            response = state.orchestrator.propose(payload.prompt, context=payload.context)
        return _json(response, response.error_kind)

    @app.post("/quick-edit/confirm")
    def confirm(payload: ConfirmRequest, request: Request) -> JSONResponse:
        state = _state(request)
        response: ConfirmationResponse = state.confirmation.confirm(
            payload.action_id,
            confirmed=payload.confirmed,
            edited_data=payload.edited_data,
            feedback=payload.feedback,
        )
        return _json(response, response.error_kind)

    return app


def _json(response: BaseModel, error_kind: str | None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code_for(error_kind),
        content=response.model_dump(mode="json", exclude_none=True),
    )


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("maintenance_orchestrator.api.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
