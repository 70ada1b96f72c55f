"""Assistant chat, diagnostics and local helper endpoints."""
from __future__ import annotations

from time import perf_counter

from fastapi import APIRouter, Depends, Request

from lifecoach.api.schemas.chat import (
    ActionOut,
    ChatRequest,
    ChatResponse,
    PrioritizeResponse,
    SuggestionOut,
    SuggestionsResponse,
    TaskPriorityOut,
    TokenBudgetOut,
    UsageOut,
)
from lifecoach.api.schemas.insights import InsightsRequest
from lifecoach.api.schemas.life_data import LifeData
from lifecoach.api.schemas.status import StatusResponse
from lifecoach.observability.metrics import log_metric
from lifecoach.observability.tracing import trace
from lifecoach.services import context_aggregator, local_assistant
from lifecoach.services.chat_gateway import HistoryMessage
from lifecoach.services.clock import local_now
from lifecoach.services.runtime import AssistantRuntime, get_runtime

router = APIRouter(prefix="/ai", tags=["assistant"])


@router.post("/chat", response_model=ChatResponse)
def chat(
    request: Request,
    payload: ChatRequest,
    runtime: AssistantRuntime = Depends(get_runtime),
) -> ChatResponse:
    request_id = getattr(request.state, "request_id", None)
    life_data = LifeData.from_payload(payload.user_data)
    history = [HistoryMessage(role=item.role, content=item.content) for item in payload.conversation_history]
    start = perf_counter()
    with trace(
        "chat.turn",
        metadata={"llm_input_text": payload.message[:500], "history": len(history)},
        request_id=request_id,
    ) as turn_trace:
        result = runtime.gateway.run(
            payload.message,
            history=history,
            life_data=life_data,
            request_id=request_id,
        )
        if turn_trace:
            turn_trace.update(output={"llm_output_text": result.reply.message[:500], "source": result.source})

    latency_ms = (perf_counter() - start) * 1000
    log_metric("chat.turn.latency_ms", latency_ms, metadata={"source": result.source})
    log_metric("chat.turn.actions", len(result.reply.actions), metadata={"source": result.source})

    budget = runtime.budget.snapshot()
    usage = None
    if result.usage:
        usage = UsageOut(
            prompt_tokens=result.usage.prompt_tokens,
            completion_tokens=result.usage.completion_tokens,
            total_tokens=result.usage.total_tokens,
        )
    return ChatResponse(
        message=result.reply.message,
        actions=[ActionOut(**action) for action in result.reply.wire_actions()],
        suggestions=[SuggestionOut(**suggestion.model_dump()) for suggestion in result.reply.suggestions],
        source=result.source,
        intent=result.intent.value if result.intent else None,
        usage=usage,
        token_budget=TokenBudgetOut(
            used=budget["used"],
            limit=budget["limit"],
            remaining=budget["remaining"],
            requests=budget["requests"],
        ),
        request_id=request_id or "",
    )


@router.get("/status", response_model=StatusResponse)
def assistant_status(
    request: Request,
    runtime: AssistantRuntime = Depends(get_runtime),
) -> StatusResponse:
    request_id = getattr(request.state, "request_id", None)
    with trace("assistant.status", metadata={"route": "/ai/status"}, request_id=request_id):
        status = runtime.gateway.status()
    return StatusResponse(
        pool=status["pool"],
        budget=status["budget"],
        model=runtime.provider.model,
        request_id=request_id or "",
    )


@router.post("/prioritize", response_model=PrioritizeResponse)
def prioritize_tasks(request: Request, payload: InsightsRequest) -> PrioritizeResponse:
    request_id = getattr(request.state, "request_id", None)
    life_data = LifeData.from_payload(payload.user_data)
    with trace(
        "assistant.prioritize",
        metadata={"tasks": len(life_data.tasks)},
        user_id=payload.user_id,
        request_id=request_id,
    ):
        ranked = local_assistant.prioritize(life_data, local_now().date())
    log_metric("assistant.prioritize.count", len(ranked), metadata={"user_id": payload.user_id})
    return PrioritizeResponse(
        tasks=[
            TaskPriorityOut(task_id=item.task_id, title=item.title, score=item.score, reasoning=item.reasoning)
            for item in ranked
        ],
        request_id=request_id or "",
    )


@router.get("/suggestions", response_model=SuggestionsResponse)
def suggestions(request: Request) -> SuggestionsResponse:
    request_id = getattr(request.state, "request_id", None)
    now = local_now()
    snapshot = context_aggregator.build(LifeData(), now)
    with trace("assistant.suggestions", metadata={"hour": now.hour}, request_id=request_id):
        items = local_assistant.time_of_day_suggestions(snapshot, now)
    return SuggestionsResponse(
        suggestions=[SuggestionOut(**item.model_dump()) for item in items],
        request_id=request_id or "",
    )
