"""Pattern, risk and intervention endpoints."""
from __future__ import annotations

from time import perf_counter

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from lifecoach.api.schemas.insights import (
    BurnoutAssessment,
    ForecastResponse,
    InsightsRequest,
    InterventionsResponse,
    PatternsResponse,
)
from lifecoach.api.schemas.life_data import LifeData
from lifecoach.observability.metrics import log_metric
from lifecoach.observability.tracing import trace
from lifecoach.services import pattern_engine, predictor
from lifecoach.services.clock import local_now
from lifecoach.services.notifications.hooks import notify_critical_interventions
from lifecoach.services.runtime import AssistantRuntime, get_runtime

router = APIRouter(prefix="/insights", tags=["insights"])


@router.post("/interventions", response_model=InterventionsResponse)
def run_interventions(
    request: Request,
    payload: InsightsRequest,
    runtime: AssistantRuntime = Depends(get_runtime),
) -> InterventionsResponse:
    request_id = getattr(request.state, "request_id", None)
    life_data = LifeData.from_payload(payload.user_data)
    start = perf_counter()
    with trace(
        "interventions.detect",
        metadata={"user_id": payload.user_id},
        user_id=payload.user_id,
        request_id=request_id,
    ):
        result = pattern_engine.detect(life_data, local_now())
        fresh = runtime.interventions.refresh(payload.user_id, result.interventions)

    log_metric("interventions.detect.count", len(fresh), metadata={"user_id": payload.user_id})
    log_metric("interventions.detect.latency_ms", (perf_counter() - start) * 1000, metadata={"user_id": payload.user_id})
    notify_critical_interventions(payload.user_id, fresh, request_id)
    return InterventionsResponse(
        user_id=payload.user_id,
        new=fresh,
        active=runtime.interventions.active(payload.user_id),
        request_id=request_id or "",
    )


@router.get("/interventions", response_model=InterventionsResponse)
def list_interventions(
    request: Request,
    user_id: str = Query("anonymous", description="User ID"),
    runtime: AssistantRuntime = Depends(get_runtime),
) -> InterventionsResponse:
    request_id = getattr(request.state, "request_id", None)
    return InterventionsResponse(
        user_id=user_id,
        new=[],
        active=runtime.interventions.active(user_id),
        request_id=request_id or "",
    )


@router.post("/interventions/{intervention_id}/dismiss", response_model=InterventionsResponse)
def dismiss_intervention(
    request: Request,
    intervention_id: str,
    user_id: str = Query("anonymous", description="User ID"),
    runtime: AssistantRuntime = Depends(get_runtime),
) -> InterventionsResponse:
    request_id = getattr(request.state, "request_id", None)
    with trace(
        "interventions.dismiss",
        metadata={"intervention_id": intervention_id},
        user_id=user_id,
        request_id=request_id,
    ):
        dismissed = runtime.interventions.dismiss(user_id, intervention_id)
    if not dismissed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Intervention not found")
    log_metric("interventions.dismissed", 1, metadata={"user_id": user_id})
    return InterventionsResponse(
        user_id=user_id,
        new=[],
        active=runtime.interventions.active(user_id),
        request_id=request_id or "",
    )


@router.post("/patterns", response_model=PatternsResponse)
def detect_patterns(request: Request, payload: InsightsRequest) -> PatternsResponse:
    request_id = getattr(request.state, "request_id", None)
    life_data = LifeData.from_payload(payload.user_data)
    with trace("patterns.detect", metadata={"user_id": payload.user_id}, user_id=payload.user_id, request_id=request_id):
        correlations, cascades, insights = pattern_engine.analyze(life_data)
    log_metric("patterns.correlations", len(correlations), metadata={"user_id": payload.user_id})
    return PatternsResponse(
        correlations=correlations,
        cascade_chains=cascades,
        insights=insights,
        request_id=request_id or "",
    )


@router.post("/burnout", response_model=BurnoutAssessment)
def burnout_risk(request: Request, payload: InsightsRequest) -> BurnoutAssessment:
    request_id = getattr(request.state, "request_id", None)
    life_data = LifeData.from_payload(payload.user_data)
    with trace("predict.burnout", metadata={"user_id": payload.user_id}, user_id=payload.user_id, request_id=request_id):
        assessment = predictor.calculate_burnout_risk(life_data, local_now())
    log_metric("predict.burnout.score", assessment.score, metadata={"level": assessment.level})
    return assessment


@router.post("/forecast", response_model=ForecastResponse)
def forecast(request: Request, payload: InsightsRequest) -> ForecastResponse:
    request_id = getattr(request.state, "request_id", None)
    life_data = LifeData.from_payload(payload.user_data)
    now = local_now()
    with trace("predict.forecast", metadata={"user_id": payload.user_id}, user_id=payload.user_id, request_id=request_id):
        week = predictor.forecast_next_week(life_data, now)
        goals = predictor.predict_goals(life_data, now)
    return ForecastResponse(week=week, goals=goals, request_id=request_id or "")
