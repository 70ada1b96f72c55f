"""Schemas for patterns, correlations, risk signals and interventions."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

PatternKind = Literal["warning", "positive", "insight", "opportunity"]
Urgency = Literal["low", "medium", "high"]
InterventionType = Literal["burnout", "budget", "streak", "focus"]
Severity = Literal["info", "warning", "critical"]


class Pattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: PatternKind
    domain: str
    message: str
    urgency: Urgency


class Correlation(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_signal: str = Field(alias="from")
    to_signal: str = Field(alias="to")
    coefficient: float = Field(ge=-1.0, le=1.0)
    direction: Literal["positive", "negative"]
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: str
    impact: str
    recommendation: Optional[str] = None


class CascadeChain(BaseModel):
    model_config = ConfigDict(frozen=True)

    chain: List[str]
    frequency: int
    total_impact: str


class PatternInsight(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["pattern", "warning", "opportunity"]
    title: str
    description: str
    actionable: bool
    suggested_action: Optional[str] = None


class InterventionAction(BaseModel):
    text: str
    action: str
    priority: Literal["critical", "high", "medium", "low"]


class Intervention(BaseModel):
    id: str
    type: InterventionType
    severity: Severity
    title: str
    message: str
    explanation: str
    actions: List[InterventionAction]
    created_at: datetime
    dismissed: bool = False
    evidence: Dict[str, Any] = Field(default_factory=dict)


class DetectionResult(BaseModel):
    correlations: List[Correlation] = Field(default_factory=list)
    cascade_chains: List[CascadeChain] = Field(default_factory=list)
    insights: List[PatternInsight] = Field(default_factory=list)
    interventions: List[Intervention] = Field(default_factory=list)


class BurnoutSignal(BaseModel):
    signal: str
    value: float
    concern: bool


class BurnoutAssessment(BaseModel):
    score: float
    level: Literal["Low", "Moderate", "High", "Critical"]
    signals: List[BurnoutSignal]
    recommendations: List[str]


class GoalPrediction(BaseModel):
    goal_id: Optional[str]
    title: str
    probability: float
    verdict: Literal["On Track", "At Risk", "Failing"]
    required_daily_progress: float
    current_daily_progress: float
    recommendation: Optional[str] = None


class WeekForecast(BaseModel):
    task_completion: int
    habit_consistency: int
    life_score: int
    confidence: float
    explanation: str


class InsightsRequest(BaseModel):
    user_id: str = "anonymous"
    user_data: Dict[str, Any] = Field(default_factory=dict, alias="userData")

    model_config = ConfigDict(populate_by_name=True)


class InterventionsResponse(BaseModel):
    user_id: str
    new: List[Intervention]
    active: List[Intervention]
    request_id: str


class PatternsResponse(BaseModel):
    correlations: List[Correlation]
    cascade_chains: List[CascadeChain]
    insights: List[PatternInsight]
    request_id: str


class ForecastResponse(BaseModel):
    week: WeekForecast
    goals: List[GoalPrediction]
    request_id: str
