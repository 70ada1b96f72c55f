"""Schemas for assistant chat turns."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HistoryItem(BaseModel):
    role: str
    content: str = ""


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    conversation_history: List[HistoryItem] = Field(default_factory=list, alias="conversationHistory")
    user_data: Dict[str, Any] = Field(default_factory=dict, alias="userData")

    @field_validator("message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message must not be blank")
        return value.strip()

    @field_validator("user_data", mode="before")
    @classmethod
    def _object_or_empty(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}


class ActionOut(BaseModel):
    type: str
    data: Dict[str, Any] = Field(default_factory=dict)


class SuggestionOut(BaseModel):
    text: str
    action: Optional[str] = None
    reason: Optional[str] = None


class UsageOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt_tokens: int = Field(alias="promptTokens")
    completion_tokens: int = Field(alias="completionTokens")
    total_tokens: int = Field(alias="totalTokens")


class TokenBudgetOut(BaseModel):
    used: int
    limit: int
    remaining: int
    requests: int


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    actions: List[ActionOut]
    suggestions: List[SuggestionOut]
    source: str
    intent: Optional[str] = None
    usage: Optional[UsageOut] = None
    token_budget: TokenBudgetOut = Field(alias="tokenBudget")
    request_id: str


class SuggestionsResponse(BaseModel):
    suggestions: List[SuggestionOut]
    request_id: str


class TaskPriorityOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_id: Optional[str] = Field(default=None, alias="taskId")
    title: str
    score: int = Field(ge=0, le=100)
    reasoning: str


class PrioritizeResponse(BaseModel):
    tasks: List[TaskPriorityOut]
    request_id: str
