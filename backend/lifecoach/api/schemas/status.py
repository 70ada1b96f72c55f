"""Schemas for the assistant diagnostics endpoint."""
from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class KeyStatus(_CamelModel):
    index: int
    available: bool
    request_count: int
    consecutive_errors: int
    cooldown_remaining: int


class PoolStatus(_CamelModel):
    total_keys: int
    available_keys: int
    keys: List[KeyStatus] = Field(default_factory=list)


class BudgetStatus(_CamelModel):
    day: str
    used: int
    limit: int
    remaining: int
    requests: int
    prompt_tokens: int
    completion_tokens: int


class StatusResponse(BaseModel):
    pool: PoolStatus
    budget: BudgetStatus
    model: str
    request_id: str
