"""Inbound life-data records carried by chat and insight requests.

Clients send camelCase JSON straight from the app state. Every record is
parsed leniently: unknown fields are ignored, unparseable dates become None,
and records that still fail validation are dropped by ``LifeData.from_payload``.
"""
from __future__ import annotations

import logging
import math
from datetime import date, datetime, time
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

# Sums over a few thousand records must stay finite.
MAX_MAGNITUDE = 1e12


def _coerce_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _coerce_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            parsed = _coerce_date(text)
            return datetime.combine(parsed, time.min) if parsed else None
    return None


def _coerce_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(number) or abs(number) > MAX_MAGNITUDE:
        return None
    return number


LenientDate = Annotated[Optional[date], BeforeValidator(_coerce_date)]
LenientDateTime = Annotated[Optional[datetime], BeforeValidator(_coerce_datetime)]
LenientNumber = Annotated[Optional[float], BeforeValidator(_coerce_number)]
Amount = Annotated[float, BeforeValidator(lambda value: _coerce_number(value) or 0.0)]
Count = Annotated[int, BeforeValidator(lambda value: int(_coerce_number(value) or 0))]
Text = Annotated[str, BeforeValidator(lambda value: "" if value is None else str(value))]
Identifier = Annotated[Optional[str], BeforeValidator(lambda value: None if value is None else str(value))]


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Task(_Record):
    id: Identifier = None
    title: Text = ""
    description: Optional[str] = None
    domain: Text = ""
    priority: Text = "medium"
    status: Text = "pending"
    due_date: LenientDate = None
    completed_at: LenientDateTime = None
    created_at: LenientDateTime = None
    tags: List[str] = Field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return self.status in {"completed", "done"}


class HabitCompletion(_Record):
    date: LenientDate = None
    completed: bool = False
    note: Optional[str] = None


class Habit(_Record):
    id: Identifier = None
    name: Text = ""
    category: Text = ""
    frequency: Text = "daily"
    streak: Count = 0
    longest_streak: Count = 0
    active: bool = True
    completions: List[HabitCompletion] = Field(default_factory=list)

    @field_validator("completions", mode="before")
    @classmethod
    def _drop_malformed(cls, value: Any) -> List[Any]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @field_validator("completions", mode="after")
    @classmethod
    def _drop_undated(cls, value: List[HabitCompletion]) -> List[HabitCompletion]:
        return [item for item in value if item.date is not None]

    def completed_on(self, day: date) -> bool:
        return any(item.completed and item.date == day for item in self.completions)

    def last_completed(self) -> Optional[date]:
        dates = [item.date for item in self.completions if item.completed and item.date]
        return max(dates) if dates else None


class Goal(_Record):
    id: Identifier = None
    title: Text = ""
    description: Optional[str] = None
    category: Text = ""
    priority: Text = "medium"
    target_date: LenientDate = None
    progress: Amount = 0.0
    status: Text = "active"
    completed_at: LenientDateTime = None


class Transaction(_Record):
    id: Identifier = None
    category: Text = "other"
    amount: Amount = 0.0
    description: Optional[str] = None
    date: LenientDate = None
    type: Text = "expense"


class TimeEntry(_Record):
    id: Identifier = None
    task: Optional[str] = None
    category: Text = ""
    duration: Amount = 0.0
    date: LenientDateTime = None
    focus_quality: Text = "moderate"


class JournalEntry(_Record):
    id: Identifier = None
    date: LenientDate = None
    title: Optional[str] = None
    content: Text = ""
    mood: LenientNumber = None
    energy: LenientNumber = None
    focus: LenientNumber = None
    tags: List[str] = Field(default_factory=list)
    ai_themes: List[str] = Field(default_factory=list)


class StudySession(_Record):
    id: Identifier = None
    subject: Text = ""
    duration: Amount = 0.0
    created_at: LenientDateTime = None


class UserSettings(_Record):
    user_name: Optional[str] = None
    weekly_budget: Optional[float] = None


_LIST_FIELDS: Dict[str, type[_Record]] = {
    "tasks": Task,
    "habits": Habit,
    "goals": Goal,
    "transactions": Transaction,
    "time_entries": TimeEntry,
    "journal_entries": JournalEntry,
    "study_sessions": StudySession,
}


class LifeData(_Record):
    tasks: List[Task] = Field(default_factory=list)
    habits: List[Habit] = Field(default_factory=list)
    goals: List[Goal] = Field(default_factory=list)
    transactions: List[Transaction] = Field(default_factory=list)
    time_entries: List[TimeEntry] = Field(default_factory=list)
    journal_entries: List[JournalEntry] = Field(default_factory=list)
    study_sessions: List[StudySession] = Field(default_factory=list)
    settings: UserSettings = Field(default_factory=UserSettings)

    @classmethod
    def from_payload(cls, payload: Any) -> "LifeData":
        """Build LifeData from an untrusted payload, dropping records that do not parse."""
        if isinstance(payload, LifeData):
            return payload
        if not isinstance(payload, dict):
            return cls()

        values: Dict[str, Any] = {}
        for field_name, model in _LIST_FIELDS.items():
            raw_items = payload.get(to_camel(field_name), payload.get(field_name))
            if not isinstance(raw_items, list):
                continue
            parsed = []
            for item in raw_items:
                try:
                    parsed.append(model.model_validate(item))
                except ValidationError:
                    logger.debug("Dropping malformed %s record", field_name)
            values[field_name] = parsed

        raw_settings = payload.get("settings")
        if isinstance(raw_settings, dict):
            try:
                values["settings"] = UserSettings.model_validate(raw_settings)
            except ValidationError:
                logger.debug("Ignoring malformed settings payload")
        return cls(**values)
