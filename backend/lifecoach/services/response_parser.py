"""Turn raw model text into a structured ``{message, actions, suggestions}`` reply.

Parsing is an explicit chain of stages, each of which either produces a
result or hands over to the next:

1. ``parse_full``: the whole text (code fences stripped) is one JSON object.
2. ``scan_braces``: the first balanced ``{...}`` block is a JSON object.
3. ``prefix_text``: a brace exists but nothing parsed, keep the text before it.
4. the trimmed text itself.

``parse`` never raises.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from lifecoach.api.schemas.life_data import Identifier

logger = logging.getLogger(__name__)

CODE_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*|\s*```$")
EMPTY_PREFIX_MESSAGE = "I'm here to help. Could you rephrase that?"


class _ActionData(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class CreateTaskData(_ActionData):
    title: str
    description: Optional[str] = None
    domain: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None


class CreateHabitData(_ActionData):
    name: str
    category: Optional[str] = None
    frequency: Optional[str] = None


class CreateGoalData(_ActionData):
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    target_date: Optional[str] = None


class MoneyData(_ActionData):
    amount: float
    category: Optional[str] = None
    description: Optional[str] = None


class LogTimeData(_ActionData):
    task: str
    duration: float
    category: Optional[str] = None
    focus_quality: Optional[str] = None


class LogStudyData(_ActionData):
    subject: str
    duration: float


class CreateJournalData(_ActionData):
    content: str
    title: Optional[str] = None
    mood: Optional[float] = None
    energy: Optional[float] = None


class CompleteTaskData(_ActionData):
    task_id: Identifier = None
    title: Optional[str] = None

    @model_validator(mode="after")
    def _needs_reference(self) -> "CompleteTaskData":
        if not self.task_id and not self.title:
            raise ValueError("complete_task needs taskId or title")
        return self


class CompleteHabitData(_ActionData):
    habit_id: Identifier = None
    name: Optional[str] = None

    @model_validator(mode="after")
    def _needs_reference(self) -> "CompleteHabitData":
        if not self.habit_id and not self.name:
            raise ValueError("complete_habit needs habitId or name")
        return self


class NavigateData(_ActionData):
    path: str


ACTION_TYPES: Dict[str, type[_ActionData]] = {
    "create_task": CreateTaskData,
    "create_habit": CreateHabitData,
    "create_goal": CreateGoalData,
    "add_expense": MoneyData,
    "add_income": MoneyData,
    "log_time": LogTimeData,
    "log_study": LogStudyData,
    "create_journal": CreateJournalData,
    "complete_task": CompleteTaskData,
    "complete_habit": CompleteHabitData,
    "navigate": NavigateData,
}


@dataclass(frozen=True)
class KnownAction:
    type: str
    payload: _ActionData

    def to_wire(self) -> Dict[str, Any]:
        return {"type": self.type, "data": self.payload.model_dump(by_alias=True, exclude_none=True)}


@dataclass(frozen=True)
class UnrecognizedAction:
    """An action whose type is unknown or whose fields did not validate."""

    type: str
    raw: Dict[str, Any]
    reason: str = "unknown type"

    def to_wire(self) -> Dict[str, Any]:
        return {"type": self.type, "data": dict(self.raw)}


Action = Union[KnownAction, UnrecognizedAction]


class Suggestion(BaseModel):
    text: str
    action: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class ParsedReply:
    message: str
    actions: List[Action] = field(default_factory=list)
    suggestions: List[Suggestion] = field(default_factory=list)

    def wire_actions(self) -> List[Dict[str, Any]]:
        return [action.to_wire() for action in self.actions]


def strip_code_fence(text: str) -> str:
    return CODE_FENCE.sub("", text.strip()).strip()


def parse_full(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (TypeError, ValueError, RecursionError):
        return None
    return value if isinstance(value, dict) else None


def find_balanced_object(text: str) -> Optional[str]:
    """Return the substring from the first ``{`` to its matching ``}``, if any."""
    start = text.find("{")
    if start < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def scan_braces(text: str) -> Optional[Dict[str, Any]]:
    candidate = find_balanced_object(text)
    if candidate is None:
        return None
    return parse_full(candidate)


def prefix_text(text: str) -> Optional[str]:
    """Text before the first brace, or None when the text has no brace."""
    index = text.find("{")
    if index < 0:
        return None
    return text[:index].strip()


def normalize_action(raw: Any) -> Optional[Action]:
    """Accept ``{type, data}`` or flattened ``{type, ...fields}``; drop anything without a string type."""
    if not isinstance(raw, dict):
        return None
    action_type = raw.get("type")
    if not isinstance(action_type, str) or not action_type.strip():
        return None
    action_type = action_type.strip()

    data = raw.get("data")
    if isinstance(data, dict):
        fields = dict(data)
    else:
        fields = {key: value for key, value in raw.items() if key not in {"type", "data"}}

    model = ACTION_TYPES.get(action_type)
    if model is None:
        return UnrecognizedAction(type=action_type, raw=fields)
    try:
        return KnownAction(type=action_type, payload=model.model_validate(fields))
    except ValidationError as exc:
        logger.debug("Action %s failed validation: %s", action_type, exc.errors(include_url=False))
        return UnrecognizedAction(type=action_type, raw=fields, reason="invalid fields")


def normalize_actions(raw: Any) -> List[Action]:
    if not isinstance(raw, list):
        return []
    actions = (normalize_action(item) for item in raw)
    return [action for action in actions if action is not None]


def normalize_suggestions(raw: Any) -> List[Suggestion]:
    if not isinstance(raw, list):
        return []
    suggestions: List[Suggestion] = []
    for item in raw:
        if isinstance(item, str) and item.strip():
            suggestions.append(Suggestion(text=item.strip()))
        elif isinstance(item, dict) and isinstance(item.get("text"), str) and item["text"].strip():
            suggestions.append(
                Suggestion(
                    text=item["text"].strip(),
                    action=item.get("action") if isinstance(item.get("action"), str) else None,
                    reason=item.get("reason") if isinstance(item.get("reason"), str) else None,
                )
            )
    return suggestions


def reply_from_object(obj: Dict[str, Any], fallback_message: str) -> ParsedReply:
    message = obj.get("message")
    if not isinstance(message, str) or not message.strip():
        message = fallback_message
    return ParsedReply(
        message=message.strip(),
        actions=normalize_actions(obj.get("actions")),
        suggestions=normalize_suggestions(obj.get("suggestions")),
    )


def parse(raw: Any) -> ParsedReply:
    if not isinstance(raw, str):
        return ParsedReply(message="")
    trimmed = raw.strip()
    text = strip_code_fence(trimmed)

    obj = parse_full(text)
    if obj is not None:
        return reply_from_object(obj, trimmed)

    obj = scan_braces(text)
    if obj is not None:
        return reply_from_object(obj, prefix_text(text) or trimmed)

    prefix = prefix_text(text)
    if prefix is not None:
        logger.debug("Discarding unparseable structured fragment from model reply")
        return ParsedReply(message=prefix or EMPTY_PREFIX_MESSAGE)

    return ParsedReply(message=trimmed)
