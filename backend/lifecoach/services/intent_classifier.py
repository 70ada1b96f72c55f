"""Cheap local classification of chat messages to size each turn."""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class Intent(str, Enum):
    GREETING = "greeting"
    SIMPLE_QUESTION = "simple_question"
    ACTION_REQUEST = "action_request"
    DEEP_CONVERSATION = "deep_conversation"


@dataclass(frozen=True)
class IntentProfile:
    max_tokens: int
    history_turns: int
    include_actions: bool


INTENT_PROFILES = {
    Intent.GREETING: IntentProfile(max_tokens=150, history_turns=1, include_actions=False),
    Intent.SIMPLE_QUESTION: IntentProfile(max_tokens=400, history_turns=3, include_actions=False),
    Intent.ACTION_REQUEST: IntentProfile(max_tokens=600, history_turns=5, include_actions=True),
    Intent.DEEP_CONVERSATION: IntentProfile(max_tokens=800, history_turns=5, include_actions=False),
}

GREETING_PATTERN = re.compile(
    r"^(hi|hey|hello|hiya|yo|sup|howdy|good\s+(morning|afternoon|evening|night)|thanks|thank\s+you|gm)\b",
    re.IGNORECASE,
)
ACTION_PATTERN = re.compile(
    r"\b(create|add|new|make|log|track|record|delete|remove|complete|finish|mark|schedule|remind|set|"
    r"spent|paid|bought|earned|start|update|edit)\b",
    re.IGNORECASE,
)
GREETING_MAX_WORDS = 6
SIMPLE_QUESTION_MAX_WORDS = 12


def classify(message: str) -> Intent:
    text = (message or "").strip()
    words = len(text.split())
    if GREETING_PATTERN.search(text) and words <= GREETING_MAX_WORDS:
        return Intent.GREETING
    if ACTION_PATTERN.search(text):
        return Intent.ACTION_REQUEST
    if words <= SIMPLE_QUESTION_MAX_WORDS:
        return Intent.SIMPLE_QUESTION
    return Intent.DEEP_CONVERSATION


def profile_for(intent: Intent) -> IntentProfile:
    return INTENT_PROFILES[intent]
