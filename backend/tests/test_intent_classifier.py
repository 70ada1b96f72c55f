from __future__ import annotations

import pytest

from lifecoach.services.intent_classifier import Intent, classify, profile_for


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("hey", Intent.GREETING),
        ("Good morning! How are you?", Intent.GREETING),
        ("hello, please create a task for groceries tomorrow", Intent.ACTION_REQUEST),
        ("Add a task: call the dentist", Intent.ACTION_REQUEST),
        ("I spent $12 on lunch", Intent.ACTION_REQUEST),
        ("How many tasks are overdue?", Intent.SIMPLE_QUESTION),
        (
            "I have been feeling really unmotivated lately and I am not sure why it keeps happening to me",
            Intent.DEEP_CONVERSATION,
        ),
        ("   ", Intent.SIMPLE_QUESTION),
    ],
)
def test_classify(message: str, expected: Intent) -> None:
    assert classify(message) == expected


def test_profiles_scale_with_intent() -> None:
    budgets = [profile_for(intent).max_tokens for intent in Intent]

    assert budgets == [150, 400, 600, 800]
    assert profile_for(Intent.ACTION_REQUEST).include_actions is True
    assert not any(profile_for(intent).include_actions for intent in Intent if intent != Intent.ACTION_REQUEST)
    assert [profile_for(intent).history_turns for intent in Intent] == [1, 3, 5, 5]
