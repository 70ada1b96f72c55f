from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from lifecoach.core.errors import RateLimited
from lifecoach.main import app
from lifecoach.services.budget_governor import BudgetGovernor
from lifecoach.services.credential_pool import CredentialPool
from lifecoach.services.intervention_service import InterventionStore
from lifecoach.services.llm_client import Completion, Usage
from lifecoach.services.runtime import AssistantRuntime, get_runtime

REPLY = (
    '{"message": "Added it to your list.", "actions": [{"type": "create_task", "data": {"title": "Call mom"}}],'
    ' "suggestions": ["Plan tomorrow"]}'
)


class ScriptedProvider:
    model = "scripted-model"

    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = 0

    def complete(self, secret, messages, max_tokens):
        self.calls += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _runtime(keys: int, outcome=None, budget: BudgetGovernor | None = None) -> AssistantRuntime:
    return AssistantRuntime(
        pool=CredentialPool([f"key-{index}" for index in range(keys)]),
        budget=budget or BudgetGovernor(10_000),
        provider=ScriptedProvider(outcome or Completion(text=REPLY, usage=Usage(100, 20, 120))),
        interventions=InterventionStore(),
    )


@pytest.fixture()
def client_for():
    def _client(runtime: AssistantRuntime) -> TestClient:
        app.dependency_overrides[get_runtime] = lambda: runtime
        return TestClient(app)

    yield _client
    app.dependency_overrides.clear()


def test_chat_with_provider_returns_actions_and_usage(client_for) -> None:
    runtime = _runtime(keys=2)
    client = client_for(runtime)

    response = client.post(
        "/ai/chat",
        json={"message": "add a task to call mom", "conversationHistory": [{"role": "user", "content": "hi"}]},
        headers={"X-Request-Id": "req-chat-1"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Added it to your list."
    assert body["actions"] == [{"type": "create_task", "data": {"title": "Call mom"}}]
    assert body["suggestions"] == [{"text": "Plan tomorrow", "action": None, "reason": None}]
    assert body["source"] == "ai"
    assert body["intent"] == "action_request"
    assert body["usage"] == {"promptTokens": 100, "completionTokens": 20, "totalTokens": 120}
    assert body["tokenBudget"] == {"used": 120, "limit": 10_000, "remaining": 9_880, "requests": 1}
    assert body["request_id"] == "req-chat-1"


def test_chat_without_credentials_answers_locally(client_for) -> None:
    runtime = _runtime(keys=0)
    client = client_for(runtime)

    response = client.post(
        "/ai/chat",
        json={"message": "Spent $45 on lunch", "userData": {"tasks": [{"title": "x", "dueDate": "garbage"}]}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["source"] == "local-fallback"
    assert body["actions"][0]["type"] == "add_expense"
    assert body["usage"] is None
    assert body["tokenBudget"]["used"] == 0
    assert runtime.provider.calls == 0


def test_chat_reports_rate_limited_fallback(client_for) -> None:
    runtime = _runtime(keys=3, outcome=RateLimited())
    client = client_for(runtime)

    response = client.post("/ai/chat", json={"message": "How many tasks are overdue?"})

    assert response.status_code == 200
    assert response.json()["source"] == "rate-limited-fallback"
    assert runtime.provider.calls == 3


def test_chat_reports_budget_fallback(client_for) -> None:
    budget = BudgetGovernor(100)
    budget.record(90, 10)
    runtime = _runtime(keys=2, budget=budget)
    client = client_for(runtime)

    response = client.post("/ai/chat", json={"message": "hello"})

    assert response.status_code == 200
    body = response.json()
    assert body["source"] == "budget-fallback"
    assert body["tokenBudget"]["remaining"] == 0
    assert runtime.provider.calls == 0


def test_chat_ignores_non_object_user_data(client_for) -> None:
    client = client_for(_runtime(keys=0))

    response = client.post("/ai/chat", json={"message": "hello", "userData": "oops"})

    assert response.status_code == 200


def test_chat_survives_out_of_range_numbers(client_for) -> None:
    client = client_for(_runtime(keys=0))
    body = (
        '{"message": "how am I doing with money?", "userData": {'
        '"transactions": [{"type": "expense", "amount": 1e999, "date": "2026-03-02"}],'
        ' "habits": [{"name": "Walk", "streak": "1e999"}]}}'
    )

    response = client.post("/ai/chat", content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 200
    assert response.json()["source"] == "local-fallback"


@pytest.mark.parametrize("payload", [{}, {"message": "   "}, {"message": 42}])
def test_chat_rejects_missing_or_blank_message(client_for, payload) -> None:
    client = client_for(_runtime(keys=0))

    response = client.post("/ai/chat", json=payload)

    assert response.status_code == 422


def test_suggestions_endpoint(client_for) -> None:
    client = client_for(_runtime(keys=0))

    response = client.get("/ai/suggestions")

    assert response.status_code == 200
    suggestions = response.json()["suggestions"]
    assert suggestions[0]["action"] in {"plan_day", "start_pomodoro", "create_journal"}
    assert len(suggestions) >= 1


def test_prioritize_endpoint(client_for) -> None:
    client = client_for(_runtime(keys=0))

    response = client.post(
        "/ai/prioritize",
        json={
            "userData": {
                "tasks": [
                    {"id": "a", "title": "Someday", "priority": "low"},
                    {"id": "b", "title": "Launch", "priority": "critical"},
                ]
            }
        },
    )

    assert response.status_code == 200
    tasks = response.json()["tasks"]
    assert [task["taskId"] for task in tasks] == ["b", "a"]
    assert tasks[0]["score"] == 85
