from __future__ import annotations

from datetime import datetime

from lifecoach.core.errors import AuthError, ProviderRequestError, ProviderServerError, RateLimited
from lifecoach.services import context_aggregator
from lifecoach.services.budget_governor import BudgetGovernor
from lifecoach.services.chat_gateway import (
    BUDGET_MESSAGE,
    RATE_LIMITED_MESSAGE,
    SOURCE_AI,
    SOURCE_BUDGET,
    SOURCE_ERROR,
    SOURCE_LOCAL,
    SOURCE_RATE_LIMITED,
    ChatGateway,
    HistoryMessage,
    TurnState,
    trim_history,
)
from lifecoach.services.context_aggregator import ACTION_SCHEMA_BLOCK
from lifecoach.services.credential_pool import CredentialPool
from lifecoach.services.intent_classifier import Intent
from lifecoach.services.llm_client import Completion, Usage

NOW = datetime(2026, 3, 4, 9, 0)
REPLY = '{"message": "Done", "actions": [{"type": "create_task", "data": {"title": "x"}}]}'


class ScriptedProvider:
    """Plays back one outcome per call; the last outcome repeats."""

    model = "scripted"

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def complete(self, secret, messages, max_tokens):
        self.calls.append({"secret": secret, "messages": messages, "max_tokens": max_tokens})
        outcome = self.outcomes[min(len(self.calls), len(self.outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class CountingPool(CredentialPool):
    def __init__(self, secrets):
        super().__init__(secrets)
        self.acquire_calls = 0

    def acquire(self):
        self.acquire_calls += 1
        return super().acquire()


def _ok(text: str = REPLY) -> Completion:
    return Completion(text=text, usage=Usage(prompt_tokens=100, completion_tokens=20, total_tokens=120))


def _gateway(provider, keys: int = 3, budget: BudgetGovernor | None = None, **kwargs):
    pool = CountingPool([f"key-{index}" for index in range(keys)])
    budget = budget or BudgetGovernor(100_000)
    return ChatGateway(pool, budget, provider, **kwargs), pool, budget


def test_successful_turn_records_usage_once() -> None:
    provider = ScriptedProvider(_ok())
    gateway, pool, budget = _gateway(provider)

    result = gateway.run("create a task called x", now=NOW)

    assert result.source == SOURCE_AI
    assert result.intent == Intent.ACTION_REQUEST
    assert result.reply.message == "Done"
    assert result.reply.wire_actions() == [{"type": "create_task", "data": {"title": "x"}}]
    assert result.attempts == 1
    assert budget.snapshot()["used"] == 120
    assert budget.snapshot()["requests"] == 1
    assert pool.status()["keys"][0]["request_count"] == 1
    assert result.states == [
        TurnState.IDLE,
        TurnState.BUDGET_CHECK,
        TurnState.CONTEXT_BUILD,
        TurnState.CREDENTIAL_ACQUIRE,
        TurnState.PROVIDER_CALL,
        TurnState.PARSE,
        TurnState.DONE,
    ]


def test_rotates_to_next_credential_after_failure() -> None:
    provider = ScriptedProvider(RateLimited(retry_after=30), ProviderServerError(status_code=502), _ok())
    gateway, pool, budget = _gateway(provider)

    result = gateway.run("hello", now=NOW)

    assert result.source == SOURCE_AI
    assert result.attempts == 3
    assert [call["secret"] for call in provider.calls] == ["key-0", "key-1", "key-2"]
    assert result.states.count(TurnState.RETRY) == 2
    keys = pool.status()["keys"]
    assert [key["available"] for key in keys] == [False, False, True]
    assert budget.snapshot()["requests"] == 1


def test_every_credential_rate_limited_gives_rate_limited_fallback() -> None:
    provider = ScriptedProvider(RateLimited())
    gateway, pool, budget = _gateway(provider, keys=4)

    result = gateway.run("How many tasks are overdue?", now=NOW)

    assert result.source == SOURCE_RATE_LIMITED
    assert result.reply.message == RATE_LIMITED_MESSAGE
    assert result.attempts == 4
    secrets = [call["secret"] for call in provider.calls]
    assert len(secrets) == 4
    assert len(set(secrets)) == 4
    assert budget.snapshot()["used"] == 0
    assert pool.status()["available_keys"] == 0


def test_attempts_bounded_by_max_attempts() -> None:
    provider = ScriptedProvider(ProviderServerError())
    gateway, _, _ = _gateway(provider, keys=5, max_attempts=2)

    result = gateway.run("hello", now=NOW)

    assert result.attempts == 2
    assert len(provider.calls) == 2
    assert result.source == SOURCE_RATE_LIMITED


def test_budget_exhausted_never_touches_pool() -> None:
    budget = BudgetGovernor(100)
    budget.record(80, 20)
    provider = ScriptedProvider(_ok())
    gateway, pool, _ = _gateway(provider, budget=budget)

    result = gateway.run("create a task called x", now=NOW)

    assert result.source == SOURCE_BUDGET
    assert result.reply.message == BUDGET_MESSAGE
    assert pool.acquire_calls == 0
    assert provider.calls == []
    assert result.states == [TurnState.IDLE, TurnState.BUDGET_CHECK, TurnState.FALLBACK, TurnState.DONE]


def test_unconfigured_pool_uses_local_assistant() -> None:
    provider = ScriptedProvider(_ok())
    gateway, pool, budget = _gateway(provider, keys=0)

    result = gateway.run("Create task: Buy groceries", now=NOW)

    assert result.source == SOURCE_LOCAL
    assert result.reply.wire_actions()[0]["type"] == "create_task"
    assert provider.calls == []
    assert pool.acquire_calls == 0
    assert budget.snapshot()["used"] == 0


def test_all_credentials_rejected_gives_error_fallback() -> None:
    provider = ScriptedProvider(AuthError(status_code=401))
    gateway, pool, _ = _gateway(provider, keys=2)

    result = gateway.run("hello", now=NOW)

    assert result.source == SOURCE_ERROR
    assert result.attempts == 2
    assert all(key["cooldown_remaining"] == 300 for key in pool.status()["keys"])


def test_mixed_auth_and_rate_limit_counts_as_rate_limited() -> None:
    provider = ScriptedProvider(AuthError(), RateLimited())
    gateway, _, _ = _gateway(provider, keys=2)

    assert gateway.run("hello", now=NOW).source == SOURCE_RATE_LIMITED


def test_request_rejection_stops_rotation() -> None:
    provider = ScriptedProvider(ProviderRequestError(status_code=400), _ok())
    gateway, _, budget = _gateway(provider)

    result = gateway.run("hello", now=NOW)

    assert result.source == SOURCE_ERROR
    assert result.attempts == 1
    assert len(provider.calls) == 1
    assert budget.snapshot()["used"] == 0


def test_unexpected_provider_failure_is_contained() -> None:
    provider = ScriptedProvider(RuntimeError("kaboom"))
    gateway, _, _ = _gateway(provider)

    result = gateway.run("hello", now=NOW)

    assert result.source == SOURCE_ERROR
    assert result.states[-2:] == [TurnState.FALLBACK, TurnState.DONE]


def test_prompt_and_history_follow_intent_profile() -> None:
    provider = ScriptedProvider(_ok("Hi there!"))
    gateway, _, _ = _gateway(provider)
    history = [
        HistoryMessage(role="user", content="first"),
        HistoryMessage(role="assistant", content="second"),
        HistoryMessage(role="system", content="ignored"),
        HistoryMessage(role="user", content="third"),
    ]

    gateway.run("hey", history=history, now=NOW)
    greeting_call = provider.calls[-1]
    gateway.run("add a task to call mom", history=history, now=NOW)
    action_call = provider.calls[-1]

    assert greeting_call["max_tokens"] == 150
    assert [message["content"] for message in greeting_call["messages"][1:]] == ["third", "hey"]
    assert ACTION_SCHEMA_BLOCK not in greeting_call["messages"][0]["content"]
    assert action_call["max_tokens"] == 600
    assert [message["content"] for message in action_call["messages"][1:]] == [
        "first",
        "second",
        "third",
        "add a task to call mom",
    ]
    assert action_call["messages"][0]["content"].endswith(ACTION_SCHEMA_BLOCK)


def test_deep_conversation_uses_full_prompt() -> None:
    provider = ScriptedProvider(_ok("Let's talk."))
    gateway, _, _ = _gateway(provider)

    result = gateway.run(
        "I have been feeling really unmotivated lately and I am not sure why it keeps happening to me",
        now=NOW,
    )

    assert result.intent == Intent.DEEP_CONVERSATION
    assert "GUIDELINES" in provider.calls[0]["messages"][0]["content"]
    assert provider.calls[0]["max_tokens"] == 800


def test_trim_history() -> None:
    history = [HistoryMessage(role="user", content=str(index)) for index in range(6)]
    history.append(HistoryMessage(role="assistant", content="   "))

    assert [item["content"] for item in trim_history(history, 3)] == ["3", "4", "5"]
    assert trim_history(history, 0) == []


def test_status_reports_pool_and_budget() -> None:
    gateway, _, _ = _gateway(ScriptedProvider(_ok()), keys=2)

    status = gateway.status()

    assert status["pool"]["total_keys"] == 2
    assert status["budget"]["limit"] == 100_000


def test_context_build_failure_is_contained(monkeypatch) -> None:
    def broken_build(life_data, now):
        raise ValueError("bad snapshot")

    monkeypatch.setattr(context_aggregator, "build", broken_build)
    provider = ScriptedProvider(_ok())
    gateway, pool, budget = _gateway(provider)

    result = gateway.run("how is my week going?", now=NOW)

    assert result.source == SOURCE_ERROR
    assert result.attempts == 0
    assert result.states == [
        TurnState.IDLE,
        TurnState.BUDGET_CHECK,
        TurnState.CONTEXT_BUILD,
        TurnState.FALLBACK,
        TurnState.DONE,
    ]
    assert provider.calls == []
    assert pool.acquire_calls == 0
    assert budget.snapshot()["used"] == 0
