"""One end-to-end assistant turn.

The gateway walks a fixed sequence of states::

    IDLE -> BUDGET_CHECK -> FALLBACK
                         -> CONTEXT_BUILD -> CREDENTIAL_ACQUIRE -> PROVIDER_CALL
                                             ^                     |-> RETRY
                                             +---------------------+
                                                                   |-> PARSE -> DONE

The budget is consulted before any credential is touched, provider attempts
are sequential and bounded by the pool size, and every outcome is a
``TurnResult``; nothing raised while building context or calling the
provider escapes ``run``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from time import perf_counter
from typing import Any, Callable, Dict, List, Optional, Sequence

from lifecoach.api.schemas.life_data import LifeData
from lifecoach.core.config import MAX_PROVIDER_KEYS
from lifecoach.core.errors import (
    AuthError,
    BudgetExceeded,
    NetworkError,
    PoolExhausted,
    ProviderRequestError,
    ProviderServerError,
    RateLimited,
)
from lifecoach.observability.metrics import log_metric
from lifecoach.observability.tracing import span
from lifecoach.services import context_aggregator, local_assistant, response_parser
from lifecoach.services.budget_governor import BudgetGovernor
from lifecoach.services.clock import local_now
from lifecoach.services.credential_pool import CredentialPool
from lifecoach.services.intent_classifier import Intent, classify, profile_for
from lifecoach.services.llm_client import Completion, ProviderClient, Usage
from lifecoach.services.response_parser import ParsedReply

logger = logging.getLogger(__name__)

SOURCE_AI = "ai"
SOURCE_BUDGET = "budget-fallback"
SOURCE_LOCAL = "local-fallback"
SOURCE_RATE_LIMITED = "rate-limited-fallback"
SOURCE_ERROR = "error-fallback"

BUDGET_MESSAGE = (
    "I've reached my daily thinking limit, so I'll keep this short. "
    "Your data is safe and I'll be fully back tomorrow. In the meantime you can still "
    "add tasks, log habits and track expenses as usual."
)
RATE_LIMITED_MESSAGE = (
    "I'm getting a lot of requests right now and couldn't reach the assistant. "
    "Please try again in a minute."
)
ERROR_MESSAGE = "Something went wrong while reaching the assistant. Please try again shortly."


class TurnState(str, Enum):
    IDLE = "idle"
    BUDGET_CHECK = "budget_check"
    FALLBACK = "fallback"
    CONTEXT_BUILD = "context_build"
    CREDENTIAL_ACQUIRE = "credential_acquire"
    PROVIDER_CALL = "provider_call"
    RETRY = "retry"
    PARSE = "parse"
    DONE = "done"


@dataclass(frozen=True)
class HistoryMessage:
    role: str
    content: str


@dataclass
class TurnResult:
    reply: ParsedReply
    source: str
    intent: Optional[Intent] = None
    usage: Optional[Usage] = None
    attempts: int = 0
    states: List[TurnState] = field(default_factory=list)


def trim_history(history: Sequence[HistoryMessage], turns: int) -> List[Dict[str, str]]:
    """Keep the last ``turns`` user/assistant messages with non-empty content."""
    usable = [item for item in history if item.role in {"user", "assistant"} and item.content.strip()]
    if turns <= 0:
        return []
    return [{"role": item.role, "content": item.content} for item in usable[-turns:]]


class ChatGateway:
    def __init__(
        self,
        pool: CredentialPool,
        budget: BudgetGovernor,
        provider: ProviderClient,
        *,
        max_attempts: int = MAX_PROVIDER_KEYS,
        clock: Callable[[], datetime] = local_now,
    ):
        self.pool = pool
        self.budget = budget
        self.provider = provider
        self.max_attempts = max_attempts
        self._clock = clock

    def status(self) -> Dict[str, Any]:
        return {"pool": self.pool.status(), "budget": self.budget.snapshot()}

    def run(
        self,
        message: str,
        *,
        history: Sequence[HistoryMessage] = (),
        life_data: LifeData | None = None,
        now: datetime | None = None,
        request_id: str | None = None,
    ) -> TurnResult:
        states = [TurnState.IDLE]
        try:
            self._check_budget(states)
        except BudgetExceeded:
            states += [TurnState.FALLBACK, TurnState.DONE]
            log_metric("chat.fallback", 1, metadata={"source": SOURCE_BUDGET})
            return TurnResult(reply=ParsedReply(message=BUDGET_MESSAGE), source=SOURCE_BUDGET, states=states)

        states.append(TurnState.CONTEXT_BUILD)
        now = now or self._clock()
        life_data = life_data or LifeData()
        intent: Intent | None = None
        try:
            intent = classify(message)
            profile = profile_for(intent)
            snapshot = context_aggregator.build(life_data, now)
            if intent == Intent.DEEP_CONVERSATION:
                system_prompt = context_aggregator.full_prompt(snapshot)
            else:
                system_prompt = context_aggregator.compact_prompt(snapshot, include_actions=profile.include_actions)
            messages = [{"role": "system", "content": system_prompt}]
            messages += trim_history(history, profile.history_turns)
            messages.append({"role": "user", "content": message})

            if not self.pool.configured:
                reply = local_assistant.respond(message, snapshot, life_data, intent)
                states += [TurnState.FALLBACK, TurnState.DONE]
                log_metric("chat.fallback", 1, metadata={"source": SOURCE_LOCAL})
                return TurnResult(reply=reply, source=SOURCE_LOCAL, intent=intent, states=states)
        except Exception:
            logger.exception("Failed to build assistant context")
            states += [TurnState.FALLBACK, TurnState.DONE]
            return self._fallback(SOURCE_ERROR, intent, 0, states)

        try:
            completion, attempts = self._call_with_rotation(messages, intent, profile.max_tokens, states, request_id)
        except PoolExhausted as exc:
            states += [TurnState.FALLBACK, TurnState.DONE]
            if exc.auth_only:
                logger.error("Every attempted credential was rejected (%d)", exc.attempts)
                return self._fallback(SOURCE_ERROR, intent, exc.attempts, states)
            logger.warning("Credential pool exhausted after %d attempt(s)", exc.attempts)
            return self._fallback(SOURCE_RATE_LIMITED, intent, exc.attempts, states)
        except ProviderRequestError as exc:
            logger.error("Provider rejected request: %s", exc)
            states += [TurnState.FALLBACK, TurnState.DONE]
            return self._fallback(SOURCE_ERROR, intent, states.count(TurnState.PROVIDER_CALL), states)
        except Exception:
            logger.exception("Unexpected failure during provider call")
            states += [TurnState.FALLBACK, TurnState.DONE]
            return self._fallback(SOURCE_ERROR, intent, states.count(TurnState.PROVIDER_CALL), states)

        states.append(TurnState.PARSE)
        reply = response_parser.parse(completion.text)
        usage = completion.usage
        self.budget.record(usage.prompt_tokens, usage.completion_tokens, usage.total_tokens)
        states.append(TurnState.DONE)
        log_metric("chat.attempts", attempts, metadata={"intent": intent.value})
        return TurnResult(reply=reply, source=SOURCE_AI, intent=intent, usage=usage, attempts=attempts, states=states)

    def _check_budget(self, states: List[TurnState]) -> None:
        states.append(TurnState.BUDGET_CHECK)
        if self.budget.is_over_budget():
            raise BudgetExceeded("Daily token budget reached")

    def _call_with_rotation(
        self,
        messages: List[Dict[str, str]],
        intent: Intent,
        max_tokens: int,
        states: List[TurnState],
        request_id: str | None,
    ) -> tuple[Completion, int]:
        """Try credentials one at a time until a call succeeds.

        Raises ``PoolExhausted`` once the attempt ceiling is reached or the pool
        has nothing to hand out.
        """
        attempts_allowed = min(self.max_attempts, len(self.pool))
        attempts = 0
        auth_failures = 0
        while attempts < attempts_allowed:
            states.append(TurnState.CREDENTIAL_ACQUIRE)
            credential = self.pool.acquire()
            if credential is None:
                break

            attempts += 1
            states.append(TurnState.PROVIDER_CALL)
            start = perf_counter()
            try:
                with span(
                    "chat.provider_call",
                    metadata={
                        "intent": intent.value,
                        "credential": credential.label,
                        "attempt": attempts,
                        "max_tokens": max_tokens,
                    },
                    request_id=request_id,
                ):
                    completion = self.provider.complete(credential.secret, messages, max_tokens)
            except RateLimited as exc:
                self.pool.report_rate_limited(credential, exc.retry_after)
            except ProviderServerError:
                self.pool.report_server_error(credential)
            except NetworkError:
                self.pool.report_network_error(credential)
            except AuthError:
                auth_failures += 1
                self.pool.report_auth_error(credential)
            else:
                self.pool.report_success(credential)
                log_metric("chat.provider_latency_ms", (perf_counter() - start) * 1000, metadata={"intent": intent.value})
                return completion, attempts
            states.append(TurnState.RETRY)

        raise PoolExhausted(
            f"gave up after {attempts} attempt(s)",
            attempts=attempts,
            auth_only=attempts > 0 and auth_failures == attempts,
        )

    @staticmethod
    def _fallback(source: str, intent: Intent | None, attempts: int, states: List[TurnState]) -> TurnResult:
        log_metric("chat.fallback", 1, metadata={"source": source, "attempts": attempts})
        message = RATE_LIMITED_MESSAGE if source == SOURCE_RATE_LIMITED else ERROR_MESSAGE
        return TurnResult(
            reply=ParsedReply(message=message),
            source=source,
            intent=intent,
            attempts=attempts,
            states=states,
        )
