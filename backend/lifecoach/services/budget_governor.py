"""Daily token budget shared by every chat turn in the process."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from threading import Lock
from typing import Callable, Dict
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)


@dataclass
class UsageCounter:
    day: date
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    requests: int = 0


def _today_factory(timezone: str) -> Callable[[], date]:
    tz = ZoneInfo(timezone)
    return lambda: datetime.now(tz).date()


class BudgetGovernor:
    """Gate provider calls against a fixed daily token ceiling.

    The counter resets lazily: every check or record compares the stored day
    with today's wall-clock date and zeroes the counter when they differ.
    """

    def __init__(self, daily_limit: int, *, today: Callable[[], date] | None = None, timezone: str = "UTC"):
        self.daily_limit = daily_limit
        self._today = today or _today_factory(timezone)
        self._lock = Lock()
        self._counter = UsageCounter(day=self._today())
        self._warned_for: date | None = None

    def is_over_budget(self) -> bool:
        with self._lock:
            self._roll_over()
            over = self._counter.total_tokens >= self.daily_limit
            if over and self._warned_for != self._counter.day:
                self._warned_for = self._counter.day
                logger.warning(
                    "Daily token budget exhausted (%d/%d)", self._counter.total_tokens, self.daily_limit
                )
            return over

    def record(self, prompt_tokens: int, completion_tokens: int, total_tokens: int | None = None) -> None:
        prompt = max(0, int(prompt_tokens or 0))
        completion = max(0, int(completion_tokens or 0))
        if total_tokens is not None and total_tokens != prompt + completion:
            logger.debug("Provider total %s differs from prompt+completion; using parts", total_tokens)
        with self._lock:
            self._roll_over()
            self._counter.prompt_tokens += prompt
            self._counter.completion_tokens += completion
            self._counter.total_tokens = self._counter.prompt_tokens + self._counter.completion_tokens
            self._counter.requests += 1

    def snapshot(self) -> Dict[str, int | str]:
        with self._lock:
            self._roll_over()
            used = self._counter.total_tokens
            return {
                "day": self._counter.day.isoformat(),
                "used": used,
                "limit": self.daily_limit,
                "remaining": max(0, self.daily_limit - used),
                "requests": self._counter.requests,
                "prompt_tokens": self._counter.prompt_tokens,
                "completion_tokens": self._counter.completion_tokens,
            }

    def _roll_over(self) -> None:
        today = self._today()
        if today != self._counter.day:
            logger.info("New day %s; resetting token usage counter", today.isoformat())
            self._counter = UsageCounter(day=today)
