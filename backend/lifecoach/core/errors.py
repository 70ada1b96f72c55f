"""Error taxonomy for the assistant orchestration layer.

Provider errors are retryable at the gateway level (each one rotates to the
next credential). ``PoolExhausted`` and ``BudgetExceeded`` end a turn and are
turned into fallback replies, never into HTTP errors.
"""
from __future__ import annotations


class AssistantError(Exception):
    """Base class for orchestration failures."""


class ProviderError(AssistantError):
    """A single provider call failed; the credential used is implicated."""

    retryable = True


class RateLimited(ProviderError):
    def __init__(self, message: str = "Provider rate limit hit", retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class ProviderServerError(ProviderError):
    def __init__(self, message: str = "Provider server error", status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(ProviderError):
    """Credential rejected (401/403); the same credential is not retried soon."""

    def __init__(self, message: str = "Provider rejected credential", status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NetworkError(ProviderError):
    """Timeout or connection failure before a response arrived."""


class ProviderRequestError(ProviderError):
    """Provider refused the request itself (4xx other than auth/rate limit)."""

    retryable = False

    def __init__(self, message: str = "Provider rejected request", status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PoolExhausted(AssistantError):
    """Every credential is cooling down or all attempts were spent."""

    def __init__(self, message: str = "Credential pool exhausted", attempts: int = 0, auth_only: bool = False):
        super().__init__(message)
        self.attempts = attempts
        self.auth_only = auth_only


class BudgetExceeded(AssistantError):
    """The daily token ceiling has been reached."""
