"""Per-request context: the request id for log lines and the active Opik trace."""
from __future__ import annotations

from contextvars import ContextVar
from typing import Any

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
current_trace_ctx_var: ContextVar[Any | None] = ContextVar("current_trace", default=None)

MAX_REQUEST_ID_LENGTH = 128


def get_request_id() -> str | None:
    """Return the current request id if available."""
    return request_id_ctx_var.get()


def get_current_trace() -> Any | None:
    """Return the trace opened by the innermost ``tracing.trace`` block, if any."""
    return current_trace_ctx_var.get()


def clean_request_id(value: str | None) -> str | None:
    """Accept a caller-supplied request id only if it is short printable text."""
    if not value:
        return None
    value = value.strip()
    if not value or len(value) > MAX_REQUEST_ID_LENGTH or not value.isprintable():
        return None
    return value
