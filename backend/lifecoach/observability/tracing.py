"""Tracing utilities wrapping Opik.

``trace`` opens a top-level Opik trace and makes it the current trace for the
block. ``span`` nests under the current trace, so each provider attempt shows
up inside its chat turn; outside a trace it opens a trace of its own.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional

from lifecoach.core.context import current_trace_ctx_var, get_current_trace
from lifecoach.observability import client as client_module

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from opik.api_objects.trace.trace_client import Trace
else:  # pragma: no cover - typing helper
    Trace = object  # type: ignore[assignment]

logger = logging.getLogger(__name__)


def get_opik_client():
    return client_module.get_opik_client()


def _build_metadata(
    metadata: Optional[Dict[str, Any]],
    user_id: Optional[str],
    request_id: Optional[str],
) -> Dict[str, Any]:
    merged = dict(metadata or {})
    if user_id:
        merged.setdefault("user_id", str(user_id))
    if request_id:
        merged.setdefault("request_id", request_id)
    return merged


@contextmanager
def _observed(name: str, handle: Any) -> Iterator[Any]:
    """Yield ``handle``, attaching error info and closing it when the block ends."""
    try:
        yield handle
    except Exception as exc:
        if handle:
            try:
                handle.update(error_info={"message": str(exc)})
            except Exception:  # pragma: no cover
                logger.debug("Failed to attach error info to Opik trace %s", name, exc_info=True)
        raise
    finally:
        if handle:
            try:
                handle.end()
            except Exception:  # pragma: no cover
                logger.debug("Failed to close Opik trace %s cleanly", name, exc_info=True)


@contextmanager
def trace(
    name: str,
    metadata: Optional[Dict[str, Any]] = None,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Iterator[Optional["Trace"]]:
    """
    Create an Opik trace context manager.

    When Opik is disabled or unavailable the context is a no-op.
    """
    client = get_opik_client()
    opik_trace: Optional["Trace"] = None

    if client:
        trace_metadata = _build_metadata(metadata, user_id, request_id)
        try:
            opik_trace = client.trace(name=name, metadata=trace_metadata or None)
        except Exception as exc:  # pragma: no cover - defensive guard
            logger.debug("Unable to start Opik trace %s: %s", name, exc)
            opik_trace = None

    token = current_trace_ctx_var.set(opik_trace) if opik_trace else None
    try:
        with _observed(name, opik_trace) as handle:
            yield handle
    finally:
        if token is not None:
            current_trace_ctx_var.reset(token)


@contextmanager
def span(
    name: str,
    metadata: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> Iterator[Any]:
    """Open a span on the current trace, or a standalone trace when there is none."""
    parent = get_current_trace()
    if parent is None:
        with trace(name, metadata=metadata, request_id=request_id) as standalone:
            yield standalone
        return

    opik_span = None
    try:
        opik_span = parent.span(name=name, metadata=_build_metadata(metadata, None, request_id) or None)
    except Exception as exc:  # pragma: no cover - defensive guard
        logger.debug("Unable to start Opik span %s: %s", name, exc)

    with _observed(name, opik_span) as handle:
        yield handle
