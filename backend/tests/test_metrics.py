"""Tests for metrics helpers."""
from __future__ import annotations

from typing import Any, Dict

from lifecoach.observability import metrics
from lifecoach.observability import tracing


class _DummyTrace:
    def __init__(self, metadata: Dict[str, Any]):
        self.metadata = metadata
        self.ended = False

    def end(self) -> None:
        self.ended = True


class _DummyClient:
    def __init__(self):
        self.traces: list[_DummyTrace] = []

    def trace(self, name: str, metadata: Dict[str, Any] | None = None):
        trace = _DummyTrace(metadata or {})
        self.traces.append(trace)
        return trace


def test_log_metric_closes_trace(monkeypatch) -> None:
    dummy_client = _DummyClient()
    monkeypatch.setattr(tracing, "get_opik_client", lambda: dummy_client)

    metrics.log_metric("demo_metric", 42, metadata={"foo": "bar"})

    assert dummy_client.traces, "Metric call should record a trace"
    assert dummy_client.traces[0].metadata["value"] == 42
    assert dummy_client.traces[0].metadata["foo"] == "bar"
    assert dummy_client.traces[0].ended is True


def test_log_metric_is_noop_without_client(monkeypatch) -> None:
    monkeypatch.setattr(tracing, "get_opik_client", lambda: None)

    metrics.log_metric("demo_metric", 1)


def test_trace_records_error_info(monkeypatch) -> None:
    class _ErrorTrace(_DummyTrace):
        def update(self, **kwargs) -> None:
            self.metadata.update(kwargs)

    class _ErrorClient(_DummyClient):
        def trace(self, name: str, metadata: Dict[str, Any] | None = None):
            trace = _ErrorTrace(metadata or {})
            self.traces.append(trace)
            return trace

    dummy_client = _ErrorClient()
    monkeypatch.setattr(tracing, "get_opik_client", lambda: dummy_client)

    try:
        with tracing.trace("chat.provider_call", metadata={"attempt": 1}, request_id="req-1"):
            raise RuntimeError("provider down")
    except RuntimeError:
        pass

    recorded = dummy_client.traces[0]
    assert recorded.metadata["request_id"] == "req-1"
    assert recorded.metadata["error_info"] == {"message": "provider down"}
    assert recorded.ended is True


class _SpanningTrace(_DummyTrace):
    def __init__(self, metadata: Dict[str, Any]):
        super().__init__(metadata)
        self.spans: list[_DummyTrace] = []

    def span(self, name: str, metadata: Dict[str, Any] | None = None):
        child = _DummyTrace(metadata or {})
        child.name = name
        self.spans.append(child)
        return child


class _SpanningClient(_DummyClient):
    def trace(self, name: str, metadata: Dict[str, Any] | None = None):
        trace = _SpanningTrace(metadata or {})
        self.traces.append(trace)
        return trace


def test_span_nests_under_current_trace(monkeypatch) -> None:
    dummy_client = _SpanningClient()
    monkeypatch.setattr(tracing, "get_opik_client", lambda: dummy_client)

    with tracing.trace("chat.turn", request_id="req-7"):
        with tracing.span("chat.provider_call", metadata={"attempt": 1}):
            pass
        with tracing.span("chat.provider_call", metadata={"attempt": 2}):
            pass

    assert len(dummy_client.traces) == 1
    turn = dummy_client.traces[0]
    assert [child.metadata["attempt"] for child in turn.spans] == [1, 2]
    assert all(child.ended for child in turn.spans)
    assert turn.ended is True


def test_span_without_trace_opens_standalone_trace(monkeypatch) -> None:
    dummy_client = _SpanningClient()
    monkeypatch.setattr(tracing, "get_opik_client", lambda: dummy_client)

    with tracing.span("chat.provider_call", metadata={"attempt": 1}):
        pass

    assert len(dummy_client.traces) == 1
    assert dummy_client.traces[0].metadata == {"attempt": 1}
    assert dummy_client.traces[0].spans == []
