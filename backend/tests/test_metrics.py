"""Tests for metrics helpers."""
from __future__ import annotations

from typing import Any, Dict

from cropcare.observability import client as client_module
from cropcare.observability import metrics


class _DummyTrace:
    def __init__(self, name: str, metadata: Dict[str, Any]):
        self.name = name
        self.metadata = metadata
        self.ended = False

    def end(self) -> None:
        self.ended = True


class _DummyClient:
    def __init__(self):
        self.traces: list[_DummyTrace] = []

    def trace(self, name: str, metadata: Dict[str, Any] | None = None):
        trace = _DummyTrace(name, metadata or {})
        self.traces.append(trace)
        return trace


def test_log_metric_closes_trace(monkeypatch) -> None:
    dummy_client = _DummyClient()
    monkeypatch.setattr(client_module, "get_opik_client", lambda: dummy_client)

    metrics.log_metric("cleanup.deleted", 3, metadata={"scope": "all"})

    assert dummy_client.traces, "Metric call should record a trace"
    assert dummy_client.traces[0].name == "metric:cleanup.deleted"
    assert dummy_client.traces[0].metadata["value"] == 3
    assert dummy_client.traces[0].metadata["scope"] == "all"
    assert dummy_client.traces[0].ended is True


def test_timed_records_latency(monkeypatch) -> None:
    dummy_client = _DummyClient()
    monkeypatch.setattr(client_module, "get_opik_client", lambda: dummy_client)

    with metrics.timed("plan.upsert", metadata={"crop": "rice"}):
        pass

    assert dummy_client.traces[0].name == "metric:plan.upsert.latency_ms"
    assert dummy_client.traces[0].metadata["value"] >= 0
    assert dummy_client.traces[0].metadata["crop"] == "rice"


def test_log_metric_without_client_is_silent(monkeypatch) -> None:
    monkeypatch.setattr(client_module, "get_opik_client", lambda: None)

    metrics.log_metric("plan.oracle.fallback", 1)
