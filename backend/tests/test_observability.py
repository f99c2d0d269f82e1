"""Tests ensuring observability wiring is safe by default."""
from __future__ import annotations

import importlib

import pytest

from cropcare.core.config import settings
from cropcare.core.errors import StorageError
from cropcare.observability import client as client_module
from cropcare.observability import tracing


class _DummyTrace:
    def __init__(self, name, metadata=None):
        self.name = name
        self.metadata = metadata or {}
        self.error_info = None
        self.ended = False

    def update(self, error_info=None, **kwargs):
        self.error_info = error_info

    def end(self):
        self.ended = True


class _DummyOpik:
    def __init__(self):
        self.traces = []

    def trace(self, name, metadata=None):
        trace = _DummyTrace(name, metadata)
        self.traces.append(trace)
        return trace


def test_app_import_succeeds_when_opik_is_disabled(monkeypatch) -> None:
    monkeypatch.setenv("OPIK_ENABLED", "false")
    monkeypatch.delenv("OPIK_API_KEY", raising=False)

    import cropcare.main as main_module

    reloaded_app = importlib.reload(main_module)

    assert hasattr(reloaded_app, "app")


def test_client_resolves_to_none_when_disabled(monkeypatch) -> None:
    monkeypatch.setattr(settings, "opik_enabled", False)
    client_module.reset_opik_client()
    try:
        assert client_module.init_opik() is None
        assert client_module.get_opik_client() is None
    finally:
        client_module.reset_opik_client()


def test_client_without_api_key_stays_local(monkeypatch) -> None:
    monkeypatch.setattr(settings, "opik_enabled", True)
    monkeypatch.setattr(settings, "opik_api_key", None)
    client_module.reset_opik_client()
    try:
        assert client_module.get_opik_client() is None
    finally:
        client_module.reset_opik_client()


def test_trace_is_noop_without_client(monkeypatch) -> None:
    monkeypatch.setattr(client_module, "get_opik_client", lambda: None)

    with tracing.trace("plan.test", metadata={"a": 1}) as span:
        assert span is None


def test_trace_records_plan_id_and_errors(monkeypatch) -> None:
    dummy = _DummyOpik()
    monkeypatch.setattr(client_module, "get_opik_client", lambda: dummy)

    with pytest.raises(StorageError):
        with tracing.trace("plan.upsert", metadata={"crop": "rice"}, plan_id="rice-abc"):
            raise StorageError("db down")

    recorded = dummy.traces[0]
    assert recorded.name == "plan.upsert"
    assert recorded.metadata["plan_id"] == "rice-abc"
    assert recorded.metadata["crop"] == "rice"
    assert recorded.error_info == {"message": "db down", "type": "StorageError"}
    assert recorded.ended is True
