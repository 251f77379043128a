from __future__ import annotations

import json
import logging

import pytest
from fastapi.testclient import TestClient

from natpunch.api.app import create_app
from natpunch.registry.store import RegistryStore


def test_create_app_attaches_fresh_store_by_default() -> None:
    app = create_app()
    assert isinstance(app.state.registry, RegistryStore)
    assert len(app.state.registry) == 0

    # App should be startable (lifespan runs) for route/middleware tests.
    with TestClient(app) as client:
        assert client.get("/all").json() == []


def test_two_apps_do_not_share_state() -> None:
    a = TestClient(create_app())
    b = TestClient(create_app())

    a.post("/register", json={"id": "alice", "address": "1.2.3.4:5"})
    assert b.get("/get?id=alice").status_code == 404


def test_docs_disabled_in_prod_and_enabled_in_dev(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NATPUNCH_MODE", "prod")
    assert TestClient(create_app()).get("/openapi.json").status_code == 404

    monkeypatch.setenv("NATPUNCH_MODE", "dev")
    assert TestClient(create_app()).get("/openapi.json").status_code == 200


def test_request_log_emits_jsonl_and_request_id(caplog: pytest.LogCaptureFixture) -> None:
    c = TestClient(create_app())

    with caplog.at_level(logging.INFO, logger="natpunch.http"):
        r = c.get("/get?id=nobody", headers={"x-request-id": "req-123"})

    assert r.status_code == 404
    assert r.headers.get("x-request-id") == "req-123"

    events = [json.loads(rec.getMessage()) for rec in caplog.records if rec.name == "natpunch.http"]
    assert events
    ev = events[-1]
    assert ev["event"] == "http_request"
    assert ev["path"] == "/get"
    assert ev["status"] == 404
    assert ev["request_id"] == "req-123"


def test_api_main_passes_port_to_uvicorn(monkeypatch: pytest.MonkeyPatch) -> None:
    from natpunch.api import __main__ as api_main

    calls = {}

    def _fake_run(app, **kwargs):
        calls["app"] = app
        calls.update(kwargs)

    monkeypatch.setattr(api_main.uvicorn, "run", _fake_run)
    monkeypatch.setenv("NATPUNCH_API_PORT", "30000")

    api_main.main(["-p", "31000", "--host", "127.0.0.1"])

    assert calls["port"] == 31000
    assert calls["host"] == "127.0.0.1"
    assert isinstance(calls["app"].state.registry, RegistryStore)
