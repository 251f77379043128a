#!/usr/bin/env python3

"""Loopback smoke test for natpunch.

It verifies:
  - the registry app boots and serves /register, /get and /v1/health
  - two punch sessions find each other through the registry
  - both sessions reach ESTABLISHED and close cleanly

Usage:
  python3 scripts/loopback_smoke.py

Optional env overrides:
  NATPUNCH_SMOKE_KEEPALIVE_MS=100
  NATPUNCH_SMOKE_TIMEOUT_MS=5000
"""

from __future__ import annotations

import os
import sys
import threading
import urllib.parse

from fastapi.testclient import TestClient

from natpunch.api.app import create_app
from natpunch.client.registry_client import RegistryClient
from natpunch.net.punch import PunchConfig, PunchSession, SessionResult
from natpunch.testing.udp_peer import free_udp_port


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return int(default)


def _client_for(tc: TestClient) -> RegistryClient:
    def _http(method, url, body, timeout_s):
        parts = urllib.parse.urlsplit(url)
        path = parts.path + (f"?{parts.query}" if parts.query else "")
        r = tc.request(method, path, json=body)
        return r.status_code, (r.json() if r.content else None)

    return RegistryClient("http://registry.smoke", http=_http)


def main() -> int:
    keepalive_s = _env_int("NATPUNCH_SMOKE_KEEPALIVE_MS", 100) / 1000.0
    timeout_s = _env_int("NATPUNCH_SMOKE_TIMEOUT_MS", 5000) / 1000.0

    tc = TestClient(create_app())
    registry = _client_for(tc)

    ports = {"alice": free_udp_port(), "bob": free_udp_port()}
    for peer_id, port in ports.items():
        registry.register(peer_id, f"127.0.0.1:{port}")

    health = tc.get("/v1/health").json()
    if health.get("records") != 2:
        print(f"FAIL: health={health}")
        return 2

    cfg = PunchConfig(keepalive_interval_s=keepalive_s, recv_poll_s=0.05, max_duration_s=timeout_s)
    sessions = {}
    for me, other in (("alice", "bob"), ("bob", "alice")):
        s = PunchSession(
            local_id=me,
            local_address=f"127.0.0.1:{ports[me]}",
            bind_host="127.0.0.1",
            bind_port=ports[me],
            peer_id=other,
            cfg=cfg,
        )
        s.locate(registry.lookup)
        sessions[me] = s

    # Both ends must be bound before either punches.
    for s in sessions.values():
        s.open()

    results: dict[str, SessionResult] = {}
    threads = [
        threading.Thread(target=lambda k=k, s=s: results.__setitem__(k, s.run()), daemon=True)
        for k, s in sessions.items()
    ]
    for t in threads:
        t.start()

    ok = all(s.wait_established(timeout_s) for s in sessions.values())
    for s in sessions.values():
        s.close()
    for t in threads:
        t.join(timeout_s)

    for k in sorted(results):
        r = results[k]
        print(f"{k}: state={r.state.value} keepalives={r.keepalives_sent} received={r.datagrams_received}")

    if not ok or len(results) != 2 or not all(r.ok for r in results.values()):
        print("FAIL: sessions did not establish")
        return 1

    print("OK: loopback punch established")
    return 0


if __name__ == "__main__":
    sys.exit(main())
