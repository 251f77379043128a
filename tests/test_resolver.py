from __future__ import annotations

import pytest

from natpunch.client.resolver import resolve_external_address
from natpunch.errors import ErrorKind, ResolutionError


def _answer(payload):
    calls = []

    def _get(url, timeout_s):
        calls.append((url, timeout_s))
        return payload

    return _get, calls


def test_resolve_returns_ipv4() -> None:
    get, calls = _answer({"ip": " 203.0.113.5 "})
    assert resolve_external_address("http://echo.test/ip", timeout_s=2, http_get=get) == "203.0.113.5"
    assert calls == [("http://echo.test/ip", 2.0)]


@pytest.mark.parametrize(
    "payload,reason",
    [
        (["203.0.113.5"], "bad_response"),
        ({}, "ip_empty"),
        ({"ip": ""}, "ip_empty"),
        ({"ip": 42}, "ip_empty"),
        ({"ip": "not-an-ip"}, "ip_invalid"),
        ({"ip": "2001:db8::1"}, "ip_not_ipv4"),
    ],
)
def test_resolve_rejects_bad_answers(payload, reason: str) -> None:
    get, _ = _answer(payload)
    with pytest.raises(ResolutionError) as ei:
        resolve_external_address("http://echo.test/ip", http_get=get)
    assert ei.value.kind == ErrorKind.RESOLUTION
    assert ei.value.reason == reason


def test_unreachable_echo_service_is_resolution_error() -> None:
    # Nothing listens on port 9 of the loopback interface.
    with pytest.raises(ResolutionError) as ei:
        resolve_external_address("http://127.0.0.1:9/ip", timeout_s=1)
    assert ei.value.reason == "request_failed"
