from __future__ import annotations

import json
from pathlib import Path

import pytest

from natpunch.client.config import client_config_from_dict, load_client_config, normalize_server_url
from natpunch.client.resolver import DEFAULT_ECHO_URL
from natpunch.errors import ConfigError, ErrorKind


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for k in ("NATPUNCH_SERVER", "NATPUNCH_LOCAL_PORT", "NATPUNCH_LOCAL_ID", "NATPUNCH_ECHO_URL", "NATPUNCH_CONFIG"):
        monkeypatch.delenv(k, raising=False)


def _write(tmp_path: Path, obj) -> str:
    p = tmp_path / "config.json"
    p.write_text(obj if isinstance(obj, str) else json.dumps(obj), encoding="utf-8")
    return str(p)


def test_minimal_config_file(tmp_path: Path) -> None:
    path = _write(tmp_path, {"server": "http://rendezvous.test:21200/", "localPort": 40000, "localID": "alice"})
    cfg = load_client_config(path)
    assert cfg.server == "http://rendezvous.test:21200"
    assert cfg.local_port == 40000
    assert cfg.local_id == "alice"
    assert cfg.echo_url == DEFAULT_ECHO_URL
    assert cfg.bind_host == "0.0.0.0"
    assert cfg.keepalive_interval_s == 1.0
    assert cfg.reregister_each_attempt is False


def test_optional_keys() -> None:
    cfg = client_config_from_dict(
        {
            "server": "https://r.test/natpunch",
            "localPort": "40001",
            "localID": " bob ",
            "echoURL": "http://echo.test/ip",
            "bindHost": "127.0.0.1",
            "keepaliveIntervalMs": 250,
            "httpTimeoutMs": 1500,
            "reregisterEachAttempt": "yes",
        }
    )
    assert cfg.server == "https://r.test/natpunch"
    assert cfg.local_port == 40001
    assert cfg.local_id == "bob"
    assert cfg.echo_url == "http://echo.test/ip"
    assert cfg.bind_host == "127.0.0.1"
    assert cfg.keepalive_interval_s == pytest.approx(0.25)
    assert cfg.http_timeout_s == pytest.approx(1.5)
    assert cfg.reregister_each_attempt is True


def test_env_overrides_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write(tmp_path, {"server": "http://a.test", "localPort": 40000, "localID": "alice"})
    monkeypatch.setenv("NATPUNCH_SERVER", "http://b.test:8080")
    monkeypatch.setenv("NATPUNCH_LOCAL_PORT", "40002")
    monkeypatch.setenv("NATPUNCH_LOCAL_ID", "carol")

    cfg = load_client_config(path)
    assert (cfg.server, cfg.local_port, cfg.local_id) == ("http://b.test:8080", 40002, "carol")


def test_config_path_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = _write(tmp_path, {"server": "http://a.test", "localPort": 1, "localID": "x"})
    monkeypatch.setenv("NATPUNCH_CONFIG", path)
    assert load_client_config().local_id == "x"


@pytest.mark.parametrize(
    "content,reason",
    [
        ("{not json", "config_bad_json"),
        ("[1, 2]", "config_not_object"),
        ({"server": "http://a.test", "localID": "x"}, "local_port_missing"),
        ({"server": "http://a.test", "localPort": 1}, "local_id_missing"),
        ({"server": "http://a.test", "localPort": 1, "localID": "x" * 257}, "local_id_too_long"),
        ({"server": "http://a.test", "localPort": "abc", "localID": "x"}, "local_port_invalid"),
        ({"server": "http://a.test", "localPort": True, "localID": "x"}, "local_port_invalid"),
        ({"server": "http://a.test", "localPort": 70000, "localID": "x"}, "local_port_out_of_range"),
        ({"server": "ftp://a.test", "localPort": 1, "localID": "x"}, "server_scheme"),
        ({"localPort": 1, "localID": "x"}, "server_missing"),
        ({"server": "http://a.test", "localPort": 1, "localID": "x", "keepaliveIntervalMs": 0}, "invalid_interval"),
        ({"server": "http://a.test", "localPort": 1, "localID": "x", "echoURL": "file:///etc"}, "echo_url_invalid"),
    ],
)
def test_bad_config_files_fail_closed(tmp_path: Path, content, reason: str) -> None:
    with pytest.raises(ConfigError) as ei:
        load_client_config(_write(tmp_path, content))
    assert ei.value.kind == ErrorKind.CONFIG
    assert ei.value.reason == reason


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as ei:
        load_client_config(str(tmp_path / "nope.json"))
    assert ei.value.reason == "config_not_found"


@pytest.mark.parametrize(
    "url,reason",
    [
        ("http://", "server_host_missing"),
        ("http://a.test/?x=1", "server_query_not_allowed"),
        ("http://a.test/#frag", "server_query_not_allowed"),
        ("  ", "server_missing"),
    ],
)
def test_normalize_server_url_rejects(url: str, reason: str) -> None:
    with pytest.raises(ConfigError) as ei:
        normalize_server_url(url)
    assert ei.value.reason == reason
