# src/natpunch/client/config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse, urlunparse

from natpunch.client.resolver import DEFAULT_ECHO_URL
from natpunch.errors import ConfigError

Json = Dict[str, Any]

DEFAULT_CONFIG_PATH = "config.json"

# localID rides in every punch datagram, which is capped at 1024 bytes.
MAX_LOCAL_ID_CHARS = 256


@dataclass(frozen=True)
class ClientConfig:
    server: str  # registry base URL, e.g. http://rendezvous.example:21200
    local_port: int
    local_id: str
    echo_url: str = DEFAULT_ECHO_URL
    bind_host: str = "0.0.0.0"
    keepalive_interval_s: float = 1.0
    reregister_each_attempt: bool = False
    http_timeout_s: float = 10.0


def _is_truthy(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def normalize_server_url(url: str) -> str:
    """
    Normalize and validate the registry base URL.

    Rules:
      - http:// or https:// with a hostname
      - Rejects query/fragment
      - Keeps port and path prefix (reverse proxies), strips trailing slashes
    """
    if not isinstance(url, str) or not url.strip():
        raise ConfigError("server_missing", {"server": url})

    parsed = urlparse(url.strip())
    scheme = (parsed.scheme or "").lower()
    if scheme not in {"http", "https"}:
        raise ConfigError("server_scheme", {"server": url})
    if not parsed.hostname:
        raise ConfigError("server_host_missing", {"server": url})
    if parsed.query or parsed.fragment:
        raise ConfigError("server_query_not_allowed", {"server": url})

    return urlunparse((scheme, parsed.netloc, parsed.path, "", "", "")).rstrip("/")


def _as_port(v: Any) -> int:
    if isinstance(v, bool):
        raise ConfigError("local_port_invalid", {"localPort": v})
    try:
        port = int(v)
    except (TypeError, ValueError) as e:
        raise ConfigError("local_port_invalid", {"localPort": v}) from e
    if not (0 < port < 65536):
        raise ConfigError("local_port_out_of_range", {"localPort": port})
    return port


def _as_positive_ms(name: str, v: Any) -> float:
    try:
        ms = int(v)
    except (TypeError, ValueError) as e:
        raise ConfigError("invalid_interval", {name: v}) from e
    if ms <= 0:
        raise ConfigError("invalid_interval", {name: v})
    return ms / 1000.0


def _apply_env_overrides(data: Json) -> Json:
    out = dict(data)
    for env_name, key in (
        ("NATPUNCH_SERVER", "server"),
        ("NATPUNCH_LOCAL_PORT", "localPort"),
        ("NATPUNCH_LOCAL_ID", "localID"),
        ("NATPUNCH_ECHO_URL", "echoURL"),
    ):
        v = os.environ.get(env_name)
        if v is not None and v.strip():
            out[key] = v.strip()
    return out


def client_config_from_dict(data: Json) -> ClientConfig:
    """Build a ClientConfig from the JSON document shape (camelCase keys)."""
    if not isinstance(data, dict):
        raise ConfigError("config_not_object")

    if "localPort" not in data:
        raise ConfigError("local_port_missing")

    local_id = data.get("localID")
    if not isinstance(local_id, str) or not local_id.strip():
        raise ConfigError("local_id_missing", {"localID": local_id})
    if len(local_id.strip()) > MAX_LOCAL_ID_CHARS:
        raise ConfigError("local_id_too_long", {"length": len(local_id.strip()), "max": MAX_LOCAL_ID_CHARS})

    echo_url = data.get("echoURL") or DEFAULT_ECHO_URL
    if not isinstance(echo_url, str) or urlparse(echo_url).scheme not in {"http", "https"}:
        raise ConfigError("echo_url_invalid", {"echoURL": echo_url})

    bind_host = data.get("bindHost") or "0.0.0.0"
    if not isinstance(bind_host, str):
        raise ConfigError("bind_host_invalid", {"bindHost": bind_host})

    keepalive_s = 1.0
    if data.get("keepaliveIntervalMs") is not None:
        keepalive_s = _as_positive_ms("keepaliveIntervalMs", data.get("keepaliveIntervalMs"))

    timeout_s = 10.0
    if data.get("httpTimeoutMs") is not None:
        timeout_s = _as_positive_ms("httpTimeoutMs", data.get("httpTimeoutMs"))

    return ClientConfig(
        server=normalize_server_url(data.get("server")),
        local_port=_as_port(data.get("localPort")),
        local_id=local_id.strip(),
        echo_url=echo_url.strip(),
        bind_host=bind_host.strip() or "0.0.0.0",
        keepalive_interval_s=keepalive_s,
        reregister_each_attempt=_is_truthy(data.get("reregisterEachAttempt")),
        http_timeout_s=timeout_s,
    )


def load_client_config(path: Optional[str] = None) -> ClientConfig:
    """
    Read the agent config file and apply NATPUNCH_* env overrides.

    Expected shape:
      {"server": "http://host:21200", "localPort": 40000, "localID": "alice"}

    Fail-closed: every problem raises ConfigError.
    """
    p = Path(path or os.environ.get("NATPUNCH_CONFIG") or DEFAULT_CONFIG_PATH).expanduser()
    if not p.exists() or not p.is_file():
        raise ConfigError("config_not_found", {"path": str(p)})

    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError("config_unreadable", {"path": str(p), "error": str(e)}) from e
    except ValueError as e:
        raise ConfigError("config_bad_json", {"path": str(p), "error": str(e)}) from e

    if not isinstance(data, dict):
        raise ConfigError("config_not_object", {"path": str(p)})

    return client_config_from_dict(_apply_env_overrides(data))
