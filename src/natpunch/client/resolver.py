# src/natpunch/client/resolver.py
"""Public IP discovery through a third-party address-echo service.

The service is unreliable by assumption: no retries happen here, callers
decide whether a ResolutionError is fatal.
"""

from __future__ import annotations

import ipaddress
import json
import urllib.error
import urllib.request
from typing import Any, Callable, Optional

from natpunch.errors import ResolutionError

# Any endpoint answering {"ip": "..."} works; this one answers over IPv4 only.
DEFAULT_ECHO_URL = "https://api.ipify.org?format=json"

HttpGetJson = Callable[[str, float], Any]


def _http_get_json(url: str, timeout_s: float) -> Any:
    req = urllib.request.Request(url, headers={"Accept": "application/json"}, method="GET")
    try:
        with urllib.request.urlopen(req, timeout=timeout_s) as resp:
            raw = resp.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as e:
        raise ResolutionError("http_error", {"url": url, "status": int(getattr(e, "code", 0) or 0)}) from e
    except (urllib.error.URLError, OSError) as e:
        raise ResolutionError("request_failed", {"url": url, "error": str(getattr(e, "reason", e))}) from e

    try:
        return json.loads(raw)
    except ValueError as e:
        raise ResolutionError("bad_json", {"url": url, "raw": raw[:200]}) from e


def resolve_external_address(
    url: str = DEFAULT_ECHO_URL,
    *,
    timeout_s: float = 5.0,
    http_get: Optional[HttpGetJson] = None,
) -> str:
    """Return this host's public IPv4 address as seen by the echo service."""
    data = (http_get or _http_get_json)(url, float(timeout_s))
    if not isinstance(data, dict):
        raise ResolutionError("bad_response", {"url": url})

    ip = data.get("ip")
    ip = ip.strip() if isinstance(ip, str) else ""
    if not ip:
        raise ResolutionError("ip_empty", {"url": url})

    try:
        parsed = ipaddress.ip_address(ip)
    except ValueError as e:
        raise ResolutionError("ip_invalid", {"url": url, "ip": ip}) from e
    if parsed.version != 4:
        raise ResolutionError("ip_not_ipv4", {"url": url, "ip": ip})
    return ip
