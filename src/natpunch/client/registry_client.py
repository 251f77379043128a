# src/natpunch/client/registry_client.py
from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Callable, Dict, List, Optional, Tuple

from natpunch.errors import RegistryError
from natpunch.registry.store import AddressRecord

Json = Dict[str, Any]

# (method, url, json body or None, timeout) -> (status, decoded body)
HttpJson = Callable[[str, str, Optional[Json], float], Tuple[int, Any]]


def _http_json(method: str, url: str, body: Optional[Json] = None, timeout_s: float = 10.0) -> Tuple[int, Any]:
    method = method.upper().strip()
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    data: Optional[bytes] = None
    if body is not None:
        data = json.dumps(body).encode("utf-8")

    req = urllib.request.Request(url, data=data, headers=headers, method=method)

    try:
        with urllib.request.urlopen(req, timeout=timeout_s) as resp:
            status = int(resp.status)
            raw = resp.read()
    except urllib.error.HTTPError as e:
        status = int(getattr(e, "code", 0) or 0)
        try:
            raw = e.read()
        except OSError:
            raw = b""
        finally:
            e.close()
    except (urllib.error.URLError, OSError) as e:
        raise RegistryError.transport("request_failed", {"url": url, "error": str(getattr(e, "reason", e))}) from e

    if not raw:
        return status, None
    txt = raw.decode("utf-8", errors="replace")
    try:
        return status, json.loads(txt)
    except ValueError:
        return status, txt


class RegistryClient:
    """HTTP client for the rendezvous registry (POST /register, GET /get, GET /all)."""

    def __init__(self, base_url: str, *, timeout_s: float = 10.0, http: Optional[HttpJson] = None) -> None:
        self.base_url = str(base_url).rstrip("/")
        self.timeout_s = float(timeout_s)
        self._http = http or _http_json

    def _url(self, path: str, query: Optional[Dict[str, str]] = None) -> str:
        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{urllib.parse.urlencode(query)}"
        return url

    def register(self, peer_id: str, address: str) -> None:
        url = self._url("/register")
        status, body = self._http("POST", url, {"id": peer_id, "address": address}, self.timeout_s)
        if status != 200:
            raise RegistryError.transport("register_rejected", {"url": url, "status": status, "body": body})

    def lookup(self, peer_id: str) -> str:
        url = self._url("/get", {"id": peer_id})
        status, body = self._http("GET", url, None, self.timeout_s)
        if status == 404:
            raise RegistryError.not_found(peer_id)
        if status != 200:
            raise RegistryError.transport("lookup_failed", {"url": url, "status": status, "body": body})

        address = body.get("address") if isinstance(body, dict) else None
        address = address.strip() if isinstance(address, str) else ""
        if not address:
            raise RegistryError.not_found(peer_id)
        return address

    def list_peers(self) -> List[AddressRecord]:
        url = self._url("/all")
        status, body = self._http("GET", url, None, self.timeout_s)
        if status != 200:
            raise RegistryError.transport("list_failed", {"url": url, "status": status, "body": body})
        if body is None:
            return []
        if not isinstance(body, list):
            raise RegistryError.transport("bad_response", {"url": url, "body": body})

        out: List[AddressRecord] = []
        for item in body:
            if not isinstance(item, dict):
                continue
            pid, addr = item.get("id"), item.get("address")
            if isinstance(pid, str) and isinstance(addr, str):
                out.append(AddressRecord(id=pid, address=addr))
        return out
