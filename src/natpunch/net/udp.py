# src/natpunch/net/udp.py
"""
UDP endpoint helpers for hole punching.

IPv4 only. Addresses travel as "host:port" strings (the registry format) and
are split into (host, port) tuples only at the socket boundary.
"""

from __future__ import annotations

import socket
from typing import Optional, Tuple

from natpunch.errors import SocketError

Endpoint = Tuple[str, int]


def parse_host_port(addr: str) -> Endpoint:
    s = (addr or "").strip()
    if ":" not in s:
        raise ValueError(f"invalid host:port: {addr!r}")
    host, port_s = s.rsplit(":", 1)
    host = host.strip()
    if not host or ":" in host:
        raise ValueError(f"invalid host:port: {addr!r}")
    try:
        port = int(port_s)
    except ValueError as e:
        raise ValueError(f"invalid port in {addr!r}") from e
    if not (0 < port < 65536):
        raise ValueError(f"port out of range in {addr!r}")
    return host, port


def format_host_port(host: str, port: int) -> str:
    return f"{host}:{int(port)}"


def open_udp_endpoint(
    bind_host: str,
    bind_port: int,
    *,
    peer: Optional[Endpoint] = None,
    recv_timeout_s: Optional[float] = None,
) -> socket.socket:
    """Bind a UDP socket and optionally connect it to `peer` (default destination).

    SO_REUSEADDR lets consecutive sessions rebind the same local port
    immediately, which keeps the NAT mapping for that port alive.
    """
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        s.bind((bind_host, int(bind_port)))
    except OSError as e:
        s.close()
        raise SocketError("bind_failed", {"bind": format_host_port(bind_host, bind_port), "error": str(e)}) from e

    if peer is not None:
        try:
            # connect() resolves hostnames; a failure here is a per-session error
            s.connect(peer)
        except OSError as e:
            s.close()
            raise SocketError("connect_failed", {"peer": format_host_port(*peer), "error": str(e)}) from e

    if recv_timeout_s is not None:
        s.settimeout(float(recv_timeout_s))
    return s


def probe_bind(bind_host: str, bind_port: int) -> None:
    """Fail fast with SocketError when the local port cannot be bound."""
    s = open_udp_endpoint(bind_host, bind_port)
    s.close()
