# src/natpunch/net/__init__.py
"""
natpunch network package

  - messages: punch datagram schemas (dataclasses)
  - codec: canonical JSON encoding/decoding of punch datagrams
  - udp: host:port parsing and UDP endpoint setup
  - punch: per-attempt hole punching session (keepalive sender + receiver)
  - net_logging: JSONL event helper shared by every subsystem
"""

from __future__ import annotations

__all__ = [
    "messages",
    "codec",
    "udp",
    "punch",
    "net_logging",
]
