# src/natpunch/__init__.py
"""
natpunch: rendezvous registry + UDP hole punching agent.

  - registry: in-memory address record store
  - api: FastAPI registry service (register / get / all)
  - net: punch wire messages, UDP helpers, punch session engine
  - client: config, address resolver, registry client, agent, driver
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = [
    "api",
    "client",
    "errors",
    "net",
    "registry",
]
