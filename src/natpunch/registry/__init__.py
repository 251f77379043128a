# src/natpunch/registry/__init__.py
"""
Rendezvous registry.

In-memory only: records live as long as the registry service process and are
never expired. Last write wins per peer id.
"""

from __future__ import annotations

from natpunch.registry.store import AddressRecord, RegistryStore

__all__ = ["AddressRecord", "RegistryStore"]
