# src/natpunch/registry/store.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from natpunch.errors import RegistryError
from natpunch.net.net_logging import log_event

log = logging.getLogger("natpunch.registry")


@dataclass(frozen=True, slots=True)
class AddressRecord:
    """One peer's externally visible UDP endpoint ("host:port")."""

    id: str
    address: str

    def to_json(self) -> Dict[str, str]:
        return {"id": self.id, "address": self.address}


class RegistryStore:
    """Peer id -> AddressRecord map guarded by a single lock.

    Records are immutable, so a reader can never observe a half-written one;
    the lock only serializes access to the map itself. `list()` copies inside
    the critical section, so a snapshot never sees a concurrent mutation.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, AddressRecord] = {}

    def register(self, peer_id: str, address: str) -> AddressRecord:
        rec = AddressRecord(id=str(peer_id), address=str(address))
        with self._lock:
            previous = self._records.get(rec.id)
            self._records[rec.id] = rec

        log_event(
            log,
            "registry_register",
            id=rec.id,
            address=rec.address,
            replaced=previous.address if previous is not None else None,
        )
        return rec

    def get(self, peer_id: str) -> Optional[AddressRecord]:
        with self._lock:
            return self._records.get(str(peer_id))

    def lookup(self, peer_id: str) -> str:
        rec = self.get(peer_id)
        if rec is None:
            raise RegistryError.not_found(str(peer_id))
        return rec.address

    def list(self) -> List[AddressRecord]:
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
