# src/natpunch/errors.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    CONFIG = "config_error"
    RESOLUTION = "resolution_error"
    NOT_FOUND = "not_found"
    TRANSPORT = "transport_error"
    SOCKET = "socket_error"
    NOT_ESTABLISHED = "not_established"


@dataclass(eq=False)
class PunchError(Exception):
    """Canonical error type for registry, resolver and session failures.

    `kind` is the machine-readable discriminator; callers decide whether a
    given kind is fatal for the process or only for the current attempt.
    """

    kind: ErrorKind
    reason: str
    details: Any | None = None

    def __str__(self) -> str:
        if self.details is None:
            return f"{self.kind.value}:{self.reason}"
        return f"{self.kind.value}:{self.reason}:{self.details}"


class ConfigError(PunchError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__(ErrorKind.CONFIG, reason, details)


class ResolutionError(PunchError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__(ErrorKind.RESOLUTION, reason, details)


class SocketError(PunchError):
    def __init__(self, reason: str, details: Any | None = None) -> None:
        super().__init__(ErrorKind.SOCKET, reason, details)


class RegistryError(PunchError):
    """Lookup miss (NOT_FOUND) or failure talking to the registry (TRANSPORT)."""

    def __init__(self, kind: ErrorKind, reason: str, details: Any | None = None) -> None:
        if kind not in (ErrorKind.NOT_FOUND, ErrorKind.TRANSPORT):
            raise ValueError(f"invalid registry error kind: {kind}")
        super().__init__(kind, reason, details)

    @staticmethod
    def not_found(peer_id: str) -> "RegistryError":
        return RegistryError(ErrorKind.NOT_FOUND, "peer not found", {"id": peer_id})

    @staticmethod
    def transport(reason: str, details: Any | None = None) -> "RegistryError":
        return RegistryError(ErrorKind.TRANSPORT, reason, details)
