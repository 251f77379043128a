# src/natpunch/client/agent.py
from __future__ import annotations

import logging
from typing import Callable, Optional

from natpunch.client.config import ClientConfig
from natpunch.client.registry_client import RegistryClient
from natpunch.client.resolver import resolve_external_address
from natpunch.errors import PunchError
from natpunch.net.net_logging import log_event
from natpunch.net.punch import EstablishedHook, PunchConfig, PunchSession, Reporter, SessionResult
from natpunch.net.udp import format_host_port, probe_bind

log = logging.getLogger("natpunch.agent")


class PunchAgent:
    """Process-lifetime side of the session engine.

    start() registers this agent's public address once; attempt() runs one
    punch session against one peer id. Errors from start() are meant to be
    fatal to the process, errors inside attempt() never escape it.
    """

    def __init__(
        self,
        *,
        cfg: ClientConfig,
        registry: Optional[RegistryClient] = None,
        resolve: Optional[Callable[[], str]] = None,
        punch_cfg: Optional[PunchConfig] = None,
    ) -> None:
        self.cfg = cfg
        self.registry = registry or RegistryClient(cfg.server, timeout_s=cfg.http_timeout_s)
        self._resolve = resolve or (lambda: resolve_external_address(cfg.echo_url, timeout_s=cfg.http_timeout_s))
        self.punch_cfg = punch_cfg or PunchConfig(keepalive_interval_s=cfg.keepalive_interval_s)

        self.external_address: Optional[str] = None
        self.active_session: Optional[PunchSession] = None

    @property
    def started(self) -> bool:
        return self.external_address is not None

    def start(self) -> str:
        """Resolve, bind-check and register. Idempotent; raises PunchError."""
        ip = self._resolve()
        address = format_host_port(ip, self.cfg.local_port)
        probe_bind(self.cfg.bind_host, self.cfg.local_port)
        self.registry.register(self.cfg.local_id, address)

        self.external_address = address
        log_event(log, "agent_registered", local_id=self.cfg.local_id, address=address, server=self.cfg.server)
        return address

    def attempt(
        self,
        peer_id: str,
        *,
        reporter: Optional[Reporter] = None,
        on_established: Optional[EstablishedHook] = None,
    ) -> SessionResult:
        if self.external_address is None:
            raise RuntimeError("agent not started: call start() first")

        if self.cfg.reregister_each_attempt:
            try:
                self.start()
            except PunchError as e:
                log_event(log, "agent_reregister_failed", peer_id=peer_id, kind=e.kind.value, reason=e.reason)
                return SessionResult.failed(peer_id, e)

        session = PunchSession(
            local_id=self.cfg.local_id,
            local_address=self.external_address,
            bind_host=self.cfg.bind_host,
            bind_port=self.cfg.local_port,
            peer_id=peer_id,
            cfg=self.punch_cfg,
            reporter=reporter,
            on_established=on_established,
        )
        self.active_session = session
        try:
            try:
                session.locate(self.registry.lookup)
            except PunchError:
                return session.result()
            return session.run()
        finally:
            self.active_session = None

    def cancel(self) -> None:
        """Stop the running attempt, if any. Safe from any thread."""
        session = self.active_session
        if session is not None:
            session.close()
