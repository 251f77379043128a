# src/natpunch/net/punch.py
"""
natpunch: UDP hole punching session

One PunchSession is one attempt to open a direct path to one peer:

  IDLE -> AWAITING_PEER      locate(): ask the registry for the peer's address
       -> PUNCHING           open() + run(): keepalive thread + blocking receive
       -> ESTABLISHED        the peer acknowledged one of our keepalives
       -> CLOSED_OK          closed after the tunnel was established
       -> CLOSED_ERROR       lookup/socket failure, or closed before any ACK

Keepalives are PUNCH datagrams carrying our advertised address and a
per-session nonce. A peer that receives one answers with an ACK echoing the
nonce; receiving that ACK proves traffic flows both ways.

Threading:
  - run() blocks the calling thread in the receive loop.
  - exactly one background thread sends keepalives.
  - the stop Event is the only cancellation signal; the socket is closed by
    run() only after the keepalive thread has been joined.
"""

from __future__ import annotations

import logging
import secrets
import socket
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from natpunch.errors import ConfigError, ErrorKind, PunchError, SocketError
from natpunch.net.codec import WireDecodeError, WireEncodeError, decode_message, encode_message
from natpunch.net.messages import PunchMsg, PunchMsgType, ack, punch
from natpunch.net.net_logging import log_event
from natpunch.net.udp import format_host_port, open_udp_endpoint, parse_host_port

log = logging.getLogger("natpunch.punch")


def _now_ms() -> int:
    return int(time.time() * 1000)


class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_PEER = "awaiting_peer"
    PUNCHING = "punching"
    ESTABLISHED = "established"
    CLOSED_OK = "closed_ok"
    CLOSED_ERROR = "closed_error"


TERMINAL_STATES = frozenset({SessionState.CLOSED_OK, SessionState.CLOSED_ERROR})


@dataclass(frozen=True, slots=True)
class PunchConfig:
    keepalive_interval_s: float = 1.0
    # Upper bound on how long a stop request can go unnoticed by the receiver.
    recv_poll_s: float = 0.25
    recv_buffer_bytes: int = 2048
    # None: punch until a socket error or close().
    max_duration_s: Optional[float] = None
    join_timeout_s: float = 5.0


@dataclass(frozen=True, slots=True)
class Datagram:
    source: str
    payload: bytes
    msg: Optional[PunchMsg]
    received_at_ms: int

    def text(self) -> str:
        return self.payload.decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class SessionResult:
    peer_id: str
    peer_address: str
    state: SessionState
    established: bool
    datagrams_received: int = 0
    keepalives_sent: int = 0
    error: Optional[PunchError] = None

    @property
    def ok(self) -> bool:
        return self.state == SessionState.CLOSED_OK

    @staticmethod
    def failed(peer_id: str, error: PunchError, *, peer_address: str = "") -> "SessionResult":
        return SessionResult(
            peer_id=peer_id,
            peer_address=peer_address,
            state=SessionState.CLOSED_ERROR,
            established=False,
            error=error,
        )


Reporter = Callable[[Datagram], None]
EstablishedHook = Callable[[str, str], None]


class PunchSession:
    def __init__(
        self,
        *,
        local_id: str,
        local_address: str,
        bind_host: str,
        bind_port: int,
        peer_id: str,
        peer_address: Optional[str] = None,
        cfg: Optional[PunchConfig] = None,
        reporter: Optional[Reporter] = None,
        on_established: Optional[EstablishedHook] = None,
        nonce: Optional[str] = None,
    ) -> None:
        self.local_id = str(local_id)
        self.local_address = str(local_address)
        self.bind_host = str(bind_host)
        self.bind_port = int(bind_port)
        self.peer_id = str(peer_id)
        self.peer_address = str(peer_address or "")
        self.cfg = cfg or PunchConfig()
        self.nonce = nonce or secrets.token_hex(8)

        self._reporter = reporter
        self._on_established = on_established

        self.state = SessionState.IDLE
        self.datagrams_received = 0
        self.keepalives_sent = 0

        self._sock: Optional[socket.socket] = None
        self._sender: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._established = threading.Event()
        self._err_lock = threading.Lock()
        self._error: Optional[PunchError] = None

    # -------------------------
    # observation
    # -------------------------

    @property
    def established(self) -> bool:
        return self._established.is_set()

    @property
    def error(self) -> Optional[PunchError]:
        return self._error

    def wait_established(self, timeout: Optional[float] = None) -> bool:
        return self._established.wait(timeout)

    def keepalive_alive(self) -> bool:
        t = self._sender
        return t is not None and t.is_alive()

    def result(self) -> SessionResult:
        return SessionResult(
            peer_id=self.peer_id,
            peer_address=self.peer_address,
            state=self.state,
            established=self.established,
            datagrams_received=self.datagrams_received,
            keepalives_sent=self.keepalives_sent,
            error=self._error,
        )

    # -------------------------
    # lifecycle
    # -------------------------

    def locate(self, lookup: Callable[[str], str]) -> str:
        """Resolve the peer's registered address. Raises PunchError (session closed)."""
        self.state = SessionState.AWAITING_PEER
        try:
            self.peer_address = str(lookup(self.peer_id))
        except PunchError as e:
            self._close_with(e)
            raise
        log_event(log, "punch_peer_located", peer_id=self.peer_id, peer_address=self.peer_address)
        return self.peer_address

    def open(self) -> None:
        """Bind the local port and set the peer as default destination. Raises SocketError."""
        try:
            peer = parse_host_port(self.peer_address)
        except ValueError as e:
            err = SocketError("invalid_peer_address", {"peer_address": self.peer_address, "error": str(e)})
            self._close_with(err)
            raise err from e

        try:
            self._sock = open_udp_endpoint(
                self.bind_host,
                self.bind_port,
                peer=peer,
                recv_timeout_s=self.cfg.recv_poll_s,
            )
        except SocketError as e:
            self._close_with(e)
            raise

    def close(self) -> None:
        """Ask a running session to stop. Safe from any thread; run() does the cleanup."""
        self._stop.set()

    def run(self) -> SessionResult:
        if self.state in TERMINAL_STATES:
            return self.result()
        if self._sock is None:
            try:
                self.open()
            except PunchError:
                return self.result()

        try:
            payload = encode_message(punch(self.local_address, self.local_id, self.nonce))
        except WireEncodeError as e:
            self._close_with(ConfigError("punch_too_large", {"local_id": self.local_id[:64], "error": str(e)}))
            self._release_socket()
            return self.result()

        self.state = SessionState.PUNCHING
        log_event(
            log,
            "punch_started",
            peer_id=self.peer_id,
            peer_address=self.peer_address,
            local_address=self.local_address,
            nonce=self.nonce,
        )

        deadline = None
        if self.cfg.max_duration_s is not None:
            deadline = time.monotonic() + float(self.cfg.max_duration_s)

        self._sender = threading.Thread(
            target=self._keepalive_loop,
            args=(payload,),
            name=f"natpunch-keepalive-{self.peer_id}",
            daemon=True,
        )
        self._sender.start()
        try:
            self._receive_loop(deadline)
        finally:
            self._shutdown()
        return self.result()

    # -------------------------
    # internals
    # -------------------------

    def _keepalive_loop(self, payload: bytes) -> None:
        interval = max(0.01, float(self.cfg.keepalive_interval_s))
        while not self._stop.is_set():
            if not self._send(payload, what="keepalive"):
                return
            self.keepalives_sent += 1
            self._stop.wait(interval)

    def _receive_loop(self, deadline: Optional[float]) -> None:
        sock = self._sock
        assert sock is not None
        while not self._stop.is_set():
            if deadline is not None and time.monotonic() >= deadline:
                return
            try:
                data, src = sock.recvfrom(self.cfg.recv_buffer_bytes)
            except socket.timeout:
                continue
            except OSError as e:
                # A peer closing at the same time as us is not a failure.
                if not self._stop.is_set():
                    self._fail(SocketError("recv_failed", {"peer_address": self.peer_address, "error": str(e)}))
                return
            self._handle_datagram(data, src)

    def _handle_datagram(self, data: bytes, src) -> None:
        self.datagrams_received += 1
        try:
            msg: Optional[PunchMsg] = decode_message(data)
        except WireDecodeError:
            msg = None

        if msg is not None and msg.type == PunchMsgType.PUNCH:
            try:
                reply = encode_message(ack(self.local_address, self.local_id, msg.nonce))
            except WireEncodeError as e:
                log_event(log, "punch_ack_dropped", peer_id=self.peer_id, source=format_host_port(src[0], src[1]), error=str(e))
            else:
                self._send(reply, what="ack")
        elif msg is not None and msg.type == PunchMsgType.ACK and msg.nonce == self.nonce:
            self._mark_established()

        if self._reporter is not None:
            self._reporter(
                Datagram(
                    source=format_host_port(src[0], src[1]),
                    payload=bytes(data),
                    msg=msg,
                    received_at_ms=_now_ms(),
                )
            )

    def _mark_established(self) -> None:
        if self._established.is_set():
            return
        self._established.set()
        self.state = SessionState.ESTABLISHED
        log_event(log, "punch_established", peer_id=self.peer_id, peer_address=self.peer_address)
        if self._on_established is not None:
            self._on_established(self.peer_id, self.peer_address)

    def _send(self, payload: bytes, *, what: str) -> bool:
        sock = self._sock
        if sock is None or self._stop.is_set():
            return False
        try:
            sock.send(payload)
            return True
        except OSError as e:
            if not self._stop.is_set():
                self._fail(SocketError("send_failed", {"what": what, "peer_address": self.peer_address, "error": str(e)}))
            return False

    def _fail(self, err: PunchError) -> None:
        with self._err_lock:
            if self._error is None:
                self._error = err
        self._stop.set()
        log_event(log, "punch_failed", peer_id=self.peer_id, kind=err.kind.value, reason=err.reason, details=err.details)

    def _close_with(self, err: PunchError) -> None:
        with self._err_lock:
            if self._error is None:
                self._error = err
        self.state = SessionState.CLOSED_ERROR
        log_event(log, "punch_closed", peer_id=self.peer_id, state=self.state.value, kind=err.kind.value, reason=err.reason)

    def _release_socket(self) -> None:
        sock = self._sock
        self._sock = None
        if sock is not None:
            sock.close()

    def _shutdown(self) -> None:
        self._stop.set()

        t = self._sender
        if t is not None:
            t.join(self.cfg.join_timeout_s)

        self._release_socket()

        with self._err_lock:
            if self._error is None and not self.established:
                self._error = PunchError(
                    ErrorKind.NOT_ESTABLISHED,
                    "closed before peer acknowledged",
                    {"peer_address": self.peer_address, "datagrams_received": self.datagrams_received},
                )
            failed = self._error is not None

        self.state = SessionState.CLOSED_ERROR if failed else SessionState.CLOSED_OK
        log_event(
            log,
            "punch_closed",
            peer_id=self.peer_id,
            state=self.state.value,
            established=self.established,
            keepalives_sent=self.keepalives_sent,
            datagrams_received=self.datagrams_received,
            kind=self._error.kind.value if self._error is not None else None,
        )
