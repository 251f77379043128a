# src/natpunch/client/driver.py
from __future__ import annotations

from typing import Callable, Optional

from natpunch.net.messages import PunchMsgType
from natpunch.net.punch import Datagram, Reporter, SessionResult

PROMPT = "input peer id: "

ReadLine = Callable[[str], str]
Write = Callable[[str], None]


def read_peer_id(read_line: ReadLine, prompt: str = PROMPT) -> str:
    """Prompt until a non-blank id is entered. EOFError propagates."""
    while True:
        s = read_line(prompt).strip()
        if s:
            return s


def _datagram_printer(write: Write) -> Reporter:
    def _report(dg: Datagram) -> None:
        if dg.msg is None:
            write(f"Received from {dg.source}: {dg.text()}")
        elif dg.msg.type == PunchMsgType.PUNCH:
            write(f"Received from {dg.source}: punch from {dg.msg.peer_id} ({dg.msg.sender})")
        else:
            write(f"Received from {dg.source}: ack from {dg.msg.peer_id} ({dg.msg.sender})")

    return _report


def format_outcome(result: SessionResult) -> str:
    if result.ok:
        return f"session with {result.peer_id} at {result.peer_address} closed (established)"

    err = result.error
    reason = f"{err.kind.value}: {err.reason}" if err is not None else result.state.value
    if result.established:
        return f"session with {result.peer_id} at {result.peer_address} lost after establishing ({reason})"
    if result.peer_address:
        return f"punch to {result.peer_id} at {result.peer_address} failed ({reason})"
    return f"connect to {result.peer_id} failed ({reason})"


def run_driver(
    agent,
    *,
    read_line: ReadLine = input,
    write: Write = print,
    max_attempts: Optional[int] = None,
) -> int:
    """Prompt for a peer id, run one attempt, report, repeat.

    Ends on EOF or Ctrl-C at the prompt (or after max_attempts). Ctrl-C
    during an attempt cancels only that attempt. Returns the attempt count.
    """
    attempts = 0
    report = _datagram_printer(write)

    def _established(peer_id: str, peer_address: str) -> None:
        write(f"punched through to {peer_id} at {peer_address}")

    while max_attempts is None or attempts < max_attempts:
        try:
            peer_id = read_peer_id(read_line)
        except (EOFError, KeyboardInterrupt):
            write("")
            break

        attempts += 1
        try:
            result = agent.attempt(peer_id, reporter=report, on_established=_established)
        except KeyboardInterrupt:
            write(f"attempt to {peer_id} cancelled")
            continue
        write(format_outcome(result))

    return attempts
