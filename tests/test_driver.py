from __future__ import annotations

from typing import List

from natpunch.client.driver import PROMPT, format_outcome, read_peer_id, run_driver
from natpunch.errors import ErrorKind, PunchError, RegistryError, SocketError
from natpunch.net.punch import Datagram, SessionResult, SessionState


def _lines(*items):
    """read_line stub: returns items in order, raising the ones that are exceptions."""
    it = iter(items)
    prompts: List[str] = []

    def _read(prompt: str) -> str:
        prompts.append(prompt)
        try:
            v = next(it)
        except StopIteration:
            raise EOFError from None
        if isinstance(v, BaseException):
            raise v
        return v

    return _read, prompts


class _FakeAgent:
    def __init__(self, results) -> None:
        self.results = list(results)
        self.calls: List[str] = []

    def attempt(self, peer_id, *, reporter=None, on_established=None):
        self.calls.append(peer_id)
        r = self.results.pop(0)
        if isinstance(r, BaseException):
            raise r
        if r.established and on_established is not None:
            on_established(r.peer_id, r.peer_address)
        if reporter is not None and r.established:
            reporter(Datagram(source=r.peer_address, payload=b"Hello from bob", msg=None, received_at_ms=0))
        return r


_OK = SessionResult(peer_id="bob", peer_address="1.2.3.4:5", state=SessionState.CLOSED_OK, established=True)


def test_read_peer_id_reprompts_on_blank() -> None:
    read, prompts = _lines("", "   ", " bob ")
    assert read_peer_id(read) == "bob"
    assert prompts == [PROMPT] * 3


def test_driver_runs_attempt_and_reports() -> None:
    out: List[str] = []
    read, _ = _lines("bob")
    agent = _FakeAgent([_OK])

    assert run_driver(agent, read_line=read, write=out.append) == 1
    assert agent.calls == ["bob"]
    assert out == [
        "punched through to bob at 1.2.3.4:5",
        "Received from 1.2.3.4:5: Hello from bob",
        "session with bob at 1.2.3.4:5 closed (established)",
        "",
    ]


def test_driver_continues_after_failed_attempt() -> None:
    out: List[str] = []
    read, _ = _lines("ghost", "bob")
    miss = SessionResult.failed("ghost", RegistryError.not_found("ghost"))
    agent = _FakeAgent([miss, _OK])

    assert run_driver(agent, read_line=read, write=out.append) == 2
    assert "connect to ghost failed (not_found: peer not found)" in out
    assert out[-2] == "session with bob at 1.2.3.4:5 closed (established)"


def test_ctrl_c_during_attempt_cancels_only_that_attempt() -> None:
    out: List[str] = []
    read, _ = _lines("bob", "bob")
    agent = _FakeAgent([KeyboardInterrupt(), _OK])

    assert run_driver(agent, read_line=read, write=out.append) == 2
    assert out[0] == "attempt to bob cancelled"


def test_ctrl_c_at_prompt_ends_driver() -> None:
    out: List[str] = []
    read, _ = _lines(KeyboardInterrupt())
    agent = _FakeAgent([])

    assert run_driver(agent, read_line=read, write=out.append) == 0
    assert agent.calls == []


def test_max_attempts_bounds_loop() -> None:
    read, prompts = _lines("bob", "bob", "bob")
    agent = _FakeAgent([_OK, _OK, _OK])

    assert run_driver(agent, read_line=read, write=lambda s: None, max_attempts=2) == 2
    assert len(prompts) == 2


def test_format_outcome_variants() -> None:
    punch_fail = SessionResult(
        peer_id="bob",
        peer_address="1.2.3.4:5",
        state=SessionState.CLOSED_ERROR,
        established=False,
        error=PunchError(ErrorKind.NOT_ESTABLISHED, "closed before peer acknowledged"),
    )
    assert format_outcome(punch_fail) == (
        "punch to bob at 1.2.3.4:5 failed (not_established: closed before peer acknowledged)"
    )

    lost = SessionResult(
        peer_id="bob",
        peer_address="1.2.3.4:5",
        state=SessionState.CLOSED_ERROR,
        established=True,
        error=SocketError("recv_failed"),
    )
    assert format_outcome(lost) == "session with bob at 1.2.3.4:5 lost after establishing (socket_error: recv_failed)"
