from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

HostPort = str  # "host:port"
Nonce = str  # lowercase hex


class PunchMsgType(str, Enum):
    # Keepalive sent every interval while a session is punching
    PUNCH = "PUNCH"
    # Reply to a PUNCH, echoing the sender's nonce
    ACK = "ACK"


@dataclass(frozen=True, slots=True)
class PunchMsg:
    """One datagram exchanged over the punched socket.

    For PUNCH, `nonce` is the sender's own session nonce.
    For ACK, `nonce` is the nonce copied from the PUNCH being acknowledged.
    """

    type: PunchMsgType
    sender: HostPort
    peer_id: str
    nonce: Nonce


def punch(sender: HostPort, peer_id: str, nonce: Nonce) -> PunchMsg:
    return PunchMsg(type=PunchMsgType.PUNCH, sender=sender, peer_id=peer_id, nonce=nonce)


def ack(sender: HostPort, peer_id: str, echoed_nonce: Nonce) -> PunchMsg:
    return PunchMsg(type=PunchMsgType.ACK, sender=sender, peer_id=peer_id, nonce=echoed_nonce)
