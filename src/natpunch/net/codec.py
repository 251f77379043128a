# src/natpunch/net/codec.py
from __future__ import annotations

import json
from typing import Any, Dict

from natpunch.net.messages import PunchMsg, PunchMsgType

Json = Dict[str, Any]

# Keep every datagram well below common path MTUs.
MAX_DATAGRAM_BYTES = 1024
# Session nonces are secrets.token_hex(8); anything much longer is not ours.
MAX_NONCE_CHARS = 64


class WireDecodeError(RuntimeError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


class WireEncodeError(RuntimeError):
    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code


def dumps_json(obj: Any) -> bytes:
    try:
        return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise WireEncodeError("encode_failed", f"encode failed: {e}") from e


def loads_json(data: bytes | str) -> Any:
    try:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise WireDecodeError("invalid_json", f"invalid json: {e}") from e
    except UnicodeDecodeError as e:
        raise WireDecodeError("invalid_utf8", f"invalid utf-8: {e}") from e


def _coerce_msg_type(v: Any) -> PunchMsgType:
    if isinstance(v, PunchMsgType):
        return v
    if isinstance(v, str):
        try:
            return PunchMsgType(v)
        except ValueError as e:
            raise WireDecodeError("unknown_message_type", f"Unknown message type: {v}") from e
    raise WireDecodeError("invalid_message_type", f"Invalid message type field: {type(v).__name__}")


def _require_str(obj: Json, field: str) -> str:
    v = obj.get(field)
    if not isinstance(v, str):
        raise WireDecodeError("missing_field", f"Missing or non-string field '{field}'")
    return v


def encode_message(msg: PunchMsg) -> bytes:
    data = dumps_json(
        {
            "t": msg.type.value,
            "from": msg.sender,
            "peer_id": msg.peer_id,
            "nonce": msg.nonce,
        }
    )
    if len(data) > MAX_DATAGRAM_BYTES:
        raise WireEncodeError("too_large", f"encoded message is {len(data)} bytes (max {MAX_DATAGRAM_BYTES})")
    return data


def decode_message(data: bytes) -> PunchMsg:
    """Decode one datagram. Raises WireDecodeError for anything that is not a punch message."""
    if len(data) > MAX_DATAGRAM_BYTES:
        raise WireDecodeError("too_large", f"datagram is {len(data)} bytes (max {MAX_DATAGRAM_BYTES})")

    obj = loads_json(data)
    if not isinstance(obj, dict):
        raise WireDecodeError("invalid_message", "message must be a JSON object")

    nonce = _require_str(obj, "nonce")
    if not nonce:
        raise WireDecodeError("missing_field", "empty nonce")
    if len(nonce) > MAX_NONCE_CHARS:
        raise WireDecodeError("nonce_too_long", f"nonce is {len(nonce)} chars (max {MAX_NONCE_CHARS})")

    return PunchMsg(
        type=_coerce_msg_type(obj.get("t")),
        sender=_require_str(obj, "from"),
        peer_id=_require_str(obj, "peer_id"),
        nonce=nonce,
    )
