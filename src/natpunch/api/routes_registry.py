from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Query, Request
from pydantic import ValidationError

from natpunch.api.errors import ApiError
from natpunch.api.schemas import PeerRecord, RegisterRequest, RegisterResponse
from natpunch.errors import RegistryError
from natpunch.net.net_logging import log_event
from natpunch.registry.store import RegistryStore

Json = Dict[str, Any]

log = logging.getLogger("natpunch.registry")

router = APIRouter(tags=["registry"])


def _store(request: Request) -> RegistryStore:
    store = getattr(request.app.state, "registry", None)
    if store is None:
        raise ApiError.internal("not_ready", "registry store not attached to app.state")
    return store


@router.post("/register")
async def register(request: Request) -> Json:
    """Insert or overwrite the address record for a peer id.

    Malformed bodies answer 404 (not 400/422): deployed agents only check for
    a 200, and the original server used 404 for every rejection.

    An empty "id" is treated as malformed. The original server accepted it
    and stored a record no agent could ask for; this one refuses it.
    """
    raw = await request.body()
    try:
        req = RegisterRequest.model_validate_json(raw or b"")
    except ValidationError as e:
        first = (e.errors() or [{}])[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        log_event(log, "registry_register_rejected", field=loc, reason=str(first.get("msg", "")))
        raise ApiError.not_found(
            "bad_request",
            "malformed register body",
            {"field": loc, "reason": str(first.get("msg", ""))},
        )

    _store(request).register(req.id, req.address)
    return RegisterResponse().model_dump()


@router.get("/get")
def get_peer(request: Request, peer_id: str = Query(default="", alias="id")) -> Json:
    try:
        address = _store(request).lookup(peer_id)
    except RegistryError:
        raise ApiError.not_found("peer_not_found", "peer not found", {"id": peer_id})
    return PeerRecord(id=peer_id, address=address).model_dump()


@router.get("/all")
def all_peers(request: Request) -> List[Json]:
    return [rec.to_json() for rec in _store(request).list()]
