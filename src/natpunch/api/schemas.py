"""Pydantic request/response schemas for the registry API.

The wire contract is fixed by existing agents: field names are the short
"id" / "address" keys, not snake_case descriptive names.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    id: str = Field(..., min_length=1, description="Peer id chosen by the registering client")
    address: str = Field(..., description="Externally visible UDP endpoint, host:port")

    # Unknown fields are ignored (forward compatible)
    model_config = {"extra": "ignore", "strict": True}


class RegisterResponse(BaseModel):
    message: str = "Registered successfully"


class PeerRecord(BaseModel):
    id: str
    address: str


class HealthResponse(BaseModel):
    ok: bool = True
    records: int = 0
