from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from natpunch.api.routes_registry import _store
from natpunch.api.schemas import HealthResponse

router = APIRouter()


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    return HealthResponse(ok=True, records=len(_store(request))).model_dump()
