from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from natpunch.api.config import load_api_config
from natpunch.api.errors import ApiError, api_error_handler
from natpunch.api.routes_health import router as health_router
from natpunch.api.routes_registry import router as registry_router
from natpunch.api.security import RequestSizeLimitMiddleware
from natpunch.api.structured_logging import RequestLogMiddleware
from natpunch.net.net_logging import log_event
from natpunch.registry.store import RegistryStore

log = logging.getLogger("natpunch.registry")


def create_app(*, store: Optional[RegistryStore] = None) -> FastAPI:
    """Create the registry service application.

    store:
      - None (default): a fresh, empty in-memory RegistryStore
      - an existing store: shared with the caller (tests, embedding)

    The store is owned by the application and reachable only through
    app.state.registry; nothing else holds it.
    """
    cfg = load_api_config()
    registry = store if store is not None else RegistryStore()

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        log_event(log, "registry_started", mode=cfg.mode, records=len(registry))
        yield
        log_event(log, "registry_stopped", records=len(registry))

    # Disable docs in production.
    if cfg.mode == "prod":
        app = FastAPI(
            title="natpunch registry",
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=_lifespan,
        )
    else:
        app = FastAPI(title="natpunch registry", lifespan=_lifespan)

    app.state.cfg = cfg
    app.state.registry = registry

    app.add_exception_handler(ApiError, api_error_handler)

    # --- Middleware ---
    # Size limiter first in the request path; request log wraps everything.
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(RequestLogMiddleware)

    # --- Routers ---
    app.include_router(registry_router)
    app.include_router(health_router, prefix="/v1", tags=["health"])

    return app


# Module-level app for `uvicorn natpunch.api.app:app`. Run a single worker:
# each worker process would own a separate in-memory registry.
app = create_app()
