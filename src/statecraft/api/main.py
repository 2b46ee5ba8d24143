from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from statecraft.api.deps import StateService
from statecraft.api.routes import health, state
from statecraft.config import Settings, get_settings
from statecraft.core.errors import ConfigurationError
from statecraft.logging import configure_logging
from statecraft.state.base import StateBackend
from statecraft.state.factory import create_backend


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        {"error": exc.detail},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


def create_app(
    settings: Settings | None = None,
    *,
    backend: StateBackend | None = None,
    token: str | None = None,
) -> FastAPI:
    """Build the state server application.

    The backend is initialised on first request as well as at startup, so the
    app also works under transports that skip the lifespan.
    """
    cfg = settings or get_settings()
    server_token = token or cfg.server_token
    if not server_token:
        raise ConfigurationError("The state server requires server_token to be set")

    service = StateService(backend or create_backend(cfg.server_backend, cfg))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(cfg.log_level, json_output=not cfg.debug)
        await service.ensure_ready()
        yield
        await service.close()

    app = FastAPI(title="Statecraft State Server", version="0.1.0", lifespan=lifespan)
    app.state.service = service
    app.state.token = server_token
    app.add_exception_handler(StarletteHTTPException, http_error_handler)

    app.include_router(health.router, tags=["health"])
    app.include_router(state.router, tags=["state"])
    return app
