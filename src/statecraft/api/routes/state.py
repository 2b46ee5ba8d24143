from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any

import pydantic
import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel

from statecraft.api.auth import require_token
from statecraft.api.deps import StateService, state_service_dependency

router = APIRouter()
logger = structlog.get_logger()


class StateRequest(BaseModel):
    method: str
    prefix: str
    key: str | None = None
    keys: list[str] | None = None
    value: dict[str, Any] | None = None


class BadRequest(Exception):
    """Request is well-formed JSON but misses fields its method needs."""


def _require(payload: StateRequest, *fields: str) -> None:
    missing = [name for name in fields if getattr(payload, name) is None]
    if missing:
        raise BadRequest(f"Missing required field(s) for {payload.method}: {', '.join(missing)}")


async def _get(service: StateService, payload: StateRequest) -> Response:
    _require(payload, "key")
    return JSONResponse(await service.backend.get(payload.prefix, payload.key))


async def _get_batch(service: StateService, payload: StateRequest) -> Response:
    _require(payload, "keys")
    return JSONResponse(await service.backend.get_batch(payload.prefix, payload.keys))


async def _list(service: StateService, payload: StateRequest) -> Response:
    return JSONResponse(await service.backend.list(payload.prefix))


async def _count(service: StateService, payload: StateRequest) -> Response:
    return JSONResponse(await service.backend.count(payload.prefix))


async def _all(service: StateService, payload: StateRequest) -> Response:
    return JSONResponse(await service.backend.all(payload.prefix))


async def _set(service: StateService, payload: StateRequest) -> Response:
    _require(payload, "key", "value")
    actor = service.actors.get(payload.prefix)
    await actor.run(lambda: service.backend.set(payload.prefix, payload.key, payload.value))
    return PlainTextResponse("OK")


async def _delete(service: StateService, payload: StateRequest) -> Response:
    _require(payload, "key")
    actor = service.actors.get(payload.prefix)
    await actor.run(lambda: service.backend.delete(payload.prefix, payload.key))
    return PlainTextResponse("OK")


Handler = Callable[[StateService, StateRequest], Awaitable[Response]]

METHODS: dict[str, Handler] = {
    "get": _get,
    "getBatch": _get_batch,
    "list": _list,
    "count": _count,
    "all": _all,
    "set": _set,
    "delete": _delete,
}


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


@router.post("/", dependencies=[Depends(require_token)])
async def handle_state_request(
    request: Request,
    service: StateService = Depends(state_service_dependency),  # noqa: B008
) -> Response:
    raw = await request.body()
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid JSON body")
    if not isinstance(body, dict):
        return _error(status.HTTP_400_BAD_REQUEST, "Request body must be a JSON object")

    method = body.get("method")
    if isinstance(method, str) and method not in METHODS:
        return _error(status.HTTP_404_NOT_FOUND, f"Unknown method: {method}")

    try:
        payload = StateRequest.model_validate(body)
    except pydantic.ValidationError as exc:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
        return _error(status.HTTP_400_BAD_REQUEST, f"Invalid request fields: {', '.join(fields)}")

    handler = METHODS[payload.method]
    try:
        return await handler(service, payload)
    except BadRequest as exc:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc))
    except Exception as exc:
        logger.exception("state_request_failed", method=payload.method, prefix=payload.prefix)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc), request=body)
