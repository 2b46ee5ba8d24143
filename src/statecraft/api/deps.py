from __future__ import annotations

import asyncio

from fastapi import Request

from statecraft.api.actors import ActorRegistry
from statecraft.state.base import StateBackend


class StateService:
    """Backend plus per-namespace write actors served by the state server."""

    def __init__(self, backend: StateBackend) -> None:
        self.backend = backend
        self.actors = ActorRegistry()
        self._ready = False
        self._init_lock = asyncio.Lock()

    async def ensure_ready(self) -> None:
        if self._ready:
            return
        async with self._init_lock:
            if not self._ready:
                await self.backend.init()
                self._ready = True

    async def close(self) -> None:
        if self._ready:
            await self.backend.close()
            self._ready = False


async def state_service_dependency(request: Request) -> StateService:
    service: StateService = request.app.state.service
    await service.ensure_ready()
    return service
