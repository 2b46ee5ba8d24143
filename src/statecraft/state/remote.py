from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from statecraft.core.errors import StoreIOError, StoreUnavailable, Unauthorized
from statecraft.state.base import Document, StateBackend

logger = structlog.get_logger()


class RetryableHTTPError(Exception):
    """HTTP errors that should be retried."""


def is_retryable_status(status_code: int) -> bool:
    """Determine if HTTP status code is retryable."""
    return status_code in (408, 429, 500, 502, 503, 504)


class RemoteStateBackend(StateBackend):
    """Client for the state server's single-endpoint JSON protocol."""

    def __init__(
        self,
        url: str,
        token: str,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url.rstrip("/") + "/"
        self._token = token
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._backoff_factor = backoff_factor
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._token}",
        }

    async def _call(self, payload: dict[str, Any]) -> httpx.Response:
        """POST ``payload``, retrying transient failures."""
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RetryableHTTPError),
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(multiplier=self._backoff_factor, max=30),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._post(payload)
        except RetryableHTTPError as exc:
            raise StoreUnavailable(
                "Remote state store is unavailable",
                {"method": payload["method"], "error": str(exc)},
            ) from exc
        raise StoreUnavailable("Remote state store is unavailable")  # pragma: no cover

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        method = payload["method"]
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._url, json=payload, headers=self._headers())
        except httpx.TransportError as exc:
            logger.warning("state_remote_network_error", method=method, error=str(exc))
            raise RetryableHTTPError(str(exc)) from exc

        if response.status_code in (401, 403):
            logger.error("state_remote_unauthorized", method=method, status=response.status_code)
            raise Unauthorized("Remote state store rejected the credentials")
        if is_retryable_status(response.status_code):
            logger.warning("state_remote_retryable_error", method=method, status=response.status_code)
            raise RetryableHTTPError(f"HTTP {response.status_code}: {response.text}")
        if response.is_error:
            logger.error("state_remote_error", method=method, status=response.status_code)
            raise StoreIOError(
                f"Remote state store returned HTTP {response.status_code}",
                {"method": method, "body": response.text},
            )
        return response

    async def get(self, prefix: str, key: str) -> Document | None:
        response = await self._call({"method": "get", "prefix": prefix, "key": key})
        return response.json()

    async def get_batch(self, prefix: str, keys: list[str]) -> dict[str, Document]:
        response = await self._call({"method": "getBatch", "prefix": prefix, "keys": keys})
        return response.json()

    async def list(self, prefix: str) -> list[str]:
        response = await self._call({"method": "list", "prefix": prefix})
        return response.json()

    async def count(self, prefix: str) -> int:
        response = await self._call({"method": "count", "prefix": prefix})
        return int(response.json())

    async def all(self, prefix: str) -> dict[str, Document]:
        response = await self._call({"method": "all", "prefix": prefix})
        return response.json()

    async def set(self, prefix: str, key: str, document: Document) -> None:
        await self._call({"method": "set", "prefix": prefix, "key": key, "value": document})

    async def delete(self, prefix: str, key: str) -> None:
        await self._call({"method": "delete", "prefix": prefix, "key": key})
