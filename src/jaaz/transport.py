"""The raw "send a request, get a response" primitive underneath the client."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from jaaz.exceptions import TransportError
from jaaz.types import RequestDescriptor

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Sends a prepared request exactly as given.

    Implementations return the response whatever its status and raise
    :class:`~jaaz.exceptions.TransportError` when no response arrives.
    """

    async def send(self, request: RequestDescriptor) -> httpx.Response: ...


class HttpxTransport:
    """:class:`Transport` backed by :class:`httpx.AsyncClient`."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client if client is not None else httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    async def send(self, request: RequestDescriptor) -> httpx.Response:
        logger.debug("API request: %s", request.describe())
        try:
            resp = await self._client.request(
                request.method.upper(),
                f"{self.base_url}{request.path}",
                params=request.params,
                headers=request.headers,
                json=request.body,
            )
        except httpx.TransportError as exc:
            logger.debug("API request failed: %s: %s", request.describe(), exc)
            raise TransportError(f"{request.describe()} failed: {exc}") from exc
        logger.debug("API response: %s %s", resp.status_code, request.describe())
        return resp

    async def aclose(self) -> None:
        await self._client.aclose()
