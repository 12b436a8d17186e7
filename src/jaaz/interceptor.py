"""Attaches the current access token to outgoing requests."""

from __future__ import annotations

import logging

from jaaz.auth import TokenStore
from jaaz.routes import RouteClassifier
from jaaz.types import RequestDescriptor

logger = logging.getLogger(__name__)


class RequestInterceptor:
    def __init__(self, tokens: TokenStore, routes: RouteClassifier) -> None:
        self._tokens = tokens
        self._routes = routes

    async def prepare(self, request: RequestDescriptor) -> RequestDescriptor:
        """Return *request* with ``Authorization: Bearer <token>`` set.

        Public routes are returned untouched. When no token is stored, or
        the store cannot be read, the request goes out without one and the
        server's 401 drives the usual refresh path.
        """
        if self._routes.is_public(request.path):
            return request
        try:
            token = await self._tokens.get_access_token()
        except Exception as exc:  # noqa: BLE001
            logger.warning("could not read access token for %s: %s", request.describe(), exc)
            return request
        if token and isinstance(token, str):
            return request.with_header("Authorization", f"Bearer {token}")
        return request


def bearer_token(request: RequestDescriptor) -> str | None:
    """The access token *request* was sent with, if any."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme != "Bearer" or not token:
        return None
    return token
